from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import ConfigDict, Field, field_validator, model_validator

from mip_core.dto import BaseDTO, SessionId
from .state import TerminationReason

SKIPPED_RESPONSE = "Question skipped"
FEEDBACK_BUSY_MESSAGE = "AI feedback generation service is currently busy. Please try again in a moment."


class JobContext(BaseDTO):
    """
    Job the interview is practised for.
    Submitted to the Session Backend when the session starts.
    """
    job_role: str = Field(..., description="Job title, e.g. 'Backend Engineer'")
    company: str = Field(..., description="Company name")
    job_description: str = Field(default="", description="Full job description text")


class Question(BaseDTO):
    """
    One interview prompt.
    The backend sends either a plain string or an object with a 'question' key;
    the raw value is kept so it can be echoed back unchanged.
    """
    model_config = ConfigDict(frozen=True)

    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    raw: Any = None

    @classmethod
    def from_raw(cls, raw: Any) -> "Question":
        if isinstance(raw, dict):
            text = raw.get("question") or raw.get("text") or ""
            metadata = {k: v for k, v in raw.items() if k not in ("question", "text")}
            return cls(text=str(text), metadata=metadata, raw=raw)
        return cls(text=str(raw), raw=raw)

    @property
    def is_structured(self) -> bool:
        return isinstance(self.raw, dict)

    @property
    def category(self) -> Optional[str]:
        return self.metadata.get("category")

    @property
    def difficulty(self) -> Optional[str]:
        return self.metadata.get("difficulty")

    def to_payload(self) -> Any:
        return self.raw if self.raw is not None else self.text


class Session(BaseDTO):
    """
    The active interview. Fixed once created by the Session Backend.
    """
    model_config = ConfigDict(frozen=True)

    session_id: Optional[SessionId] = None
    questions: tuple[Question, ...]
    job_role: str
    company: str
    ai_generated: bool = False

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def is_last(self, index: int) -> bool:
        return index + 1 >= len(self.questions)


# -------------------------------------------------------------------------
# Evaluation outcome (tagged union)
# -------------------------------------------------------------------------
class DegradationReason(str, Enum):
    SERVICE_BUSY = "SERVICE_BUSY"      # null score or explicit error payload
    SERVICE_ERROR = "SERVICE_ERROR"    # non-2xx / malformed response
    TIMEOUT = "TIMEOUT"
    NETWORK = "NETWORK"
    NOT_EVALUATED = "NOT_EVALUATED"    # session ended before evaluation finished


_DEGRADED_MESSAGES = {
    DegradationReason.SERVICE_BUSY: "AI evaluation service is currently busy. Please try again in a moment.",
    DegradationReason.SERVICE_ERROR: "AI evaluation failed for this answer. Your response was still recorded.",
    DegradationReason.TIMEOUT: "AI evaluation took too long to respond. Your response was still recorded.",
    DegradationReason.NETWORK: "Could not reach the evaluation service. Your response was still recorded.",
    DegradationReason.NOT_EVALUATED: "Interview ended before this answer was evaluated.",
}


class ScoredEvaluation(BaseDTO):
    model_config = ConfigDict(frozen=True)

    kind: Literal["scored"] = "scored"
    score: float = Field(..., ge=0, le=100)
    feedback: str = ""
    improvements: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {
            "answer_score": self.score,
            "feedback": self.feedback,
            "improvements": list(self.improvements),
        }


class DegradedEvaluation(BaseDTO):
    model_config = ConfigDict(frozen=True)

    kind: Literal["degraded"] = "degraded"
    reason: DegradationReason
    feedback: str
    improvements: tuple[str, ...] = ()

    @classmethod
    def for_reason(cls, reason: DegradationReason, feedback: Optional[str] = None) -> "DegradedEvaluation":
        improvements: tuple[str, ...] = ()
        if reason != DegradationReason.NOT_EVALUATED:
            improvements = ("Please try evaluating again later",)
        return cls(reason=reason, feedback=feedback or _DEGRADED_MESSAGES[reason], improvements=improvements)

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": True,
            "reason": self.reason.value,
            "answer_score": None,
            "feedback": self.feedback,
            "improvements": list(self.improvements),
        }


class SkippedOutcome(BaseDTO):
    model_config = ConfigDict(frozen=True)

    kind: Literal["skipped"] = "skipped"
    reached: bool = True

    def to_payload(self) -> None:
        return None


EvaluationOutcome = Annotated[
    Union[ScoredEvaluation, DegradedEvaluation, SkippedOutcome],
    Field(discriminator="kind"),
]


# -------------------------------------------------------------------------
# Ledger entries
# -------------------------------------------------------------------------
class AnswerRecord(BaseDTO):
    """
    Canonical per-question outcome used for persistence.
    'score' is None for every non-scored outcome so averages can exclude it.
    """
    model_config = ConfigDict(frozen=True)

    question_index: int = Field(..., ge=0)
    question: Question
    transcript: Optional[str] = None
    outcome: EvaluationOutcome
    answered: bool

    @classmethod
    def from_outcome(
        cls, question_index: int, question: Question, transcript: Optional[str], outcome: EvaluationOutcome
    ) -> "AnswerRecord":
        return cls(
            question_index=question_index,
            question=question,
            transcript=transcript,
            outcome=outcome,
            answered=not isinstance(outcome, SkippedOutcome),
        )

    @classmethod
    def skipped(cls, question_index: int, question: Question, reached: bool = True) -> "AnswerRecord":
        return cls(
            question_index=question_index,
            question=question,
            transcript=None,
            outcome=SkippedOutcome(reached=reached),
            answered=False,
        )

    @property
    def is_scored(self) -> bool:
        return isinstance(self.outcome, ScoredEvaluation)

    @property
    def score(self) -> Optional[float]:
        return self.outcome.score if isinstance(self.outcome, ScoredEvaluation) else None

    @property
    def feedback(self) -> Optional[str]:
        if isinstance(self.outcome, SkippedOutcome):
            return None
        return self.outcome.feedback

    @property
    def improvements(self) -> list[str]:
        if isinstance(self.outcome, SkippedOutcome):
            return []
        return list(self.outcome.improvements)

    def to_payload(self) -> dict[str, Any]:
        return {
            "question": self.question.to_payload(),
            "answer": self.transcript,
            "transcription": self.transcript,
            "score": self.score,
            "feedback": self.feedback,
            "improvements": self.improvements,
            "answered": self.answered,
        }


class ConversationHistoryEntry(BaseDTO):
    """
    Chronological log entry. Never mutated once appended.
    """
    model_config = ConfigDict(frozen=True)

    question_index: int = Field(..., ge=0)
    question: str
    response: str = ""
    evaluation: Optional[EvaluationOutcome] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    skipped: bool = False

    @property
    def question_number(self) -> int:
        return self.question_index + 1

    @property
    def has_answer(self) -> bool:
        if self.skipped:
            return False
        return bool(self.response) or self.evaluation is not None

    def to_payload(self) -> dict[str, Any]:
        return {
            "questionNumber": self.question_number,
            "question": self.question,
            "response": SKIPPED_RESPONSE if self.skipped else self.response,
            "evaluation": self.evaluation.to_payload() if self.evaluation is not None else None,
            "timestamp": self.timestamp.isoformat(),
            "skipped": self.skipped,
        }


# -------------------------------------------------------------------------
# Overall feedback
# -------------------------------------------------------------------------
class ParameterScores(BaseDTO):
    GRAMMAR_COMMUNICATION_MAX: ClassVar[int] = 10
    TECHNICAL_SKILLS_MAX: ClassVar[int] = 45
    RELEVANT_EXPERIENCE_MAX: ClassVar[int] = 45
    TOTAL_MAX: ClassVar[int] = 100

    grammar_communication_score: float = 0
    technical_skills_score: float = 0
    relevant_experience_score: float = 0
    total_score: Optional[float] = None

    @field_validator(
        "grammar_communication_score", "technical_skills_score", "relevant_experience_score", mode="before"
    )
    @classmethod
    def none_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @model_validator(mode="after")
    def fill_total(self) -> "ParameterScores":
        if self.total_score is None:
            self.total_score = (
                self.grammar_communication_score
                + self.technical_skills_score
                + self.relevant_experience_score
            )
        return self


class OverallFeedback(BaseDTO):
    """
    Aggregate feedback for the whole interview.
    Unknown fields sent by the backend are kept and persisted as-is.
    """
    model_config = ConfigDict(extra="allow")

    parameter_scores: ParameterScores = Field(default_factory=ParameterScores)
    parameter_feedback: dict[str, Any] = Field(default_factory=dict)
    overall_performance: str = ""
    strengths: list[Any] = Field(default_factory=list)
    detailed_strengths: list[Any] = Field(default_factory=list)
    areas_for_improvement: list[Any] = Field(default_factory=list)
    recommendations: list[Any] = Field(default_factory=list)
    score: Optional[str] = None
    error: Optional[str] = None

    @field_validator(
        "strengths", "detailed_strengths", "areas_for_improvement", "recommendations", mode="before"
    )
    @classmethod
    def none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("parameter_scores", "parameter_feedback", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("overall_performance", mode="before")
    @classmethod
    def none_to_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("score", mode="before")
    @classmethod
    def score_to_text(cls, value: Any) -> Any:
        # Either "68/100" text or a bare number
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def placeholder(cls, message: Optional[str] = None) -> "OverallFeedback":
        return cls(
            error=message or FEEDBACK_BUSY_MESSAGE,
            parameter_scores=ParameterScores(total_score=0),
            score="0/100",
        )

    @property
    def is_degraded(self) -> bool:
        return bool(self.error)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class InterviewResult(BaseDTO):
    """
    Terminal value published when the session reaches COMPLETE.
    """
    model_config = ConfigDict(frozen=True)

    session: Session
    records: tuple[AnswerRecord, ...]
    history: tuple[ConversationHistoryEntry, ...]
    overall_feedback: OverallFeedback
    termination_reason: TerminationReason
    persisted: bool
    saved_session_name: Optional[str] = None
