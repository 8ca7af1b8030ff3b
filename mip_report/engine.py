from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from mip_session.dto import AnswerRecord, ConversationHistoryEntry, DegradedEvaluation, ScoredEvaluation, Session, SkippedOutcome


def format_duration(seconds: int) -> str:
    """Recording timer text, MM:SS."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


class SessionSummary(BaseModel):
    """
    Per-session counts. Unscored answers are excluded from the averages, never counted as 0.
    """
    total_questions: int
    answered: int = Field(..., description="Questions with a response (scored or not)")
    scored: int
    unscored: int = Field(..., description="Answered but evaluation degraded")
    skipped: int
    not_reached: int
    average_score: Optional[float] = None
    highest_score: Optional[float] = None
    lowest_score: Optional[float] = None

    @property
    def completion_rate(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return round(self.answered / self.total_questions * 100, 1)


class ReportGenerator:
    """
    Read-side helpers over a finished (or in-progress) session.
    """

    @staticmethod
    def summarize(records: Sequence[AnswerRecord]) -> SessionSummary:
        scores: List[float] = [r.score for r in records if r.score is not None]
        skipped = not_reached = 0
        for record in records:
            if isinstance(record.outcome, SkippedOutcome):
                if record.outcome.reached:
                    skipped += 1
                else:
                    not_reached += 1

        answered = sum(1 for r in records if r.answered)
        return SessionSummary(
            total_questions=len(records),
            answered=answered,
            scored=len(scores),
            unscored=answered - len(scores),
            skipped=skipped,
            not_reached=not_reached,
            average_score=round(sum(scores) / len(scores), 1) if scores else None,
            highest_score=max(scores) if scores else None,
            lowest_score=min(scores) if scores else None,
        )

    @staticmethod
    def render_transcript(history: Iterable[ConversationHistoryEntry], session: Optional[Session] = None) -> str:
        lines: List[str] = []
        if session is not None:
            lines.append(f"Mock Interview - {session.job_role} @ {session.company}")
            lines.append("")

        for entry in history:
            lines.append(f"Q{entry.question_number}. {entry.question}")
            if entry.skipped:
                lines.append("   (skipped)")
                continue
            lines.append(f"   A: {entry.response or '(no response)'}")
            outcome = entry.evaluation
            if isinstance(outcome, ScoredEvaluation):
                lines.append(f"   Score: {outcome.score:g}/100")
                if outcome.feedback:
                    lines.append(f"   Feedback: {outcome.feedback}")
                for item in outcome.improvements:
                    lines.append(f"   - {item}")
            elif isinstance(outcome, DegradedEvaluation):
                lines.append(f"   Score: n/a ({outcome.feedback})")

        return "\n".join(lines)
