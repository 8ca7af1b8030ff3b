from enum import Enum
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class BaseDTO(BaseModel):
    """
    MIP 프로젝트의 모든 DTO(Data Transfer Object)의 기반 클래스.

    Features:
        - from_attributes=True (객체 속성 변환 지원)
        - str_strip_whitespace=True (문자열 공백 자동 제거)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        populate_by_name=True
    )


# Backend ids are opaque: kept as sent (string or integer) and echoed back unchanged
SessionId = Union[str, int]


def _none_to_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    return value


# -------------------------------------------------------------------------
# Session Backend DTOs
# -------------------------------------------------------------------------
class StartSessionResponseDTO(BaseDTO):
    # A body without an explicit success flag is a failed start
    success: bool = False
    session_id: Optional[SessionId] = None
    questions: list[Any] = []
    job_role: Optional[str] = None
    company: Optional[str] = None
    ai_generated: Optional[bool] = None
    error: Optional[str] = None


class EndSessionResponseDTO(BaseDTO):
    session_name: Optional[str] = None
    question_count: Optional[int] = None


# -------------------------------------------------------------------------
# STT DTOs
# -------------------------------------------------------------------------
_MIME_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/wav": "wav",
    "audio/wave": "wav",
    "audio/x-wav": "wav",
    "audio/ogg": "ogg",
    "audio/mp4": "m4a",
    "audio/mpeg": "mp3",
}


class AudioPayloadDTO(BaseDTO):
    """
    Concatenated recording of one answer, tagged with its encoding.
    """
    data: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def filename(self) -> str:
        base_type = self.mime_type.split(";")[0].strip().lower()
        return f"response.{_MIME_EXTENSIONS.get(base_type, 'webm')}"


class TranscriptDTO(BaseDTO):
    transcription: str = ""


# -------------------------------------------------------------------------
# Evaluation DTOs
# -------------------------------------------------------------------------
class AnswerEvaluationDTO(BaseDTO):
    answer_score: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("answer_score", "score")
    )
    feedback: Optional[str] = None
    improvements: list[str] = []
    error: Optional[Any] = None

    @field_validator("improvements", mode="before")
    @classmethod
    def coerce_improvements(cls, value: Any) -> Any:
        return _none_to_list(value)

    @property
    def is_degraded(self) -> bool:
        return bool(self.error) or self.answer_score is None


class EvaluateResponseDTO(BaseDTO):
    evaluation: Optional[AnswerEvaluationDTO] = None


class OverallFeedbackResponseDTO(BaseDTO):
    success: bool = False
    feedback: Optional[dict[str, Any]] = None
    error: Optional[str] = None


# -------------------------------------------------------------------------
# User-facing notices
# -------------------------------------------------------------------------
class Recovery(str, Enum):
    TRY_AGAIN = "TRY_AGAIN"              # transient, repeat the same action
    CONTINUE_ANYWAY = "CONTINUE_ANYWAY"  # degraded, session proceeds
    PLEASE_WAIT = "PLEASE_WAIT"          # slow but fine


class ErrorNotice(BaseDTO):
    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    recovery: Recovery
