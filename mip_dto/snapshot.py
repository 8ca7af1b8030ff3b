from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from mip_core.dto import ErrorNotice, SessionId
from mip_session.dto import EvaluationOutcome, InterviewResult
from mip_session.state import ConversationState, SessionEvent


class ControllerSnapshot(BaseModel):
    """
    Read-only view of the controller for UI consumption.
    Decoupled from the controller's internal objects.
    """
    model_config = ConfigDict(frozen=True)

    state: Optional[ConversationState] = Field(None, description="None until the session has started")
    session_id: Optional[SessionId] = None
    job_role: Optional[str] = None
    company: Optional[str] = None

    question_index: int = 0
    total_questions: int = 0
    current_question: Optional[str] = None
    is_last_question: bool = False
    progress_percentage: float = 0.0
    history_length: int = 0

    is_recording: bool = False
    recording_seconds: int = 0
    recording_time: str = "00:00"
    is_loading: bool = False
    is_generating_feedback: bool = False

    can_speak: bool = False
    can_submit: bool = False
    can_skip: bool = False
    can_advance: bool = False
    can_end: bool = False

    transcript: Optional[str] = None
    last_outcome: Optional[EvaluationOutcome] = None
    notice: Optional[ErrorNotice] = None

    camera_active: bool = False
    camera_notice: Optional[ErrorNotice] = None
    proceed_without_camera: bool = False

    result: Optional[InterviewResult] = None


class SessionEventDTO(BaseModel):
    """
    Event delivered to controller listeners.
    """
    model_config = ConfigDict(frozen=True)

    event: SessionEvent
    state: Optional[ConversationState] = None
    question_index: int = 0
    payload: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
