from enum import Enum


class ConversationState(str, Enum):
    """
    Conversation states of a mock interview turn.
    GREETING is the only initial state, COMPLETE the only terminal one.
    """
    GREETING = "greeting"
    QUESTION = "question"
    WAITING = "waiting"
    LISTENING = "listening"
    ANALYZING = "analyzing"
    FEEDBACK = "feedback"
    COMPLETE = "complete"


class SessionAction(str, Enum):
    """
    Inputs to the transition function.
    Pacing actions come from the controller's timer, the rest from the user or the pipeline.
    """
    GREETING_ELAPSED = "GREETING_ELAPSED"
    QUESTION_SHOWN = "QUESTION_SHOWN"
    SPEAK = "SPEAK"
    SUBMIT = "SUBMIT"
    EVALUATION_RECEIVED = "EVALUATION_RECEIVED"
    TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
    NEXT = "NEXT"
    SKIP = "SKIP"
    END = "END"


class SessionEvent(str, Enum):
    """
    Events published to controller listeners.
    """
    SESSION_STARTED = "SESSION_STARTED"
    STATE_CHANGED = "STATE_CHANGED"
    DEVICE_ERROR = "DEVICE_ERROR"          # Camera/microphone could not be acquired
    TURN_ERROR = "TURN_ERROR"              # Transcription failed, user may record again
    ANSWER_RECORDED = "ANSWER_RECORDED"
    QUESTION_SKIPPED = "QUESTION_SKIPPED"
    FEEDBACK_GENERATING = "FEEDBACK_GENERATING"
    SESSION_COMPLETED = "SESSION_COMPLETED"


class TerminationReason(str, Enum):
    """
    Reason for session termination.
    """
    ALL_QUESTIONS_ANSWERED = "ALL_QUESTIONS_ANSWERED"
    LAST_QUESTION_SKIPPED = "LAST_QUESTION_SKIPPED"
    ENDED_BY_USER = "ENDED_BY_USER"
