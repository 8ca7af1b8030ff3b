from enum import Enum
from typing import Optional, Dict, Any


class MIPBaseError(Exception):
    """
    MIP 클라이언트의 최상위 예외 클래스.
    모든 커스텀 예외는 이 클래스를 상속받아야 합니다.

    Attributes:
        code (str): 에러 식별 코드 (예: 'DEVICE_BUSY')
        message (str): 사람용 에러 메시지
        details (Optional[Dict[str, Any]]): 추가 디버깅 정보
    """
    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


class ConfigurationError(MIPBaseError):
    """환경 설정 로딩/검증 실패 시 발생하는 예외"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="CONF_Error", message=message, details=details)


# -------------------------------------------------------------------------
# Device Errors
# -------------------------------------------------------------------------
class DeviceErrorKind(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    BUSY = "BUSY"
    UNSUPPORTED = "UNSUPPORTED"
    UNKNOWN = "UNKNOWN"


# Platform (getUserMedia style) error names -> kind
_PLATFORM_ERROR_NAMES = {
    "NotAllowedError": DeviceErrorKind.PERMISSION_DENIED,
    "SecurityError": DeviceErrorKind.PERMISSION_DENIED,
    "NotFoundError": DeviceErrorKind.NOT_FOUND,
    "OverconstrainedError": DeviceErrorKind.NOT_FOUND,
    "NotReadableError": DeviceErrorKind.BUSY,
    "AbortError": DeviceErrorKind.BUSY,
    "NotSupportedError": DeviceErrorKind.UNSUPPORTED,
}

_DEVICE_MESSAGES = {
    DeviceErrorKind.PERMISSION_DENIED: "{Device} permission denied. Please allow {device} access and try again.",
    DeviceErrorKind.NOT_FOUND: "No {device} found. Please connect a {device} and try again.",
    DeviceErrorKind.BUSY: "{Device} is already in use by another application.",
    DeviceErrorKind.UNSUPPORTED: "{Device} access is not supported on this platform.",
    DeviceErrorKind.UNKNOWN: "{Device} access denied or not available.",
}


class DeviceError(MIPBaseError):
    """Camera/microphone acquisition failure."""
    def __init__(self, kind: DeviceErrorKind, device: str = "microphone", details: Optional[Dict[str, Any]] = None):
        self.kind = kind
        self.device = device
        template = _DEVICE_MESSAGES[kind]
        message = template.format(Device=device.capitalize(), device=device)
        super().__init__(code=f"DEVICE_{kind.value}", message=message, details=details)

    @classmethod
    def from_platform_name(cls, name: str, device: str = "microphone") -> "DeviceError":
        kind = _PLATFORM_ERROR_NAMES.get(name, DeviceErrorKind.UNKNOWN)
        return cls(kind, device=device, details={"platform_error": name})


# -------------------------------------------------------------------------
# Transport / Upstream Errors
# -------------------------------------------------------------------------
class TransportError(MIPBaseError):
    """Request never produced an HTTP response."""


class ServiceTimeoutError(TransportError):
    def __init__(self, operation: str, timeout_sec: float):
        super().__init__(
            code="NET_TIMEOUT",
            message=f"{operation} timed out after {timeout_sec:g}s",
            details={"operation": operation, "timeout_sec": timeout_sec}
        )


class NetworkError(TransportError):
    def __init__(self, operation: str, reason: str):
        super().__init__(
            code="NET_FAILURE",
            message=f"{operation} failed: {reason}",
            details={"operation": operation}
        )


class UpstreamStatusError(MIPBaseError):
    """Backend answered with a non-2xx status."""
    def __init__(self, operation: str, status_code: int, message: Optional[str] = None, code: str = "UPSTREAM_STATUS"):
        self.status_code = status_code
        super().__init__(
            code=code,
            message=message or f"{operation} returned HTTP {status_code}",
            details={"operation": operation, "status_code": status_code}
        )


class SessionStartError(UpstreamStatusError):
    def __init__(self, status_code: int, message: Optional[str] = None):
        super().__init__("start_session", status_code, message or "Failed to start interview", code="START_FAILED")


class AIGenerationUnavailableError(SessionStartError):
    def __init__(self, status_code: int = 503):
        super().__init__(
            status_code,
            "AI question generation is currently unavailable. Please try again in a few moments."
        )


class TranscriptionError(UpstreamStatusError):
    def __init__(self, status_code: int, message: Optional[str] = None):
        super().__init__("transcribe", status_code, message or "Failed to transcribe audio", code="STT_FAILED")


class FeedbackUnavailableError(MIPBaseError):
    def __init__(self, message: Optional[str] = None):
        super().__init__(
            code="FEEDBACK_UNAVAILABLE",
            message=message or "AI feedback generation service is currently busy. Please try again in a moment."
        )


class PersistenceError(UpstreamStatusError):
    def __init__(self, status_code: int):
        super().__init__("end_session", status_code, "Failed to save interview history", code="PERSIST_FAILED")


# -------------------------------------------------------------------------
# Session Errors
# -------------------------------------------------------------------------
class InvalidTransitionError(MIPBaseError):
    def __init__(self, state: str, action: str):
        self.state = state
        self.action = action
        super().__init__(
            code="SESSION_INVALID_TRANSITION",
            message=f"Action {action} is not allowed in state {state}",
            details={"state": state, "action": action}
        )


class ActionInProgressError(MIPBaseError):
    def __init__(self, key: str):
        super().__init__(
            code="SESSION_BUSY",
            message=f"Action '{key}' is already in progress",
            details={"key": key}
        )
