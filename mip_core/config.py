from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mip_core.errors import ConfigurationError


class MIPConfig(BaseSettings):
    """
    클라이언트 전역 설정 클래스.
    .env 파일 및 환경 변수에서 값을 로드합니다.
    """
    PROJECT_NAME: str = "MIP Mock Interview Client"
    VERSION: str = "0.1.0"

    # Backend
    BACKEND_URL: str = "http://localhost:5002"
    DEFAULT_JOB_ROLE: str = "Software Engineer"
    DEFAULT_COMPANY: str = "Tech Company"

    # Network budgets (seconds)
    START_TIMEOUT_SEC: float = 30.0
    TRANSCRIBE_TIMEOUT_SEC: float = 30.0
    EVALUATE_TIMEOUT_SEC: float = 30.0
    FEEDBACK_TIMEOUT_SEC: float = 30.0
    PERSIST_TIMEOUT_SEC: float = 15.0

    # Conversation pacing (seconds). Cosmetic only.
    GREETING_DELAY_SEC: float = 3.0
    FIRST_QUESTION_DELAY_SEC: float = 1.0
    NEXT_QUESTION_DELAY_SEC: float = 0.5

    # Recording
    RECORDING_TIMESLICE_MS: int = 1000
    AUDIO_SAMPLE_RATE: int = 16000
    AUDIO_MIME_PREFERENCES: List[str] = Field(
        default_factory=lambda: ["audio/webm;codecs=opus", "audio/webm", "audio/wav"]
    )
    AUDIO_FALLBACK_MIME: str = "audio/webm"

    RECONCILE_MATCH_STRATEGY: Literal["INDEX", "TEXT"] = "INDEX"

    MOCK_LATENCY_MS: int = 0
    LOG_DIR: str = "logs"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"  # 정의되지 않은 환경변수는 무시
    )

    @classmethod
    def load(cls, **overrides) -> "MIPConfig":
        """
        설정을 로드하고 에러 발생 시 커스텀 예외로 래핑합니다.
        """
        try:
            return cls(**overrides)
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {str(e)}") from e
