from functools import lru_cache
from typing import Optional

from mip_core.config import MIPConfig
from mip_providers.backend import HttpSessionBackend, MockSessionBackend
from mip_providers.evaluation import HttpEvaluationProvider, MockEvaluationProvider
from mip_providers.http import BackendHttpClient, TokenSource
from mip_providers.media import IMediaDevices, get_media_devices
from mip_providers.resume import IResumeProvider
from mip_providers.stt import HttpTranscriptionProvider, MockSTTProvider
from mip_service.controller import InterviewSessionController


@lru_cache
def get_config() -> MIPConfig:
    return MIPConfig.load()


def get_http_client(token: TokenSource = None, config: Optional[MIPConfig] = None) -> BackendHttpClient:
    """
    One client per controller. Shared by backend, transcription and evaluation
    so they reuse the same connection pool. Caller closes it.
    """
    config = config or get_config()
    return BackendHttpClient(base_url=config.BACKEND_URL, token=token)


def build_http_controller(
    client: BackendHttpClient,
    media: IMediaDevices,
    resume_provider: Optional[IResumeProvider] = None,
    config: Optional[MIPConfig] = None,
) -> InterviewSessionController:
    """
    Controller wired to the real backend over HTTP.
    """
    config = config or get_config()
    return InterviewSessionController(
        backend=HttpSessionBackend(client, config),
        transcriber=HttpTranscriptionProvider(client, config),
        evaluator=HttpEvaluationProvider(client, config),
        media=media,
        resume_provider=resume_provider,
        config=config,
    )


def build_mock_controller(
    config: Optional[MIPConfig] = None,
    media: Optional[IMediaDevices] = None,
    resume_provider: Optional[IResumeProvider] = None,
) -> InterviewSessionController:
    """
    Controller wired to in-memory mocks (local simulation / tests).
    """
    config = config or get_config()
    return InterviewSessionController(
        backend=MockSessionBackend(config),
        transcriber=MockSTTProvider(config),
        evaluator=MockEvaluationProvider(config),
        media=media or get_media_devices("mock", config=config),
        resume_provider=resume_provider,
        config=config,
    )
