from .base import ITranscriptionProvider
from .http_provider import HttpTranscriptionProvider
from .mock import MockSTTProvider

__all__ = ["ITranscriptionProvider", "HttpTranscriptionProvider", "MockSTTProvider"]
