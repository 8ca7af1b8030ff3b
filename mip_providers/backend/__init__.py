from .base import ISessionBackend
from .http_backend import HttpSessionBackend
from .mock import MockSessionBackend

__all__ = ["ISessionBackend", "HttpSessionBackend", "MockSessionBackend"]
