from .base import IEvaluationProvider
from .http_provider import HttpEvaluationProvider
from .mock import MockEvaluationProvider

__all__ = ["IEvaluationProvider", "HttpEvaluationProvider", "MockEvaluationProvider"]
