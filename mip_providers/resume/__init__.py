from .base import IResumeProvider, ResumeFile
from .local_provider import FileResumeProvider, StaticResumeProvider

__all__ = ["IResumeProvider", "ResumeFile", "FileResumeProvider", "StaticResumeProvider"]
