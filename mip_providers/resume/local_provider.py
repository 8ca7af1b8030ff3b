import asyncio
import mimetypes
import os
from typing import Optional

from mip_core.logging import get_logger
from mip_providers.resume.base import IResumeProvider, ResumeFile

logger = get_logger("mip.providers.resume")


class StaticResumeProvider(IResumeProvider):
    """Serves a resume already held in memory (e.g. uploaded earlier in the app)."""
    def __init__(self, resume: Optional[ResumeFile] = None):
        self._resume = resume

    async def get_resume(self) -> Optional[ResumeFile]:
        return self._resume


class FileResumeProvider(IResumeProvider):
    """Reads the resume from a local file on every call."""
    def __init__(self, file_path: str):
        self.file_path = file_path

    async def get_resume(self) -> Optional[ResumeFile]:
        if not os.path.exists(self.file_path):
            logger.warning(f"Resume file not found: {self.file_path}")
            return None

        content = await asyncio.to_thread(self._read_sync)
        content_type, _ = mimetypes.guess_type(self.file_path)
        logger.info(f"Loaded resume {os.path.basename(self.file_path)} ({len(content)} bytes)")
        return ResumeFile(
            filename=os.path.basename(self.file_path),
            content=content,
            content_type=content_type or "application/octet-stream",
        )

    def _read_sync(self) -> bytes:
        with open(self.file_path, "rb") as f:
            return f.read()
