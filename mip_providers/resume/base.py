from abc import ABC, abstractmethod
from typing import Optional

from mip_core.dto import BaseDTO


class ResumeFile(BaseDTO):
    filename: str
    content: bytes
    content_type: str = "application/pdf"


class IResumeProvider(ABC):
    @abstractmethod
    async def get_resume(self) -> Optional[ResumeFile]:
        """
        Returns the resume to attach when a session starts, or None.
        """
        pass
