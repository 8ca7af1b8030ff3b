from abc import ABC, abstractmethod
from typing import Optional, Sequence

from mip_core.dto import EndSessionResponseDTO
from mip_providers.resume.base import ResumeFile
from mip_session.dto import AnswerRecord, JobContext, OverallFeedback, Session


class ISessionBackend(ABC):
    @abstractmethod
    async def start_session(self, job: JobContext, resume: Optional[ResumeFile] = None) -> Session:
        """
        Create a session and return it with its ordered question list.
        Raises AIGenerationUnavailableError (HTTP 503) or SessionStartError.
        """
        pass

    @abstractmethod
    async def end_session(
        self,
        session: Session,
        records: Sequence[AnswerRecord],
        overall_feedback: OverallFeedback,
    ) -> EndSessionResponseDTO:
        """
        Persist the reconciled answers and overall feedback.
        Raises PersistenceError on non-2xx.
        """
        pass
