from abc import ABC, abstractmethod
from typing import Sequence

from mip_core.dto import AnswerEvaluationDTO
from mip_session.dto import ConversationHistoryEntry, OverallFeedback, Question, Session


class IEvaluationProvider(ABC):
    @abstractmethod
    async def evaluate_answer(self, transcript: str, question: Question, job_role: str) -> AnswerEvaluationDTO:
        """
        Score one answer.
        A null score or an 'error' field means the service is degraded, not that the call failed.
        """
        pass

    @abstractmethod
    async def synthesize_feedback(
        self, session: Session, history: Sequence[ConversationHistoryEntry]
    ) -> OverallFeedback:
        """
        Aggregate feedback for the whole interview.
        Raises FeedbackUnavailableError when the service reports failure.
        """
        pass
