import asyncio
from typing import Any, List, Optional, Sequence

from mip_core.config import MIPConfig
from mip_core.dto import EndSessionResponseDTO
from mip_providers.backend.base import ISessionBackend
from mip_providers.resume.base import ResumeFile
from mip_session.dto import AnswerRecord, JobContext, OverallFeedback, Question, Session

DEFAULT_QUESTIONS = [
    "Tell me about yourself and your background.",
    {"question": "Describe a challenging technical problem you solved.", "category": "technical", "difficulty": "medium"},
    {"question": "Why do you want to work at our company?", "category": "behavioral", "difficulty": "easy"},
]


class MockSessionBackend(ISessionBackend):
    """
    In-memory Session Backend. Records every call for inspection.
    """
    def __init__(
        self,
        config: MIPConfig = None,
        questions: Sequence[Any] = DEFAULT_QUESTIONS,
        session_id: str = "mock-session-1",
        start_error: Optional[Exception] = None,
        end_error: Optional[Exception] = None,
    ):
        self.config = config
        self.latency_ms = 0
        if config and hasattr(config, 'MOCK_LATENCY_MS'):
            self.latency_ms = config.MOCK_LATENCY_MS
        self.questions = list(questions)
        self.session_id = session_id
        self.start_error = start_error
        self.end_error = end_error
        self.start_calls: List[tuple] = []
        self.end_calls: List[tuple] = []

    async def _delay(self):
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000.0)

    async def start_session(self, job: JobContext, resume: Optional[ResumeFile] = None) -> Session:
        self.start_calls.append((job, resume))
        await self._delay()
        if self.start_error is not None:
            raise self.start_error
        return Session(
            session_id=self.session_id,
            questions=tuple(Question.from_raw(q) for q in self.questions),
            job_role=job.job_role,
            company=job.company,
            ai_generated=True,
        )

    async def end_session(
        self,
        session: Session,
        records: Sequence[AnswerRecord],
        overall_feedback: OverallFeedback,
    ) -> EndSessionResponseDTO:
        self.end_calls.append((session, list(records), overall_feedback))
        await self._delay()
        if self.end_error is not None:
            raise self.end_error
        return EndSessionResponseDTO(
            session_name=f"{session.job_role} @ {session.company}",
            question_count=len(records),
        )
