from typing import Optional, Sequence

from pydantic import ValidationError

from mip_core.config import MIPConfig
from mip_core.dto import EndSessionResponseDTO, StartSessionResponseDTO
from mip_core.errors import AIGenerationUnavailableError, PersistenceError, SessionStartError
from mip_core.logging import get_logger
from mip_providers.backend.base import ISessionBackend
from mip_providers.http.client import BackendHttpClient
from mip_providers.resume.base import ResumeFile
from mip_session.dto import AnswerRecord, JobContext, OverallFeedback, Question, Session

logger = get_logger("mip.providers.backend")

START_PATH = "/api/interview/start"
END_PATH = "/api/interview/end"


class HttpSessionBackend(ISessionBackend):
    def __init__(self, client: BackendHttpClient, config: MIPConfig):
        self.client = client
        self.config = config

    async def start_session(self, job: JobContext, resume: Optional[ResumeFile] = None) -> Session:
        form = {
            "job_role": job.job_role,
            "company": job.company,
            "job_description": job.job_description,
        }
        files = None
        if resume is not None:
            files = {"resume": (resume.filename, resume.content, resume.content_type)}
            logger.info(f"Sending resume file: {resume.filename}")

        response = await self.client.post(
            "start_session", START_PATH, timeout=self.config.START_TIMEOUT_SEC, data=form, files=files
        )
        body = BackendHttpClient.read_json(response)

        if response.status_code == 503:
            raise AIGenerationUnavailableError(response.status_code)

        try:
            dto = StartSessionResponseDTO.model_validate(body)
        except ValidationError as e:
            raise SessionStartError(response.status_code, "Malformed start response") from e

        if response.is_error or not dto.success:
            raise SessionStartError(response.status_code, dto.error)
        if not dto.questions:
            raise SessionStartError(response.status_code, "No interview questions were returned")

        session = Session(
            session_id=dto.session_id,
            questions=tuple(Question.from_raw(q) for q in dto.questions),
            job_role=dto.job_role or job.job_role,
            company=dto.company or job.company,
            ai_generated=bool(dto.ai_generated),
        )
        logger.info(
            f"Interview started: session={session.session_id} questions={session.question_count} "
            f"ai_generated={session.ai_generated}"
        )
        return session

    async def end_session(
        self,
        session: Session,
        records: Sequence[AnswerRecord],
        overall_feedback: OverallFeedback,
    ) -> EndSessionResponseDTO:
        payload = {
            "job_name": session.job_role or "Interview",
            "company_name": session.company or "Unknown",
            "qa_data": [record.to_payload() for record in records],
            "overall_feedback": overall_feedback.to_payload(),
        }
        response = await self.client.post(
            "end_session", END_PATH, timeout=self.config.PERSIST_TIMEOUT_SEC, json=payload
        )
        if response.is_error:
            raise PersistenceError(response.status_code)

        body = BackendHttpClient.read_json(response)
        try:
            return EndSessionResponseDTO.model_validate(body)
        except ValidationError:
            logger.warning("Interview saved but the response body could not be parsed")
            return EndSessionResponseDTO()
