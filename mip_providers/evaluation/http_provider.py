from typing import Any, Dict, Sequence

from pydantic import ValidationError

from mip_core.config import MIPConfig
from mip_core.dto import AnswerEvaluationDTO, EvaluateResponseDTO, OverallFeedbackResponseDTO
from mip_core.errors import FeedbackUnavailableError, UpstreamStatusError
from mip_core.logging import get_logger
from mip_providers.evaluation.base import IEvaluationProvider
from mip_providers.http.client import BackendHttpClient
from mip_session.dto import ConversationHistoryEntry, OverallFeedback, Question, Session

logger = get_logger("mip.providers.evaluation")

EVALUATE_PATH = "/api/interview/evaluate"
OVERALL_FEEDBACK_PATH = "/api/interview/overall-feedback"


class HttpEvaluationProvider(IEvaluationProvider):
    def __init__(self, client: BackendHttpClient, config: MIPConfig):
        self.client = client
        self.config = config

    async def evaluate_answer(self, transcript: str, question: Question, job_role: str) -> AnswerEvaluationDTO:
        body: Dict[str, Any] = {"response": transcript, "job_role": job_role}
        # Structured questions go as 'question_obj', plain ones as 'question'
        if question.is_structured:
            body["question_obj"] = question.raw
        else:
            body["question"] = question.text

        response = await self.client.post(
            "evaluate", EVALUATE_PATH, timeout=self.config.EVALUATE_TIMEOUT_SEC, json=body
        )
        if response.is_error:
            raise UpstreamStatusError("evaluate", response.status_code, "Failed to evaluate response")

        try:
            dto = EvaluateResponseDTO.model_validate(BackendHttpClient.read_json(response))
        except ValidationError as e:
            raise UpstreamStatusError("evaluate", response.status_code, "Malformed evaluation response") from e

        if dto.evaluation is None:
            return AnswerEvaluationDTO(error="empty evaluation")
        return dto.evaluation

    async def synthesize_feedback(
        self, session: Session, history: Sequence[ConversationHistoryEntry]
    ) -> OverallFeedback:
        body = {
            "job_role": session.job_role,
            "company": session.company,
            "conversation_history": [entry.to_payload() for entry in history],
            "session_id": session.session_id,
        }
        logger.info(f"Generating overall feedback with {len(history)} history entries")

        response = await self.client.post(
            "overall_feedback", OVERALL_FEEDBACK_PATH, timeout=self.config.FEEDBACK_TIMEOUT_SEC, json=body
        )
        try:
            dto = OverallFeedbackResponseDTO.model_validate(BackendHttpClient.read_json(response))
        except ValidationError as e:
            raise FeedbackUnavailableError() from e

        if response.is_error or not dto.success or dto.feedback is None:
            logger.error(f"Failed to get overall feedback (HTTP {response.status_code}): {dto.error}")
            raise FeedbackUnavailableError(dto.error)

        try:
            return OverallFeedback.model_validate(dto.feedback)
        except ValidationError as e:
            raise FeedbackUnavailableError() from e
