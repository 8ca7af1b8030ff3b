import asyncio
from typing import List, Optional, Sequence, Union

from mip_core.config import MIPConfig
from mip_core.dto import AnswerEvaluationDTO
from mip_providers.evaluation.base import IEvaluationProvider
from mip_session.dto import ConversationHistoryEntry, OverallFeedback, ParameterScores, Question, Session

ScriptItem = Union[float, None, AnswerEvaluationDTO, Exception]


class MockEvaluationProvider(IEvaluationProvider):
    """
    Scripted evaluation service.

    script: one item per evaluate_answer call
        float -> scored answer
        None  -> degraded (null score)
        AnswerEvaluationDTO -> returned as-is
        Exception -> raised
    """
    def __init__(
        self,
        config: MIPConfig = None,
        script: Sequence[ScriptItem] = (),
        default_score: float = 75.0,
        feedback: Union[OverallFeedback, Exception, None] = None,
    ):
        self.config = config
        self.latency_ms = 0
        if config and hasattr(config, 'MOCK_LATENCY_MS'):
            self.latency_ms = config.MOCK_LATENCY_MS
        self._script = list(script)
        self.default_score = default_score
        self.feedback = feedback
        self.evaluate_calls: List[tuple] = []
        self.feedback_calls: List[tuple] = []
        self.gate: Optional[asyncio.Event] = None

    async def _delay(self):
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000.0)

    async def evaluate_answer(self, transcript: str, question: Question, job_role: str) -> AnswerEvaluationDTO:
        self.evaluate_calls.append((transcript, question, job_role))
        await self._delay()
        if self.gate is not None:
            await self.gate.wait()

        item = self._script.pop(0) if self._script else self.default_score
        if isinstance(item, Exception):
            raise item
        if isinstance(item, AnswerEvaluationDTO):
            return item
        if item is None:
            return AnswerEvaluationDTO(
                answer_score=None,
                feedback="AI evaluation service is currently busy. Please try again in a moment.",
                error=True,
            )
        return AnswerEvaluationDTO(
            answer_score=item,
            feedback=f"Mock feedback for: {question.text}",
            improvements=["Add a concrete example", "Quantify the impact"],
        )

    async def synthesize_feedback(
        self, session: Session, history: Sequence[ConversationHistoryEntry]
    ) -> OverallFeedback:
        self.feedback_calls.append((session, list(history)))
        await self._delay()
        if isinstance(self.feedback, Exception):
            raise self.feedback
        if self.feedback is not None:
            return self.feedback
        return OverallFeedback(
            parameter_scores=ParameterScores(
                grammar_communication_score=8,
                technical_skills_score=30,
                relevant_experience_score=32,
            ),
            overall_performance="Solid mock performance.",
            strengths=["Clear communication"],
            areas_for_improvement=["More concrete examples"],
            recommendations=["Practice the STAR method"],
        )
