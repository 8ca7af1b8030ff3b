import asyncio
from typing import List, Optional

from mip_core.config import MIPConfig
from mip_dto.snapshot import SessionEventDTO
from mip_providers.backend import MockSessionBackend
from mip_providers.evaluation import MockEvaluationProvider
from mip_providers.media import MockMediaDevices
from mip_providers.stt import MockSTTProvider
from mip_service.controller import InterviewSessionController


def make_config(**overrides) -> MIPConfig:
    values = dict(
        GREETING_DELAY_SEC=0.0,
        FIRST_QUESTION_DELAY_SEC=0.0,
        NEXT_QUESTION_DELAY_SEC=0.0,
        MOCK_LATENCY_MS=0,
    )
    values.update(overrides)
    return MIPConfig.load(**values)


class Harness:
    """Controller wired to mocks, with every collaborator exposed for assertions."""
    def __init__(
        self,
        config: Optional[MIPConfig] = None,
        backend: Optional[MockSessionBackend] = None,
        stt: Optional[MockSTTProvider] = None,
        evaluator: Optional[MockEvaluationProvider] = None,
        media: Optional[MockMediaDevices] = None,
        resume_provider=None,
        clock=None,
    ):
        self.config = config or make_config()
        self.backend = backend or MockSessionBackend(self.config)
        self.stt = stt or MockSTTProvider(self.config)
        self.evaluator = evaluator or MockEvaluationProvider(self.config)
        self.media = media or MockMediaDevices(self.config)
        self.events: List[SessionEventDTO] = []

        kwargs = {}
        if clock is not None:
            kwargs["clock"] = clock
        self.controller = InterviewSessionController(
            backend=self.backend,
            transcriber=self.stt,
            evaluator=self.evaluator,
            media=self.media,
            resume_provider=resume_provider,
            config=self.config,
            **kwargs,
        )
        self.controller.add_listener(self.events.append)

    async def start(self) -> bool:
        started = await self.controller.start()
        await self.controller.wait_for_pacing()
        return started

    async def answer(self) -> bool:
        await self.controller.wait_for_pacing()
        if not await self.controller.speak():
            return False
        return await self.controller.submit()

    def event_names(self) -> List[str]:
        return [e.event.value for e in self.events]


async def settle(rounds: int = 10) -> None:
    """Let pending tasks run up to their next real suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)
