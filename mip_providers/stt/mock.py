import asyncio
from typing import List, Optional, Sequence, Union

from mip_core.config import MIPConfig
from mip_core.dto import AudioPayloadDTO
from mip_providers.stt.base import ITranscriptionProvider


class MockSTTProvider(ITranscriptionProvider):
    """
    Returns scripted transcripts in order. An Exception in the script is raised instead.
    Once the script runs out the default transcript is returned.
    """
    def __init__(
        self,
        config: MIPConfig = None,
        script: Sequence[Union[str, Exception]] = (),
        default: str = "This is a mock transcription result.",
    ):
        self.config = config
        self.latency_ms = 0
        if config and hasattr(config, 'MOCK_LATENCY_MS'):
            self.latency_ms = config.MOCK_LATENCY_MS
        self._script = list(script)
        self.default = default
        self.calls: List[AudioPayloadDTO] = []
        self.gate: Optional[asyncio.Event] = None

    async def transcribe(self, payload: AudioPayloadDTO) -> str:
        self.calls.append(payload)
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000.0)
        if self.gate is not None:
            await self.gate.wait()

        item = self._script.pop(0) if self._script else self.default
        if isinstance(item, Exception):
            raise item
        return item
