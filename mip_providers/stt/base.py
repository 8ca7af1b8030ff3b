from abc import ABC, abstractmethod

from mip_core.dto import AudioPayloadDTO


class ITranscriptionProvider(ABC):
    @abstractmethod
    async def transcribe(self, payload: AudioPayloadDTO) -> str:
        """
        Audio payload is passed, returns the transcript text.
        Raises TranscriptionError / TransportError on failure.
        """
        pass
