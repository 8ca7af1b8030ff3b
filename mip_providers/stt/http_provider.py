from pydantic import ValidationError

from mip_core.config import MIPConfig
from mip_core.dto import AudioPayloadDTO, TranscriptDTO
from mip_core.errors import TranscriptionError
from mip_core.logging import get_logger
from mip_providers.http.client import BackendHttpClient
from mip_providers.stt.base import ITranscriptionProvider

logger = get_logger("mip.providers.stt")

TRANSCRIBE_PATH = "/api/interview/transcribe"


class HttpTranscriptionProvider(ITranscriptionProvider):
    def __init__(self, client: BackendHttpClient, config: MIPConfig):
        self.client = client
        self.config = config

    async def transcribe(self, payload: AudioPayloadDTO) -> str:
        logger.info(f"Starting transcription: size={payload.size} type={payload.mime_type}")
        response = await self.client.post(
            "transcribe",
            TRANSCRIBE_PATH,
            timeout=self.config.TRANSCRIBE_TIMEOUT_SEC,
            files={"audio": (payload.filename, payload.data, payload.mime_type)},
        )
        if response.is_error:
            raise TranscriptionError(response.status_code)

        try:
            dto = TranscriptDTO.model_validate(BackendHttpClient.read_json(response))
        except ValidationError as e:
            raise TranscriptionError(response.status_code, "Malformed transcription response") from e
        return dto.transcription
