import time
from typing import Callable, List, Optional

from mip_core.config import MIPConfig
from mip_core.dto import AudioPayloadDTO
from mip_core.errors import ActionInProgressError, DeviceError, DeviceErrorKind
from mip_core.logging import get_logger
from mip_providers.media.base import (
    AudioConstraints,
    IMediaDevices,
    IMediaRecorder,
    MediaConstraints,
    MediaStream,
    RecorderState,
)

logger = get_logger("mip.service.recording")


class AudioCapture:
    """
    Owns the microphone for one answer at a time.

    start() acquires the stream and starts a time-sliced recorder,
    stop() concatenates the buffered chunks into one payload,
    discard() drops everything. The stream is released on every path.
    """
    def __init__(self, media: IMediaDevices, config: MIPConfig, clock: Callable[[], float] = time.monotonic):
        self.media = media
        self.config = config
        self._clock = clock
        self._stream: Optional[MediaStream] = None
        self._recorder: Optional[IMediaRecorder] = None
        self._chunks: List[bytes] = []
        self._started_at: Optional[float] = None

    @property
    def is_recording(self) -> bool:
        return self._recorder is not None and self._recorder.state == RecorderState.RECORDING

    @property
    def has_active_stream(self) -> bool:
        return self._stream is not None and self._stream.active

    @property
    def elapsed_seconds(self) -> int:
        if self._started_at is None:
            return 0
        return int(self._clock() - self._started_at)

    def negotiate_mime_type(self) -> Optional[str]:
        """First supported preference, or None to let the platform choose."""
        for mime_type in self.config.AUDIO_MIME_PREFERENCES:
            if self.media.is_type_supported(mime_type):
                return mime_type
        return None

    async def start(self) -> None:
        if self._recorder is not None:
            raise ActionInProgressError("recording")

        constraints = MediaConstraints(audio=AudioConstraints(sample_rate=self.config.AUDIO_SAMPLE_RATE))
        stream = await self.media.get_user_media(constraints)

        self._chunks = []
        try:
            recorder = self.media.create_recorder(stream, self.negotiate_mime_type())
            recorder.start(self.config.RECORDING_TIMESLICE_MS, self._on_data)
        except DeviceError:
            stream.stop()
            raise

        self._stream = stream
        self._recorder = recorder
        self._started_at = self._clock()
        logger.info(f"Recording started using MIME type: {recorder.mime_type or 'platform default'}")

    def _on_data(self, chunk: bytes) -> None:
        if chunk:
            self._chunks.append(chunk)

    async def stop(self) -> AudioPayloadDTO:
        recorder = self._recorder
        if recorder is None:
            raise DeviceError(DeviceErrorKind.UNKNOWN, device="microphone", details={"reason": "not recording"})

        try:
            await recorder.stop()
        finally:
            self._release()

        payload = AudioPayloadDTO(
            data=b"".join(self._chunks),
            mime_type=recorder.mime_type or self.config.AUDIO_FALLBACK_MIME,
        )
        self._chunks = []
        logger.info(f"Created audio payload: size={payload.size} type={payload.mime_type}")
        return payload

    async def discard(self) -> None:
        recorder = self._recorder
        if recorder is not None and recorder.state == RecorderState.RECORDING:
            try:
                await recorder.stop()
            except DeviceError as e:
                logger.warning(f"Recorder did not stop cleanly: {e}")
        self._chunks = []
        self._release()

    def _release(self) -> None:
        if self._stream is not None:
            self._stream.stop()
        self._stream = None
        self._recorder = None
        self._started_at = None
