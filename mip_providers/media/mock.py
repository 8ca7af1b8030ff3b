import asyncio
from typing import List, Optional, Sequence

from mip_core.config import MIPConfig
from mip_core.errors import DeviceError, DeviceErrorKind
from mip_providers.media.base import (
    DataCallback,
    IMediaDevices,
    IMediaRecorder,
    MediaConstraints,
    MediaKind,
    MediaStream,
    MediaTrack,
    RecorderState,
)

DEFAULT_SUPPORTED_TYPES = ("audio/webm;codecs=opus", "audio/webm", "audio/wav")
DEFAULT_CHUNKS = (b"mock-audio-1", b"", b"mock-audio-2")


class MockMediaRecorder(IMediaRecorder):
    def __init__(self, stream: MediaStream, mime_type: str, chunks: Sequence[bytes]):
        self.stream = stream
        self._mime_type = mime_type
        self._chunks = list(chunks)
        self._state = RecorderState.INACTIVE
        self._on_data: Optional[DataCallback] = None
        self.timeslice_ms: Optional[int] = None

    @property
    def mime_type(self) -> str:
        return self._mime_type

    @property
    def state(self) -> RecorderState:
        return self._state

    def start(self, timeslice_ms: int, on_data: DataCallback) -> None:
        if self._state == RecorderState.RECORDING:
            raise DeviceError(DeviceErrorKind.BUSY, device="microphone")
        if not self.stream.active:
            raise DeviceError(DeviceErrorKind.NOT_FOUND, device="microphone")
        self.timeslice_ms = timeslice_ms
        self._on_data = on_data
        self._state = RecorderState.RECORDING

    async def stop(self) -> None:
        if self._state != RecorderState.RECORDING:
            return
        # Deliver the time slices collected so far
        for chunk in self._chunks:
            self._on_data(chunk)
        self._state = RecorderState.INACTIVE


class MockMediaDevices(IMediaDevices):
    """
    Scriptable camera/microphone for tests and local simulation.
    Every stream handed out is kept in `streams` so callers can check release.
    """
    def __init__(
        self,
        config: MIPConfig = None,
        supported_types: Sequence[str] = DEFAULT_SUPPORTED_TYPES,
        audio_chunks: Sequence[bytes] = DEFAULT_CHUNKS,
        audio_error: Optional[DeviceErrorKind] = None,
        video_error: Optional[DeviceErrorKind] = None,
    ):
        self.config = config
        self.latency_ms = 0
        if config and hasattr(config, 'MOCK_LATENCY_MS'):
            self.latency_ms = config.MOCK_LATENCY_MS
        self.supported_types = set(supported_types)
        self.audio_chunks = list(audio_chunks)
        self.audio_error = audio_error
        self.video_error = video_error
        self.streams: List[MediaStream] = []
        self.recorders: List[MockMediaRecorder] = []
        self.requests: List[MediaConstraints] = []

    @property
    def active_streams(self) -> List[MediaStream]:
        return [s for s in self.streams if s.active]

    async def get_user_media(self, constraints: MediaConstraints) -> MediaStream:
        self.requests.append(constraints)
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000.0)

        tracks = []
        if constraints.audio:
            if self.audio_error is not None:
                raise DeviceError(self.audio_error, device="microphone")
            tracks.append(MediaTrack(MediaKind.AUDIO, label="Mock Microphone"))
        if constraints.video:
            if self.video_error is not None:
                raise DeviceError(self.video_error, device="camera")
            tracks.append(MediaTrack(MediaKind.VIDEO, label="Mock Camera"))

        stream = MediaStream(tracks)
        self.streams.append(stream)
        return stream

    def is_type_supported(self, mime_type: str) -> bool:
        return mime_type in self.supported_types

    def create_recorder(self, stream: MediaStream, mime_type: Optional[str] = None) -> MockMediaRecorder:
        recorder = MockMediaRecorder(stream, mime_type or "", self.audio_chunks)
        self.recorders.append(recorder)
        return recorder
