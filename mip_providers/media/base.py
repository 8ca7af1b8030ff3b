from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Iterable, List, Optional, Union

from mip_core.dto import BaseDTO


class MediaKind(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"


class MediaTrack:
    """
    One capture track. A stopped track never becomes live again.
    """
    def __init__(self, kind: MediaKind, label: str = "", on_stop: Optional[Callable[[], None]] = None):
        self.kind = kind
        self.label = label
        self._live = True
        self._on_stop = on_stop

    @property
    def ready_state(self) -> str:
        return "live" if self._live else "ended"

    @property
    def is_live(self) -> bool:
        return self._live

    def stop(self) -> None:
        if not self._live:
            return
        self._live = False
        if self._on_stop is not None:
            self._on_stop()


class MediaStream:
    def __init__(self, tracks: Iterable[MediaTrack]):
        self._tracks = list(tracks)

    def get_tracks(self) -> List[MediaTrack]:
        return list(self._tracks)

    @property
    def active(self) -> bool:
        return any(track.is_live for track in self._tracks)

    def stop(self) -> None:
        """Stop every track."""
        for track in self._tracks:
            track.stop()


class AudioConstraints(BaseDTO):
    sample_rate: int = 16000
    channel_count: int = 1
    echo_cancellation: bool = True
    noise_suppression: bool = True


class MediaConstraints(BaseDTO):
    audio: Union[AudioConstraints, bool] = False
    video: bool = False


class RecorderState(str, Enum):
    INACTIVE = "inactive"
    RECORDING = "recording"


DataCallback = Callable[[bytes], None]


class IMediaRecorder(ABC):
    """
    Time-sliced recorder over an audio stream.
    Chunks are delivered through the callback passed to start(); stop() flushes the last one.
    """
    @property
    @abstractmethod
    def mime_type(self) -> str:
        """Encoding actually used; empty string when the platform does not report one."""
        pass

    @property
    @abstractmethod
    def state(self) -> RecorderState:
        pass

    @abstractmethod
    def start(self, timeslice_ms: int, on_data: DataCallback) -> None:
        pass

    @abstractmethod
    async def stop(self) -> None:
        pass


class IMediaDevices(ABC):
    """
    Host capture capabilities (camera / microphone).
    Implementations raise DeviceError for every acquisition failure.
    """
    @abstractmethod
    async def get_user_media(self, constraints: MediaConstraints) -> MediaStream:
        pass

    @abstractmethod
    def is_type_supported(self, mime_type: str) -> bool:
        pass

    @abstractmethod
    def create_recorder(self, stream: MediaStream, mime_type: Optional[str] = None) -> IMediaRecorder:
        pass
