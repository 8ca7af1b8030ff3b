import asyncio
import io
import threading
import wave
from typing import List, Optional

import cv2
import pyaudio

from mip_core.config import MIPConfig
from mip_core.errors import DeviceError, DeviceErrorKind
from mip_core.logging import get_logger
from mip_providers.media.base import (
    AudioConstraints,
    DataCallback,
    IMediaDevices,
    IMediaRecorder,
    MediaConstraints,
    MediaKind,
    MediaStream,
    MediaTrack,
    RecorderState,
)

logger = get_logger("mip.providers.media.pyaudio")

WAV_MIME_TYPE = "audio/wav"
FRAMES_PER_BUFFER = 1024
SAMPLE_FORMAT = pyaudio.paInt16


def _map_pyaudio_error(error: Exception) -> DeviceErrorKind:
    # PortAudio error codes: -9985 device unavailable, -9996 invalid device, -9998 invalid channel count
    text = str(error)
    if "-9985" in text or "unavailable" in text.lower():
        return DeviceErrorKind.BUSY
    if "-9996" in text or "-9998" in text or "no default input" in text.lower():
        return DeviceErrorKind.NOT_FOUND
    return DeviceErrorKind.UNKNOWN


class PyAudioRecorder(IMediaRecorder):
    """
    Records 16-bit PCM from an open PyAudio input stream on a background thread.
    Frames are buffered per time slice; stop() emits one WAV-encoded chunk.
    """
    def __init__(self, pa: pyaudio.PyAudio, pa_stream, constraints: AudioConstraints):
        self._pa = pa
        self._pa_stream = pa_stream
        self._constraints = constraints
        self._state = RecorderState.INACTIVE
        self._frames: List[bytes] = []
        self._running = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._on_data: Optional[DataCallback] = None

    @property
    def mime_type(self) -> str:
        return WAV_MIME_TYPE

    @property
    def state(self) -> RecorderState:
        return self._state

    def start(self, timeslice_ms: int, on_data: DataCallback) -> None:
        if self._state == RecorderState.RECORDING:
            raise DeviceError(DeviceErrorKind.BUSY, device="microphone")
        self._on_data = on_data
        self._frames = []
        self._running.set()
        reads_per_slice = max(1, int(self._constraints.sample_rate * timeslice_ms / 1000 / FRAMES_PER_BUFFER))

        def record():
            slice_frames: List[bytes] = []
            while self._running.is_set():
                try:
                    slice_frames.append(self._pa_stream.read(FRAMES_PER_BUFFER, exception_on_overflow=False))
                except OSError as e:
                    logger.error(f"Microphone read failed: {e}")
                    break
                if len(slice_frames) >= reads_per_slice:
                    self._frames.extend(slice_frames)
                    slice_frames = []
            self._frames.extend(slice_frames)

        self._thread = threading.Thread(target=record, daemon=True)
        self._thread.start()
        self._state = RecorderState.RECORDING

    async def stop(self) -> None:
        if self._state != RecorderState.RECORDING:
            return
        self._running.clear()
        await asyncio.to_thread(self._thread.join)
        self._state = RecorderState.INACTIVE
        self._on_data(self._encode_wav())

    def _encode_wav(self) -> bytes:
        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wf:
            wf.setnchannels(self._constraints.channel_count)
            wf.setsampwidth(self._pa.get_sample_size(SAMPLE_FORMAT))
            wf.setframerate(self._constraints.sample_rate)
            wf.writeframes(b"".join(self._frames))
        return buffer.getvalue()


class PyAudioMediaDevices(IMediaDevices):
    """
    Local capture devices: microphone through PyAudio, camera through OpenCV.
    """
    def __init__(self, config: MIPConfig = None, camera_index: int = 0):
        self.config = config
        self.camera_index = camera_index
        self._pa = pyaudio.PyAudio()
        self._recorders = {}

    async def get_user_media(self, constraints: MediaConstraints) -> MediaStream:
        tracks: List[MediaTrack] = []
        try:
            if constraints.audio:
                audio = constraints.audio if isinstance(constraints.audio, AudioConstraints) else AudioConstraints()
                tracks.append(await asyncio.to_thread(self._open_microphone, audio))
            if constraints.video:
                tracks.append(await asyncio.to_thread(self._open_camera))
        except DeviceError:
            for track in tracks:
                track.stop()
            raise
        return MediaStream(tracks)

    def _open_microphone(self, audio: AudioConstraints) -> MediaTrack:
        try:
            self._pa.get_default_input_device_info()
            pa_stream = self._pa.open(
                format=SAMPLE_FORMAT,
                channels=audio.channel_count,
                rate=audio.sample_rate,
                input=True,
                frames_per_buffer=FRAMES_PER_BUFFER,
            )
        except OSError as e:
            raise DeviceError(_map_pyaudio_error(e), device="microphone", details={"error": str(e)}) from e

        def close():
            pa_stream.stop_stream()
            pa_stream.close()

        track = MediaTrack(MediaKind.AUDIO, label="PyAudio default input", on_stop=close)
        self._recorders[id(track)] = PyAudioRecorder(self._pa, pa_stream, audio)
        return track

    def _open_camera(self) -> MediaTrack:
        capture = cv2.VideoCapture(self.camera_index)
        if not capture.isOpened():
            capture.release()
            raise DeviceError(DeviceErrorKind.NOT_FOUND, device="camera")
        ok, _ = capture.read()
        if not ok:
            capture.release()
            raise DeviceError(DeviceErrorKind.BUSY, device="camera")
        return MediaTrack(MediaKind.VIDEO, label=f"OpenCV camera {self.camera_index}", on_stop=capture.release)

    def is_type_supported(self, mime_type: str) -> bool:
        return mime_type == WAV_MIME_TYPE

    def create_recorder(self, stream: MediaStream, mime_type: Optional[str] = None) -> IMediaRecorder:
        for track in stream.get_tracks():
            recorder = self._recorders.pop(id(track), None)
            if recorder is not None:
                return recorder
        raise DeviceError(DeviceErrorKind.NOT_FOUND, device="microphone")

    def close(self) -> None:
        self._pa.terminate()
