from .base import (
    AudioConstraints,
    IMediaDevices,
    IMediaRecorder,
    MediaConstraints,
    MediaKind,
    MediaStream,
    MediaTrack,
    RecorderState,
)
from .mock import MockMediaDevices


def get_media_devices(provider_type: str = "mock", **kwargs) -> IMediaDevices:
    """
    Factory to get a media devices implementation.

    Args:
        provider_type (str): 'mock' or 'pyaudio'
        **kwargs: Arguments to pass to the provider constructor.
    """
    if provider_type == "mock":
        return MockMediaDevices(**kwargs)
    if provider_type == "pyaudio":
        # PyAudio / OpenCV are optional, only load them when asked for
        from .pyaudio_impl import PyAudioMediaDevices
        return PyAudioMediaDevices(**kwargs)

    raise ValueError(f"Unknown provider type: {provider_type}")


__all__ = [
    "AudioConstraints",
    "IMediaDevices",
    "IMediaRecorder",
    "MediaConstraints",
    "MediaKind",
    "MediaStream",
    "MediaTrack",
    "RecorderState",
    "MockMediaDevices",
    "get_media_devices",
]
