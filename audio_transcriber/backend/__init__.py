"""Remote media backends."""

from audio_transcriber.backend.interface import FileState, MediaBackend, RemoteHandle
from audio_transcriber.backend.registry import get_backend

__all__ = ["FileState", "MediaBackend", "RemoteHandle", "get_backend"]
