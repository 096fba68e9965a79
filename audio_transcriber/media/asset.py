"""Local media asset owned by a single pipeline run.

A MediaAsset is a scoped resource: entering it marks the start of the run's
ownership and leaving it deletes the local file, whatever path the run
exits through.
"""

from __future__ import annotations

import logging
import mimetypes
import os
from typing import Any

logger = logging.getLogger(__name__)

FALLBACK_AUDIO_TYPE = "audio/mp3"

# Catch-all types sent by browsers and OS uploaders for audio files
_GENERIC_MEDIA_TYPES = {"", "application/octet-stream", "binary/octet-stream"}
_MEDIA_TYPE_ALIASES = {
    "application/ogg": "audio/ogg",
    "audio/x-wav": "audio/wav",
    "audio/mpeg3": "audio/mp3",
    "audio/x-m4a": "audio/m4a",
}


def normalize_media_type(detected: str | None, filename: str = "") -> str:
    """Replace generic or aliased media types with a concrete audio type.

    Args:
        detected: Media type reported by the uploader or client.
        filename: Original filename, used to guess a type from its extension.

    Returns:
        A non-empty media type the backend accepts for audio.
    """
    media_type = (detected or "").split(";")[0].strip().lower()
    if media_type in _GENERIC_MEDIA_TYPES:
        guessed, _ = mimetypes.guess_type(filename) if filename else (None, None)
        media_type = guessed or FALLBACK_AUDIO_TYPE
    return _MEDIA_TYPE_ALIASES.get(media_type, media_type)


class MediaAsset:
    """A local audio file whose deletion is guaranteed by `with asset:`.

    Args:
        path: Location of the file on local disk.
        media_type: Declared media type (may be generic; see normalize_media_type).
        filename: Original filename as supplied by the caller.
    """

    def __init__(self, path: str, media_type: str = "", filename: str = "") -> None:
        self.path = path
        self.media_type = media_type
        self.filename = filename or os.path.basename(path)
        self._released = False

    def __repr__(self) -> str:
        return (
            f"MediaAsset(path={self.path!r}, media_type={self.media_type!r}, "
            f"filename={self.filename!r})"
        )

    @property
    def exists(self) -> bool:
        return os.path.isfile(self.path)

    @property
    def size_bytes(self) -> int:
        try:
            return os.path.getsize(self.path)
        except OSError:
            return 0

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Delete the local file. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        try:
            os.remove(self.path)
        except FileNotFoundError:
            logger.warning("Local media %s was already gone at release", self.path)
        else:
            logger.debug("Deleted local media %s", self.path)

    def __enter__(self) -> MediaAsset:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()
