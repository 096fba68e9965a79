"""Local media handling, upload and readiness polling."""

from audio_transcriber.media.asset import MediaAsset, normalize_media_type

__all__ = ["MediaAsset", "normalize_media_type"]
