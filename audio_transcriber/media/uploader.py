"""Pushes a local media asset to the backend and returns its handle."""

import logging

from audio_transcriber.backend.interface import MediaBackend, RemoteHandle
from audio_transcriber.media.asset import MediaAsset
from audio_transcriber.utils.classifier import classify_exception
from audio_transcriber.utils.errors import TransientBackendError, UploadError
from audio_transcriber.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_NAME = "Audio Transcription"
UPLOAD_RETRY_BASE_DELAY = 1.0


async def upload_asset(
    backend: MediaBackend,
    asset: MediaAsset,
    display_name: str = DEFAULT_DISPLAY_NAME,
    max_retries: int = 0,
    request_id: str | None = None,
) -> RemoteHandle:
    """Upload an asset and return the backend's handle for it.

    The asset's media type must already be normalized. Only transport
    failures and 5xx responses are retried, and only when max_retries > 0.

    Args:
        backend: Backend to upload to.
        asset: Local asset; must exist and be readable.
        display_name: Name shown for the file on the backend.
        max_retries: Extra attempts for transient failures.
        request_id: Correlation id for errors and logs.

    Returns:
        RemoteHandle in the state the backend acknowledged.

    Raises:
        UploadError: If the asset is unusable or the upload fails.
    """
    if not asset.exists:
        raise UploadError(
            f"Media file not found: {asset.path}", request_id=request_id
        )
    if not asset.media_type:
        raise UploadError("Media type is required for upload", request_id=request_id)

    @retry_with_backoff(
        max_retries=max_retries,
        base_delay=UPLOAD_RETRY_BASE_DELAY,
        retryable_exceptions=(TransientBackendError,),
    )
    async def _upload() -> RemoteHandle:
        return await backend.upload(asset.path, asset.media_type, display_name)

    try:
        handle = await _upload()
    except Exception as exc:
        cause_kind = classify_exception(exc)
        logger.error(
            "Upload of %s failed: %s",
            asset.filename,
            exc,
            extra={"request_id": request_id, "stage": "upload", "error_kind": cause_kind.value},
        )
        raise UploadError(
            f"Upload failed: {exc}", request_id=request_id, cause_kind=cause_kind
        ) from exc

    logger.info(
        "Uploaded %s as %s",
        asset.filename,
        handle.id,
        extra={"request_id": request_id, "stage": "upload"},
    )
    return handle
