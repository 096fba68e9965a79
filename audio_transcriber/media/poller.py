"""Waits for an uploaded file to leave the PROCESSING state.

PROCESSING -> PROCESSING: sleep poll_interval and query again.
PROCESSING -> READY: return the updated handle.
PROCESSING -> FAILED: raise ProcessingError without further polling.
Status query hits a quota limit: trip the shared gate, raise QuotaExceededError.
Still PROCESSING when the deadline passes: raise ReadinessTimeout.
"""

import asyncio
import logging
import time

from audio_transcriber.backend.interface import FileState, MediaBackend, RemoteHandle
from audio_transcriber.utils.classifier import classify_exception
from audio_transcriber.utils.errors import (
    BackendError,
    ErrorKind,
    ProcessingError,
    QuotaExceededError,
    ReadinessTimeout,
    TransientBackendError,
)
from audio_transcriber.utils.quota import QuotaGate

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_WAIT_SECONDS = 600.0


def _is_transient(exc: BackendError) -> bool:
    return isinstance(exc, TransientBackendError) or classify_exception(exc) is ErrorKind.TRANSIENT


async def wait_until_ready(
    backend: MediaBackend,
    handle: RemoteHandle,
    poll_interval: float = POLL_INTERVAL_SECONDS,
    max_wait: float = DEFAULT_MAX_WAIT_SECONDS,
    quota_gate: QuotaGate | None = None,
    request_id: str | None = None,
) -> RemoteHandle:
    """Poll the backend until the handle is READY.

    Transient status-query failures are tolerated until the deadline. A
    quota failure trips the gate and ends polling; any other query
    failure propagates as BackendError.

    Args:
        backend: Backend holding the file.
        handle: Handle as returned by the uploader.
        poll_interval: Seconds between status queries.
        max_wait: Deadline in seconds, measured from the first call.
        quota_gate: Shared gate tripped when a status query hits a quota limit.
        request_id: Correlation id for errors and logs.

    Returns:
        The handle advanced to FileState.READY.

    Raises:
        ProcessingError: If the backend reports FAILED.
        ReadinessTimeout: If the file is still processing at the deadline.
        QuotaExceededError: If a status query hits a quota limit.
        BackendError: On a non-transient status-query failure.
    """
    deadline = time.monotonic() + max_wait
    polls = 0
    log_extra = {"request_id": request_id, "stage": "poll"}

    while True:
        if handle.state is FileState.READY:
            logger.info(
                "Remote file %s ready after %d polls", handle.id, polls, extra=log_extra
            )
            return handle
        if handle.state is FileState.FAILED:
            raise ProcessingError(
                f"Backend failed to process {handle.id}",
                request_id=request_id,
                handle_id=handle.id,
            )
        if time.monotonic() >= deadline:
            raise ReadinessTimeout(
                f"{handle.id} still processing after {max_wait:.0f}s",
                request_id=request_id,
                handle_id=handle.id,
            )

        await asyncio.sleep(poll_interval)
        polls += 1
        try:
            state = await backend.get_status(handle.id)
        except BackendError as exc:
            if classify_exception(exc) is ErrorKind.QUOTA_EXCEEDED:
                if quota_gate is not None:
                    quota_gate.trip()
                raise QuotaExceededError(
                    f"Quota exceeded while polling {handle.id}",
                    request_id=request_id,
                ) from exc
            if not _is_transient(exc):
                raise
            logger.warning(
                "Status query for %s failed, retrying: %s",
                handle.id,
                exc,
                extra=log_extra,
            )
            continue
        handle = handle.advance(state)
        logger.debug(
            "Poll %d for %s: %s", polls, handle.id, state.value, extra=log_extra
        )
