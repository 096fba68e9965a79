"""Model fallback executor.

Tries each model candidate in priority order against a READY handle until
one returns text. Attempts are strictly sequential: a quota failure on one
candidate has to be observed before deciding whether the next one may run,
since all candidates share the same credential.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from audio_transcriber.backend.interface import FileState, MediaBackend, RemoteHandle
from audio_transcriber.utils.classifier import classify_exception
from audio_transcriber.utils.errors import (
    AllCandidatesFailedError,
    ErrorKind,
    QuotaExceededError,
)
from audio_transcriber.utils.quota import QuotaGate

logger = logging.getLogger(__name__)

CANDIDATE_DELAY_SECONDS = 1.0


@dataclass
class GenerationAttempt:
    """Outcome of trying one candidate against the handle."""

    model: str
    duration_seconds: float
    error_kind: ErrorKind | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error_kind is None


@dataclass
class GenerationOutcome:
    """The winning candidate, its text, and every attempt made."""

    model: str
    text: str
    attempts: list[GenerationAttempt] = field(default_factory=list)


async def run_fallback(
    backend: MediaBackend,
    handle: RemoteHandle,
    instruction: str,
    candidates: Sequence[str],
    quota_gate: QuotaGate | None = None,
    candidate_delay: float = CANDIDATE_DELAY_SECONDS,
    request_id: str | None = None,
) -> GenerationOutcome:
    """Generate a transcript with the first candidate that succeeds.

    Args:
        backend: Backend holding the uploaded file.
        handle: Handle in the READY state.
        instruction: Transcription instruction sent with the file.
        candidates: Model ids in priority order; must not be empty.
        quota_gate: Shared gate checked before and tripped on quota errors.
        candidate_delay: Pause between a failed attempt and the next one.
        request_id: Correlation id for errors and logs.

    Returns:
        GenerationOutcome for the first candidate that produced text.

    Raises:
        ValueError: If candidates is empty or the handle is not READY.
        QuotaExceededError: On the first quota classification; no further
            candidates are tried.
        AllCandidatesFailedError: If every candidate failed otherwise.
    """
    if not candidates:
        raise ValueError("At least one model candidate is required")
    if handle.state is not FileState.READY:
        raise ValueError(f"Handle {handle.id} is {handle.state.value}, not ready")

    attempts: list[GenerationAttempt] = []

    for index, model in enumerate(candidates):
        log_extra = {"request_id": request_id, "stage": "generate", "model": model}
        if quota_gate is not None:
            try:
                quota_gate.check(request_id=request_id, model=model)
            except QuotaExceededError as exc:
                # another run opened the gate; keep this run's attempts
                raise QuotaExceededError(
                    exc.args[0], request_id=request_id, model=model, attempts=attempts
                ) from exc

        logger.info("Trying model %s", model, extra=log_extra)
        start = time.monotonic()
        try:
            text = await backend.generate(model, handle, instruction)
        except Exception as exc:
            kind = classify_exception(exc)
            attempts.append(
                GenerationAttempt(
                    model=model,
                    duration_seconds=time.monotonic() - start,
                    error_kind=kind,
                    error=str(exc),
                )
            )
            logger.warning(
                "Model %s failed (%s): %s",
                model,
                kind.value,
                exc,
                extra={**log_extra, "error_kind": kind.value},
            )
            if kind is ErrorKind.QUOTA_EXCEEDED:
                if quota_gate is not None:
                    quota_gate.trip()
                raise QuotaExceededError(
                    f"Quota exceeded on model {model}",
                    request_id=request_id,
                    model=model,
                    attempts=attempts,
                ) from exc
        else:
            duration = time.monotonic() - start
            if text:
                attempts.append(GenerationAttempt(model=model, duration_seconds=duration))
                logger.info(
                    "Model %s produced %d characters",
                    model,
                    len(text),
                    extra={**log_extra, "duration_seconds": duration},
                )
                return GenerationOutcome(model=model, text=text, attempts=attempts)
            attempts.append(
                GenerationAttempt(
                    model=model,
                    duration_seconds=duration,
                    error_kind=ErrorKind.TRANSIENT,
                    error="Empty response text",
                )
            )
            logger.warning("Model %s returned no text", model, extra=log_extra)

        if index < len(candidates) - 1 and candidate_delay > 0:
            await asyncio.sleep(candidate_delay)

    raise AllCandidatesFailedError(
        f"All {len(candidates)} model candidates failed",
        request_id=request_id,
        attempts=attempts,
    )
