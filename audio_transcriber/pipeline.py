"""Transcription pipeline orchestrator.

Contains the result data models and TranscriptionPipeline, which runs:
quota check -> normalize media type -> upload -> poll until ready ->
model fallback -> sink -> result. The local media file is released on
every exit path; the remote file is deleted only when configured.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal

from audio_transcriber.backend.interface import MediaBackend, RemoteHandle
from audio_transcriber.backend.registry import get_backend
from audio_transcriber.config import PipelineConfig, Settings
from audio_transcriber.generation.fallback import GenerationAttempt, run_fallback
from audio_transcriber.media.asset import MediaAsset, normalize_media_type
from audio_transcriber.media.poller import wait_until_ready
from audio_transcriber.media.uploader import upload_asset
from audio_transcriber.observability.metrics import (
    RunMetrics,
    StageTimer,
    log_run_metrics,
    stage_duration,
)
from audio_transcriber.utils.classifier import classify_exception, user_message
from audio_transcriber.utils.errors import (
    AllCandidatesFailedError,
    ErrorKind,
    PipelineError,
    QuotaExceededError,
    UploadError,
)
from audio_transcriber.utils.quota import QuotaGate, get_quota_gate

logger = logging.getLogger(__name__)


@dataclass
class TranscriptionFailure:
    """Details about a failed run, safe to show to the caller."""

    kind: ErrorKind
    message: str
    stage: str


@dataclass
class TranscriptionResult:
    """Result of one pipeline run; exactly one of model/error is set."""

    status: Literal["success", "failed"]
    request_id: str
    model: str | None = None
    transcription: str | None = None
    error: TranscriptionFailure | None = None
    metrics: RunMetrics | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_payload(self) -> dict[str, Any]:
        """JSON body for the HTTP front end."""
        if self.error is None:
            return {
                "status": "success",
                "model": self.model,
                "transcription": self.transcription,
            }
        return {"error": self.error.message, "kind": self.error.kind.value}


@dataclass
class _RunState:
    """Mutable bookkeeping for a single run."""

    stage: str = "init"
    handle: RemoteHandle | None = None
    attempts: list[GenerationAttempt] = field(default_factory=list)
    upload_retry_count: int = 0
    remote_deleted: bool = False


class TranscriptionPipeline:
    """Runs uploads, readiness polling and model fallback for one asset.

    A pipeline instance holds only read-only configuration plus the shared
    backend client and quota gate, so one instance can serve concurrent
    runs.

    Args:
        backend: Remote backend client.
        config: Per-run parameters (instruction, candidates, policies).
        quota_gate: Shared per-credential gate; a private one is created
            when omitted.
    """

    def __init__(
        self,
        backend: MediaBackend,
        config: PipelineConfig,
        quota_gate: QuotaGate | None = None,
    ) -> None:
        self.backend = backend
        self.config = config
        self.quota_gate = quota_gate or QuotaGate()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        config: PipelineConfig | None = None,
        backend: MediaBackend | None = None,
    ) -> TranscriptionPipeline:
        """Build a pipeline wired to the shared gate for the configured key.

        Raises:
            ConfigurationError: If the API key is missing or the backend
                provider is unknown.
        """
        api_key = settings.require_api_key()
        if backend is None:
            backend = get_backend(settings.backend, **settings.backend_kwargs())
        return cls(
            backend=backend,
            config=config or settings.pipeline_config(),
            quota_gate=get_quota_gate(api_key, settings.quota_cooldown),
        )

    async def run(
        self, asset: MediaAsset, request_id: str | None = None
    ) -> TranscriptionResult:
        """Transcribe a local asset and release it.

        Never raises for pipeline failures; they are reported in the
        returned TranscriptionResult.

        Args:
            asset: Local media owned by this run from now on.
            request_id: Correlation id; generated when omitted.

        Returns:
            TranscriptionResult with status "success" or "failed".
        """
        request_id = request_id or uuid.uuid4().hex[:12]
        wall_start = time.monotonic()
        timings: dict[str, float] = {}
        state = _RunState()
        media_size = asset.size_bytes

        with asset:
            try:
                result = await self._run_stages(asset, request_id, timings, state)
            except Exception as exc:
                result = self._failure_result(exc, request_id, state)
            finally:
                if state.handle is not None and self.config.delete_remote:
                    state.remote_deleted = await self._delete_remote(
                        state.handle, request_id
                    )

        result.metrics = RunMetrics(
            request_id=request_id,
            status=result.status,
            model=result.model,
            error_kind=result.error.kind.value if result.error else None,
            media_type=asset.media_type,
            media_size_bytes=media_size,
            upload_duration_seconds=stage_duration(timings, "upload"),
            poll_duration_seconds=stage_duration(timings, "poll"),
            generate_duration_seconds=stage_duration(timings, "generate"),
            wall_time_seconds=time.monotonic() - wall_start,
            models_attempted=[a.model for a in state.attempts],
            models_failed=[a.model for a in state.attempts if not a.succeeded],
            upload_retry_count=state.upload_retry_count,
            remote_deleted=state.remote_deleted,
        )
        log_run_metrics(result.metrics)
        return result

    async def _run_stages(
        self,
        asset: MediaAsset,
        request_id: str,
        timings: dict[str, float],
        state: _RunState,
    ) -> TranscriptionResult:
        """Execute the stages in order. Raises on failure."""
        log_extra = {"request_id": request_id}
        self.quota_gate.check(request_id=request_id)

        asset.media_type = normalize_media_type(asset.media_type, asset.filename)
        logger.info(
            "Processing %s (%s)",
            asset.filename,
            asset.media_type,
            extra={**log_extra, "stage": "init"},
        )

        state.stage = "upload"
        with StageTimer("upload", timings):
            try:
                handle = await upload_asset(
                    self.backend,
                    asset,
                    display_name=self.config.display_name,
                    max_retries=self.config.upload_retries,
                    request_id=request_id,
                )
            except UploadError as exc:
                state.upload_retry_count = getattr(exc.__cause__, "_retry_count", 0)
                if exc.cause_kind is ErrorKind.QUOTA_EXCEEDED:
                    self.quota_gate.trip()
                raise
        state.handle = handle

        state.stage = "poll"
        with StageTimer("poll", timings):
            handle = await wait_until_ready(
                self.backend,
                handle,
                poll_interval=self.config.poll_interval,
                max_wait=self.config.max_wait,
                quota_gate=self.quota_gate,
                request_id=request_id,
            )
        state.handle = handle

        state.stage = "generate"
        with StageTimer("generate", timings):
            try:
                outcome = await run_fallback(
                    self.backend,
                    handle,
                    self.config.instruction,
                    self.config.candidates,
                    quota_gate=self.quota_gate,
                    candidate_delay=self.config.candidate_delay,
                    request_id=request_id,
                )
            except (QuotaExceededError, AllCandidatesFailedError) as exc:
                state.attempts = exc.attempts
                raise
        state.attempts = outcome.attempts

        if self.config.sink is not None:
            state.stage = "sink"
            self.config.sink.write(outcome.text, outcome.model)

        logger.info(
            "Transcription succeeded with %s",
            outcome.model,
            extra={**log_extra, "stage": "done", "model": outcome.model},
        )
        return TranscriptionResult(
            status="success",
            request_id=request_id,
            model=outcome.model,
            transcription=outcome.text,
        )

    def _failure_result(
        self, exc: Exception, request_id: str, state: _RunState
    ) -> TranscriptionResult:
        """Turn an exception from any stage into a failed result."""
        if isinstance(exc, PipelineError):
            kind = classify_exception(exc)
            logger.error(
                "Pipeline failed at stage '%s': %s",
                state.stage,
                exc,
                extra={"request_id": request_id, "stage": state.stage, "error_kind": kind.value},
            )
        else:
            kind = ErrorKind.TRANSIENT
            logger.error(
                "Unexpected error at stage '%s'",
                state.stage,
                exc_info=True,
                extra={"request_id": request_id, "stage": state.stage, "error_kind": kind.value},
            )

        return TranscriptionResult(
            status="failed",
            request_id=request_id,
            error=TranscriptionFailure(
                kind=kind,
                message=self._failure_message(kind, state),
                stage=state.stage,
            ),
        )

    def _failure_message(self, kind: ErrorKind, state: _RunState) -> str:
        # A single-candidate run reports why that one model failed
        if kind is ErrorKind.ALL_CANDIDATES_FAILED and len(state.attempts) == 1:
            attempt = state.attempts[0]
            if attempt.error_kind in (ErrorKind.MODEL_UNAVAILABLE, ErrorKind.INVALID_INPUT):
                return user_message(attempt.error_kind, attempt.model)
        return user_message(kind)

    async def _delete_remote(self, handle: RemoteHandle, request_id: str) -> bool:
        """Best-effort remote cleanup; failures are logged, not raised."""
        try:
            await self.backend.delete(handle.id)
        except Exception:
            logger.warning(
                "Failed to delete remote file %s, continuing",
                handle.id,
                exc_info=True,
                extra={"request_id": request_id, "stage": "cleanup"},
            )
            return False
        return True
