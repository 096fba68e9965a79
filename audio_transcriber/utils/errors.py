"""Custom exception hierarchy for the transcription pipeline.

All exceptions inherit from PipelineError, enabling targeted handling
at pipeline boundaries while preserving specific failure context. Each
subclass carries the ErrorKind that the orchestrator reports to callers.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds that drive control flow and responses."""

    UPLOAD_FAILURE = "upload_failure"
    PROCESSING_FAILURE = "processing_failure"
    TIMEOUT = "timeout"
    QUOTA_EXCEEDED = "quota_exceeded"
    MODEL_UNAVAILABLE = "model_unavailable"
    INVALID_INPUT = "invalid_input"
    TRANSIENT = "transient"
    ALL_CANDIDATES_FAILED = "all_candidates_failed"


class PipelineError(Exception):
    """Base exception for all transcription pipeline errors."""

    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(self, message: str, request_id: str | None = None) -> None:
        self.request_id = request_id
        super().__init__(message)

    def __str__(self) -> str:
        if self.request_id:
            return f"[request={self.request_id}] {super().__str__()}"
        return super().__str__()


class ConfigurationError(PipelineError):
    """Raised when settings are missing or invalid (e.g. no API key)."""


class BackendError(PipelineError):
    """Raised by a backend client when a remote call fails.

    Carries the HTTP status code and the backend's status token
    (e.g. RESOURCE_EXHAUSTED) so the classifier can map it to a kind.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        status: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.status = status
        super().__init__(message, request_id)

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{base} (HTTP {self.status_code})"
        return base


class TransientBackendError(BackendError):
    """Raised for transport failures and 5xx responses."""


class UploadError(PipelineError):
    """Raised when transmitting the media to the backend fails."""

    kind = ErrorKind.UPLOAD_FAILURE

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        cause_kind: ErrorKind | None = None,
    ) -> None:
        self.cause_kind = cause_kind
        super().__init__(message, request_id)


class ProcessingError(PipelineError):
    """Raised when the backend reports FAILED while processing the media."""

    kind = ErrorKind.PROCESSING_FAILURE

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        handle_id: str | None = None,
    ) -> None:
        self.handle_id = handle_id
        super().__init__(message, request_id)


class ReadinessTimeout(PipelineError):
    """Raised when the media is still PROCESSING after the wait deadline."""

    kind = ErrorKind.TIMEOUT

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        handle_id: str | None = None,
    ) -> None:
        self.handle_id = handle_id
        super().__init__(message, request_id)


class QuotaExceededError(PipelineError):
    """Raised when the backend signals a rate/quota limit for the credential."""

    kind = ErrorKind.QUOTA_EXCEEDED

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        model: str | None = None,
        attempts: list | None = None,
    ) -> None:
        self.model = model
        self.attempts = attempts or []
        super().__init__(message, request_id)


class AllCandidatesFailedError(PipelineError):
    """Raised when every model candidate failed without a quota abort."""

    kind = ErrorKind.ALL_CANDIDATES_FAILED

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        attempts: list | None = None,
    ) -> None:
        self.attempts = attempts or []
        super().__init__(message, request_id)
