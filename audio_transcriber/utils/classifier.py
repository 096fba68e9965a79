"""Maps raw backend failures to an ErrorKind.

Classification is a pure function of the failure's status code, status
token and message text. The fallback executor relies on it to tell a
quota lockout (stop everything) from any other per-model failure (try the
next candidate).
"""

import re

import httpx

from audio_transcriber.utils.errors import BackendError, ErrorKind, PipelineError

_QUOTA_STATUSES = {"RESOURCE_EXHAUSTED"}
_NOT_FOUND_STATUSES = {"NOT_FOUND"}
_INVALID_STATUSES = {"INVALID_ARGUMENT", "FAILED_PRECONDITION"}

_QUOTA_PATTERN = re.compile(r"\b429\b|resource[_ ]exhausted|quota|rate limit", re.I)
_NOT_FOUND_PATTERN = re.compile(r"\b404\b|not[_ ]found|is not supported for", re.I)
_INVALID_PATTERN = re.compile(r"\b400\b|invalid[_ ]argument|unsupported", re.I)

_USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.QUOTA_EXCEEDED: (
        "Quota limit reached (429). The backend is temporarily rejecting "
        "requests; wait about a minute before retrying."
    ),
    ErrorKind.MODEL_UNAVAILABLE: (
        "The requested model is not available for this key or region. "
        "Try another model."
    ),
    ErrorKind.INVALID_INPUT: "Invalid or unsupported audio file format.",
    ErrorKind.UPLOAD_FAILURE: "Could not upload the audio file to the backend.",
    ErrorKind.PROCESSING_FAILURE: "The backend failed to process the audio file.",
    ErrorKind.TIMEOUT: "Timed out waiting for the backend to process the audio file.",
    ErrorKind.ALL_CANDIDATES_FAILED: (
        "All model candidates failed. Check your API limits or network."
    ),
    ErrorKind.TRANSIENT: "Transcription failed due to an unexpected backend error.",
}


def classify_error(
    message: str,
    status_code: int | None = None,
    status: str | None = None,
) -> ErrorKind:
    """Classify a failure from its status code, status token and text.

    Structured fields win over text matching; the message is only
    inspected when neither status field is decisive.

    Args:
        message: Diagnostic text of the failure.
        status_code: HTTP status code, if known.
        status: Backend status token (e.g. "RESOURCE_EXHAUSTED"), if known.

    Returns:
        The ErrorKind for this failure. Never raises.
    """
    if status_code == 429 or status in _QUOTA_STATUSES:
        return ErrorKind.QUOTA_EXCEEDED
    if status_code == 404 or status in _NOT_FOUND_STATUSES:
        return ErrorKind.MODEL_UNAVAILABLE
    if status_code == 400 or status in _INVALID_STATUSES:
        return ErrorKind.INVALID_INPUT

    text = message or ""
    if _QUOTA_PATTERN.search(text):
        return ErrorKind.QUOTA_EXCEEDED
    if _NOT_FOUND_PATTERN.search(text):
        return ErrorKind.MODEL_UNAVAILABLE
    if _INVALID_PATTERN.search(text):
        return ErrorKind.INVALID_INPUT
    return ErrorKind.TRANSIENT


def classify_exception(exc: BaseException) -> ErrorKind:
    """Classify an exception raised anywhere in a pipeline run."""
    if isinstance(exc, BackendError):
        message = exc.args[0] if exc.args else ""
        return classify_error(message, exc.status_code, exc.status)
    if isinstance(exc, PipelineError):
        return exc.kind
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_error(str(exc), exc.response.status_code)
    return classify_error(str(exc))


def user_message(kind: ErrorKind, model: str | None = None) -> str:
    """Short caller-facing message for a kind, without backend internals."""
    if kind == ErrorKind.MODEL_UNAVAILABLE and model:
        return (
            f"The model '{model}' is not available for this key or region. "
            "Try another model."
        )
    return _USER_MESSAGES[kind]
