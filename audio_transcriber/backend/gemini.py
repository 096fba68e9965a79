"""Gemini backend client implementation.

Implements GeminiBackend against the Gemini REST API (v1beta): resumable
uploads through the Files API, file state lookups, generateContent with a
file_data part, and file deletion.
"""

import logging
from typing import Any

import httpx

from audio_transcriber.backend.interface import FileState, MediaBackend, RemoteHandle
from audio_transcriber.utils.errors import BackendError, TransientBackendError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
API_VERSION = "v1beta"
DEFAULT_REQUEST_TIMEOUT = 300.0

# Files API states; STATE_UNSPECIFIED is reported before processing starts
_STATE_MAP = {
    "STATE_UNSPECIFIED": FileState.PROCESSING,
    "PROCESSING": FileState.PROCESSING,
    "ACTIVE": FileState.READY,
    "FAILED": FileState.FAILED,
}


class GeminiBackend(MediaBackend):
    """Gemini Files API + generateContent backend.

    Args:
        api_key: Gemini API key, sent as the x-goog-api-key header.
        base_url: API host (default production endpoint).
        timeout: Per-request timeout in seconds.
        client: Optional preconfigured httpx.AsyncClient (used by tests).
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "GeminiBackend":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def _headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self._api_key}

    async def upload(
        self, path: str, media_type: str, display_name: str
    ) -> RemoteHandle:
        """Upload a file with the two-step resumable protocol.

        Raises:
            BackendError: If either step fails.
        """
        try:
            with open(path, "rb") as media_file:
                data = media_file.read()
        except OSError as exc:
            raise BackendError(f"Cannot read {path}: {exc}") from exc

        start_headers = {
            **self._headers,
            "X-Goog-Upload-Protocol": "resumable",
            "X-Goog-Upload-Command": "start",
            "X-Goog-Upload-Header-Content-Length": str(len(data)),
            "X-Goog-Upload-Header-Content-Type": media_type,
        }
        response = await self._request(
            "POST",
            f"{self._base_url}/upload/{API_VERSION}/files",
            headers=start_headers,
            json={"file": {"display_name": display_name}},
        )
        upload_url = response.headers.get("x-goog-upload-url")
        if not upload_url:
            raise BackendError(
                "No upload URL in resumable upload response",
                status_code=response.status_code,
            )

        finalize_headers = {
            "Content-Length": str(len(data)),
            "X-Goog-Upload-Offset": "0",
            "X-Goog-Upload-Command": "upload, finalize",
        }
        response = await self._request(
            "POST", upload_url, headers=finalize_headers, content=data
        )
        body = response.json().get("file", {})
        handle = self._to_handle(body, media_type)
        logger.info(
            "Uploaded %s as %s (%d bytes, state=%s)",
            display_name,
            handle.id,
            len(data),
            handle.state.value,
        )
        return handle

    async def get_status(self, handle_id: str) -> FileState:
        response = await self._request(
            "GET", f"{self._base_url}/{API_VERSION}/{handle_id}", headers=self._headers
        )
        return _parse_state(response.json().get("state"))

    async def generate(
        self, model: str, handle: RemoteHandle, instruction: str
    ) -> str:
        """Call models/{model}:generateContent with the file and instruction.

        Returns:
            Concatenated text of the first candidate's parts, stripped.

        Raises:
            BackendError: On an error response or a blocked prompt.
        """
        model_id = model.removeprefix("models/")
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {
                            "file_data": {
                                "mime_type": handle.media_type,
                                "file_uri": handle.uri,
                            }
                        },
                        {"text": instruction},
                    ],
                }
            ]
        }
        response = await self._request(
            "POST",
            f"{self._base_url}/{API_VERSION}/models/{model_id}:generateContent",
            headers=self._headers,
            json=payload,
        )
        return _extract_text(response.json())

    async def delete(self, handle_id: str) -> None:
        await self._request(
            "DELETE", f"{self._base_url}/{API_VERSION}/{handle_id}", headers=self._headers
        )
        logger.info("Deleted remote file %s", handle_id)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request and translate failures into BackendError.

        Raises:
            TransientBackendError: On transport errors and 5xx responses.
            BackendError: On any other non-2xx response.
        """
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise TransientBackendError(
                f"{method} request failed: {exc}"
            ) from exc

        if response.is_success:
            return response

        message, status = _parse_error_body(response)
        error_cls = TransientBackendError if response.status_code >= 500 else BackendError
        raise error_cls(message, status_code=response.status_code, status=status)

    def _to_handle(self, body: dict, requested_media_type: str) -> RemoteHandle:
        name = body.get("name")
        if not name:
            raise BackendError("No file name in upload response")
        return RemoteHandle(
            id=name,
            uri=body.get("uri", ""),
            media_type=body.get("mimeType") or requested_media_type,
            state=_parse_state(body.get("state")),
        )


def _parse_state(raw: str | None) -> FileState:
    return _STATE_MAP.get(raw or "STATE_UNSPECIFIED", FileState.PROCESSING)


def _parse_error_body(response: httpx.Response) -> tuple[str, str | None]:
    """Pull (message, status) out of a Google API error body."""
    try:
        error = response.json().get("error", {})
    except ValueError:
        return response.text or f"HTTP {response.status_code}", None
    message = error.get("message") or response.text or f"HTTP {response.status_code}"
    return message, error.get("status")


def _extract_text(body: dict) -> str:
    candidates = body.get("candidates") or []
    if not candidates:
        block_reason = body.get("promptFeedback", {}).get("blockReason")
        if block_reason:
            raise BackendError(f"Prompt blocked: {block_reason}")
        return ""
    parts = candidates[0].get("content", {}).get("parts", [])
    return "".join(part.get("text", "") for part in parts).strip()
