"""Abstract media backend interface.

Defines the backend ABC and the remote handle data model. Concrete
implementations (e.g., Gemini) subclass MediaBackend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum


class FileState(str, Enum):
    """Processing state of an uploaded media file on the backend."""

    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not FileState.PROCESSING


@dataclass(frozen=True)
class RemoteHandle:
    """Backend-assigned reference to an uploaded media object."""

    id: str
    uri: str
    media_type: str
    state: FileState

    def advance(self, state: FileState) -> RemoteHandle:
        """Return a copy in the new state.

        Raises:
            ValueError: If the handle is already terminal and the new
                state differs (states never regress or change once final).
        """
        if self.state.is_terminal and state is not self.state:
            raise ValueError(
                f"Handle {self.id} is {self.state.value}; cannot move to {state.value}"
            )
        return replace(self, state=state)


class MediaBackend(ABC):
    """Abstract base class for remote transcription backends.

    Subclasses implement upload, status lookup, generation and deletion.
    Failures are raised as BackendError (TransientBackendError for
    transport errors and 5xx responses).
    """

    name: str = "backend"

    @abstractmethod
    async def upload(
        self, path: str, media_type: str, display_name: str
    ) -> RemoteHandle:
        """Upload a local file and return its handle.

        The file is fully read before this coroutine returns.
        """

    @abstractmethod
    async def get_status(self, handle_id: str) -> FileState:
        """Return the current processing state of an uploaded file."""

    @abstractmethod
    async def generate(
        self, model: str, handle: RemoteHandle, instruction: str
    ) -> str:
        """Run content generation with one model against an uploaded file.

        Returns:
            The generated text (may be empty if the model returned none).
        """

    @abstractmethod
    async def delete(self, handle_id: str) -> None:
        """Delete an uploaded file from the backend."""

    async def aclose(self) -> None:
        """Release network resources held by the backend."""
