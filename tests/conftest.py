"""Shared fixtures: a scripted in-memory backend and local media files."""

from __future__ import annotations

import logging

import pytest

from audio_transcriber.backend.interface import FileState, MediaBackend, RemoteHandle
from audio_transcriber.media.asset import MediaAsset
from audio_transcriber.utils.quota import clear_quota_gates


class FakeBackend(MediaBackend):
    """MediaBackend double driven by scripted outcomes.

    Args:
        initial_state: State reported by upload().
        statuses: States (or exceptions) returned by successive
            get_status() calls; the last entry repeats.
        outcomes: Per-model generate() result, a string or an exception.
        upload_error: Exception raised by upload(), if any.
        delete_error: Exception raised by delete(), if any.
    """

    name = "fake"

    def __init__(
        self,
        initial_state: FileState = FileState.READY,
        statuses: list | None = None,
        outcomes: dict | None = None,
        upload_error: Exception | None = None,
        delete_error: Exception | None = None,
    ) -> None:
        self.initial_state = initial_state
        self.statuses = list(statuses or [])
        self.outcomes = outcomes or {}
        self.upload_error = upload_error
        self.delete_error = delete_error
        self.uploads: list[dict] = []
        self.status_calls = 0
        self.generate_calls: list[str] = []
        self.deleted: list[str] = []
        self.closed = False

    async def upload(self, path: str, media_type: str, display_name: str) -> RemoteHandle:
        with open(path, "rb") as f:
            data = f.read()
        self.uploads.append(
            {"path": path, "media_type": media_type, "display_name": display_name, "data": data}
        )
        if self.upload_error is not None:
            raise self.upload_error
        return RemoteHandle(
            id="files/abc123",
            uri="https://backend.test/v1beta/files/abc123",
            media_type=media_type,
            state=self.initial_state,
        )

    async def get_status(self, handle_id: str) -> FileState:
        self.status_calls += 1
        if not self.statuses:
            return FileState.READY
        item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def generate(self, model: str, handle: RemoteHandle, instruction: str) -> str:
        self.generate_calls.append(model)
        outcome = self.outcomes.get(model, "")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def delete(self, handle_id: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(handle_id)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _reset_quota_gates():
    """Quota gates are process-wide; isolate each test."""
    clear_quota_gates()
    yield
    clear_quota_gates()


@pytest.fixture
def audio_file(tmp_path) -> str:
    """A small local audio file that exists on disk."""
    path = tmp_path / "recording.mp3"
    path.write_bytes(b"ID3fake-mp3-bytes")
    return str(path)


@pytest.fixture
def asset(audio_file) -> MediaAsset:
    return MediaAsset(path=audio_file, media_type="audio/mp3", filename="recording.mp3")


@pytest.fixture
def ready_handle() -> RemoteHandle:
    return RemoteHandle(
        id="files/abc123",
        uri="https://backend.test/v1beta/files/abc123",
        media_type="audio/mp3",
        state=FileState.READY,
    )


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """setup_logging() replaces root handlers; undo it after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
