"""Tests for the model fallback executor."""

from unittest.mock import patch

import pytest

from conftest import FakeBackend

from audio_transcriber.backend.interface import FileState
from audio_transcriber.generation.fallback import GenerationOutcome, run_fallback
from audio_transcriber.utils.errors import (
    AllCandidatesFailedError,
    BackendError,
    ErrorKind,
    QuotaExceededError,
    TransientBackendError,
)
from audio_transcriber.utils.quota import QuotaGate

CANDIDATES = ("model-a", "model-b", "model-c")


def _not_found(model: str) -> BackendError:
    return BackendError(f"models/{model} is not found", status_code=404, status="NOT_FOUND")


def _quota() -> BackendError:
    return BackendError(
        "Resource has been exhausted", status_code=429, status="RESOURCE_EXHAUSTED"
    )


class TestRunFallback:
    """Tests for ordered, sequential candidate attempts."""

    @pytest.mark.asyncio
    async def test_first_candidate_succeeds(self, ready_handle) -> None:
        backend = FakeBackend(outcomes={"model-a": "Hello world."})
        outcome = await run_fallback(
            backend, ready_handle, "Transcribe.", CANDIDATES, candidate_delay=0
        )

        assert isinstance(outcome, GenerationOutcome)
        assert outcome.model == "model-a"
        assert outcome.text == "Hello world."
        assert backend.generate_calls == ["model-a"]
        assert len(outcome.attempts) == 1
        assert outcome.attempts[0].succeeded

    @pytest.mark.asyncio
    async def test_falls_back_after_model_unavailable(self, ready_handle) -> None:
        backend = FakeBackend(
            outcomes={"model-a": _not_found("model-a"), "model-b": "Hello world."}
        )
        outcome = await run_fallback(
            backend, ready_handle, "Transcribe.", CANDIDATES, candidate_delay=0
        )

        assert outcome.model == "model-b"
        assert outcome.text == "Hello world."
        assert backend.generate_calls == ["model-a", "model-b"]
        assert outcome.attempts[0].error_kind is ErrorKind.MODEL_UNAVAILABLE
        assert outcome.attempts[1].succeeded

    @pytest.mark.asyncio
    async def test_quota_aborts_remaining_candidates(self, ready_handle) -> None:
        backend = FakeBackend(outcomes={"model-a": _quota(), "model-b": "never used"})
        with pytest.raises(QuotaExceededError) as exc_info:
            await run_fallback(
                backend, ready_handle, "Transcribe.", CANDIDATES, candidate_delay=0
            )

        assert backend.generate_calls == ["model-a"]
        exc = exc_info.value
        assert exc.model == "model-a"
        assert [a.error_kind for a in exc.attempts] == [ErrorKind.QUOTA_EXCEEDED]

    @pytest.mark.asyncio
    async def test_quota_after_other_failure_still_aborts(self, ready_handle) -> None:
        backend = FakeBackend(
            outcomes={"model-a": _not_found("model-a"), "model-b": _quota(), "model-c": "ok"}
        )
        with pytest.raises(QuotaExceededError) as exc_info:
            await run_fallback(
                backend, ready_handle, "Transcribe.", CANDIDATES, candidate_delay=0
            )

        assert backend.generate_calls == ["model-a", "model-b"]
        assert len(exc_info.value.attempts) == 2

    @pytest.mark.asyncio
    async def test_all_candidates_fail(self, ready_handle) -> None:
        backend = FakeBackend(
            outcomes={
                "model-a": _not_found("model-a"),
                "model-b": TransientBackendError("Internal error", status_code=500),
                "model-c": BackendError("Unsupported MIME type", status_code=400),
            }
        )
        with pytest.raises(AllCandidatesFailedError) as exc_info:
            await run_fallback(
                backend, ready_handle, "Transcribe.", CANDIDATES, candidate_delay=0
            )

        assert backend.generate_calls == list(CANDIDATES)
        kinds = [a.error_kind for a in exc_info.value.attempts]
        assert kinds == [
            ErrorKind.MODEL_UNAVAILABLE,
            ErrorKind.TRANSIENT,
            ErrorKind.INVALID_INPUT,
        ]

    @pytest.mark.asyncio
    async def test_empty_text_moves_to_next_candidate(self, ready_handle) -> None:
        backend = FakeBackend(outcomes={"model-a": "", "model-b": "Hello."})
        outcome = await run_fallback(
            backend, ready_handle, "Transcribe.", CANDIDATES, candidate_delay=0
        )

        assert outcome.model == "model-b"
        assert outcome.attempts[0].error_kind is ErrorKind.TRANSIENT
        assert outcome.attempts[0].error == "Empty response text"

    @pytest.mark.asyncio
    async def test_instruction_passed_to_backend(self, ready_handle) -> None:
        seen: list[str] = []

        class RecordingBackend(FakeBackend):
            async def generate(self, model, handle, instruction):
                seen.append(instruction)
                return "text"

        await run_fallback(RecordingBackend(), ready_handle, "Roman only.", ["m"], candidate_delay=0)
        assert seen == ["Roman only."]


class TestFallbackPreconditions:
    """Tests for argument validation."""

    @pytest.mark.asyncio
    async def test_empty_candidates_rejected(self, ready_handle) -> None:
        with pytest.raises(ValueError, match="At least one"):
            await run_fallback(FakeBackend(), ready_handle, "x", [])

    @pytest.mark.asyncio
    async def test_handle_must_be_ready(self, ready_handle) -> None:
        handle = ready_handle.__class__(
            id=ready_handle.id,
            uri=ready_handle.uri,
            media_type=ready_handle.media_type,
            state=FileState.PROCESSING,
        )
        backend = FakeBackend(outcomes={"model-a": "text"})
        with pytest.raises(ValueError, match="not ready"):
            await run_fallback(backend, handle, "x", CANDIDATES)
        assert backend.generate_calls == []


class TestCandidateDelay:
    """Tests for the pause between failed attempts."""

    @pytest.mark.asyncio
    async def test_delay_between_attempts_only(self, ready_handle) -> None:
        backend = FakeBackend(outcomes={})
        with patch("audio_transcriber.generation.fallback.asyncio.sleep") as mock_sleep:
            with pytest.raises(AllCandidatesFailedError):
                await run_fallback(
                    backend, ready_handle, "x", CANDIDATES, candidate_delay=1.0
                )

        # no pause after the final candidate
        assert [call.args[0] for call in mock_sleep.call_args_list] == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_no_delay_after_success(self, ready_handle) -> None:
        backend = FakeBackend(outcomes={"model-a": "text"})
        with patch("audio_transcriber.generation.fallback.asyncio.sleep") as mock_sleep:
            await run_fallback(backend, ready_handle, "x", CANDIDATES, candidate_delay=1.0)
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_zero_delay_skips_sleep(self, ready_handle) -> None:
        backend = FakeBackend(outcomes={})
        with patch("audio_transcriber.generation.fallback.asyncio.sleep") as mock_sleep:
            with pytest.raises(AllCandidatesFailedError):
                await run_fallback(backend, ready_handle, "x", CANDIDATES, candidate_delay=0)
        mock_sleep.assert_not_called()


class TestQuotaGateInteraction:
    """Tests for the shared quota gate."""

    @pytest.mark.asyncio
    async def test_quota_failure_trips_gate(self, ready_handle) -> None:
        gate = QuotaGate(cooldown_seconds=60)
        backend = FakeBackend(outcomes={"model-a": _quota()})
        with pytest.raises(QuotaExceededError):
            await run_fallback(
                backend, ready_handle, "x", CANDIDATES, quota_gate=gate, candidate_delay=0
            )
        assert gate.is_open

    @pytest.mark.asyncio
    async def test_open_gate_blocks_generation(self, ready_handle) -> None:
        gate = QuotaGate(cooldown_seconds=60)
        gate.trip()
        backend = FakeBackend(outcomes={"model-a": "text"})
        with pytest.raises(QuotaExceededError, match="cooldown"):
            await run_fallback(
                backend, ready_handle, "x", CANDIDATES, quota_gate=gate, candidate_delay=0
            )
        assert backend.generate_calls == []

    @pytest.mark.asyncio
    async def test_other_failures_leave_gate_closed(self, ready_handle) -> None:
        gate = QuotaGate(cooldown_seconds=60)
        backend = FakeBackend(outcomes={"model-a": _not_found("model-a"), "model-b": "ok"})
        await run_fallback(
            backend, ready_handle, "x", CANDIDATES, quota_gate=gate, candidate_delay=0
        )
        assert not gate.is_open

    @pytest.mark.asyncio
    async def test_gate_opened_elsewhere_keeps_attempts(self, ready_handle) -> None:
        gate = QuotaGate(cooldown_seconds=60)

        class ConcurrentTripBackend(FakeBackend):
            async def generate(self, model, handle, instruction):
                self.generate_calls.append(model)
                gate.trip()
                raise _not_found(model)

        backend = ConcurrentTripBackend()
        with pytest.raises(QuotaExceededError) as exc_info:
            await run_fallback(
                backend, ready_handle, "x", CANDIDATES, quota_gate=gate, candidate_delay=0
            )

        assert backend.generate_calls == ["model-a"]
        attempts = exc_info.value.attempts
        assert [a.model for a in attempts] == ["model-a"]
        assert attempts[0].error_kind is ErrorKind.MODEL_UNAVAILABLE
