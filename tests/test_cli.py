"""Tests for the command-line entry point."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import FakeBackend

from audio_transcriber.cli import cli
from audio_transcriber.utils.errors import BackendError


@pytest.fixture
def cli_env(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("TRANSCRIBER_CANDIDATE_DELAY", "0")
    monkeypatch.setenv("TRANSCRIBER_POLL_INTERVAL", "0.01")
    monkeypatch.delenv("TRANSCRIBER_MODELS", raising=False)
    monkeypatch.delenv("TRANSCRIBER_PRESET", raising=False)
    return monkeypatch


class TestCli:
    """Tests for `audio-transcriber INPUT OUTPUT`."""

    def test_success_writes_output_and_keeps_input(self, cli_env, audio_file, tmp_path) -> None:
        output = tmp_path / "transcript.txt"
        backend = FakeBackend(outcomes={"gemini-2.5-flash": "Hari bol."})

        with patch("audio_transcriber.pipeline.get_backend", return_value=backend):
            result = CliRunner().invoke(
                cli, [audio_file, str(output), "--preset", "roman", "--log-level", "ERROR"]
            )

        assert result.exit_code == 0, result.output
        assert "Success using [gemini-2.5-flash]!" in result.output
        assert output.read_text(encoding="utf-8") == "Hari bol."
        assert tmp_path.joinpath("recording.mp3").exists()
        assert backend.closed
        assert backend.uploads[0]["data"] == b"ID3fake-mp3-bytes"
        assert backend.uploads[0]["media_type"] == "audio/mpeg"

    def test_model_option_builds_candidate_list(self, cli_env, audio_file, tmp_path) -> None:
        backend = FakeBackend(
            outcomes={"m1": BackendError("not found", status_code=404), "m2": "text"}
        )
        with patch("audio_transcriber.pipeline.get_backend", return_value=backend):
            result = CliRunner().invoke(
                cli,
                [audio_file, str(tmp_path / "out.txt"), "--model", "m1", "--model", "m2",
                 "--log-level", "ERROR"],
            )

        assert result.exit_code == 0, result.output
        assert backend.generate_calls == ["m1", "m2"]
        assert "Success using [m2]!" in result.output

    def test_failed_run_exits_1(self, cli_env, audio_file, tmp_path) -> None:
        output = tmp_path / "out.txt"
        backend = FakeBackend(outcomes={})
        with patch("audio_transcriber.pipeline.get_backend", return_value=backend):
            result = CliRunner().invoke(
                cli, [audio_file, str(output), "--model", "m1", "--log-level", "ERROR"]
            )

        assert result.exit_code == 1
        assert "Fatal error" in result.output
        assert not output.exists()
        assert tmp_path.joinpath("recording.mp3").exists()

    def test_missing_api_key_exits_1(self, cli_env, audio_file, tmp_path) -> None:
        cli_env.delenv("GEMINI_API_KEY")
        result = CliRunner().invoke(cli, [audio_file, str(tmp_path / "out.txt")])

        assert result.exit_code == 1
        assert "GEMINI_API_KEY" in result.output

    def test_missing_input_exits_1(self, cli_env, tmp_path) -> None:
        result = CliRunner().invoke(
            cli, [str(tmp_path / "nope.mp3"), str(tmp_path / "out.txt")]
        )

        assert result.exit_code == 1
        assert "was not found" in result.output

    def test_unknown_preset_rejected(self, cli_env, audio_file, tmp_path) -> None:
        result = CliRunner().invoke(
            cli, [audio_file, str(tmp_path / "out.txt"), "--preset", "haiku"]
        )
        assert result.exit_code == 2

    def test_bad_env_number_exits_1(self, cli_env, audio_file, tmp_path) -> None:
        cli_env.setenv("TRANSCRIBER_MAX_WAIT", "soon")
        result = CliRunner().invoke(cli, [audio_file, str(tmp_path / "out.txt")])

        assert result.exit_code == 1
        assert "TRANSCRIBER_MAX_WAIT" in result.output

    def test_copy_failure_exits_1_without_backend(self, cli_env, audio_file, tmp_path) -> None:
        with patch(
            "audio_transcriber.cli._working_copy", side_effect=OSError("disk full")
        ), patch("audio_transcriber.pipeline.get_backend") as mock_get_backend:
            result = CliRunner().invoke(
                cli, [audio_file, str(tmp_path / "out.txt"), "--log-level", "ERROR"]
            )

        assert result.exit_code == 1
        assert "disk full" in result.output
        mock_get_backend.assert_not_called()
