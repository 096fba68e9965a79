"""Service settings and per-run pipeline configuration.

Settings are read once from the environment (a .env file is loaded by the
entry points) and are read-only afterwards. Settings.pipeline_config()
builds the immutable PipelineConfig that parameterizes a single run:
instruction text, candidate list, timing and cleanup policies, sink.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass

from audio_transcriber.backend.gemini import DEFAULT_BASE_URL
from audio_transcriber.generation.prompts import DEFAULT_PRESET, get_preset
from audio_transcriber.sinks import TranscriptSink
from audio_transcriber.utils.errors import ConfigurationError


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'") from exc


def parse_model_list(raw: str | Sequence[str] | None) -> tuple[str, ...]:
    """Split a comma-separated model list, dropping blanks and duplicates."""
    if raw is None:
        return ()
    items = raw.split(",") if isinstance(raw, str) else raw
    models: list[str] = []
    for item in items:
        model = item.strip()
        if model and model not in models:
            models.append(model)
    return tuple(models)


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable parameters for one pipeline run."""

    instruction: str
    candidates: tuple[str, ...]
    poll_interval: float = 2.0
    max_wait: float = 600.0
    candidate_delay: float = 1.0
    upload_retries: int = 0
    delete_remote: bool = False
    display_name: str = "Audio Transcription"
    sink: TranscriptSink | None = None

    def __post_init__(self) -> None:
        if not self.candidates:
            raise ConfigurationError("At least one model candidate is required")
        if not self.instruction.strip():
            raise ConfigurationError("Instruction text must not be empty")
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive")
        if self.max_wait <= 0:
            raise ConfigurationError("max_wait must be positive")
        if self.upload_retries < 0:
            raise ConfigurationError("upload_retries must not be negative")


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, loaded from the environment."""

    api_key: str = ""
    backend: str = "gemini"
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 300.0
    preset: str = DEFAULT_PRESET
    models: tuple[str, ...] = ()
    poll_interval: float = 2.0
    max_wait: float = 600.0
    candidate_delay: float = 1.0
    upload_retries: int = 0
    delete_remote: bool = False
    quota_cooldown: float = 60.0
    upload_dir: str = "uploads"
    port: int = 3000
    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> Settings:
        """Read settings from environment variables.

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed.
        """
        return cls(
            api_key=os.environ.get("GEMINI_API_KEY", ""),
            backend=os.environ.get("TRANSCRIBER_BACKEND", "gemini"),
            base_url=os.environ.get("GEMINI_BASE_URL", DEFAULT_BASE_URL),
            request_timeout=_env_float("GEMINI_REQUEST_TIMEOUT", 300.0),
            preset=os.environ.get("TRANSCRIBER_PRESET", DEFAULT_PRESET),
            models=parse_model_list(os.environ.get("TRANSCRIBER_MODELS")),
            poll_interval=_env_float("TRANSCRIBER_POLL_INTERVAL", 2.0),
            max_wait=_env_float("TRANSCRIBER_MAX_WAIT", 600.0),
            candidate_delay=_env_float("TRANSCRIBER_CANDIDATE_DELAY", 1.0),
            upload_retries=int(_env_float("TRANSCRIBER_UPLOAD_RETRIES", 0)),
            delete_remote=_env_bool("TRANSCRIBER_DELETE_REMOTE", False),
            quota_cooldown=_env_float("TRANSCRIBER_QUOTA_COOLDOWN", 60.0),
            upload_dir=os.environ.get("UPLOAD_DIR", "uploads"),
            port=int(_env_float("PORT", 3000)),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            log_format=os.environ.get("LOG_FORMAT", "json").lower(),
        )

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY environment variable is not set")
        return self.api_key

    def backend_kwargs(self) -> dict[str, object]:
        return {
            "api_key": self.require_api_key(),
            "base_url": self.base_url,
            "timeout": self.request_timeout,
        }

    def pipeline_config(
        self,
        models: str | Sequence[str] | None = None,
        preset: str | None = None,
        sink: TranscriptSink | None = None,
    ) -> PipelineConfig:
        """Build the config for one run.

        Candidate precedence: explicit ``models`` override, then the
        TRANSCRIBER_MODELS setting, then the preset's own candidates.

        Raises:
            ConfigurationError: If the preset is unknown.
        """
        chosen = get_preset(preset or self.preset)
        candidates = parse_model_list(models) or self.models or chosen.candidates
        return PipelineConfig(
            instruction=chosen.instruction,
            candidates=candidates,
            poll_interval=self.poll_interval,
            max_wait=self.max_wait,
            candidate_delay=self.candidate_delay,
            upload_retries=self.upload_retries,
            delete_remote=self.delete_remote,
            sink=sink,
        )
