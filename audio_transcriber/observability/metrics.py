"""Per-run transcription metrics.

Provides the RunMetrics dataclass, the StageTimer context manager for
measuring pipeline stage durations, and log_run_metrics() for emitting one
structured JSON line per pipeline run to stdout.
"""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass
class RunMetrics:
    """Everything measured for a single transcription run."""

    request_id: str
    status: str
    model: str | None = None
    error_kind: str | None = None
    media_type: str = ""
    media_size_bytes: int = 0
    upload_duration_seconds: float = 0.0
    poll_duration_seconds: float = 0.0
    generate_duration_seconds: float = 0.0
    wall_time_seconds: float = 0.0
    models_attempted: list[str] = field(default_factory=list)
    models_failed: list[str] = field(default_factory=list)
    upload_retry_count: int = 0
    remote_deleted: bool = False


class StageTimer:
    """Context manager that records the wall-clock duration of a stage.

    The duration is stored in ``timings[stage_name]`` on success, or under
    ``_{stage_name}_failed`` when the block raised.

    Usage:
        timings = {}
        with StageTimer("upload", timings):
            await upload()
    """

    def __init__(self, stage_name: str, timings: dict[str, float]) -> None:
        self.stage_name = stage_name
        self._timings = timings
        self.start_time: datetime | None = None
        self.duration_seconds: float = 0.0
        self._mono_start: float = 0.0

    def __enter__(self) -> StageTimer:
        self.start_time = datetime.now(UTC)
        self._mono_start = time.monotonic()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.duration_seconds = time.monotonic() - self._mono_start
        if exc_type is not None:
            self._timings[f"_{self.stage_name}_failed"] = self.duration_seconds
        else:
            self._timings[self.stage_name] = self.duration_seconds


def stage_duration(timings: dict[str, float], stage_name: str) -> float:
    """Duration of a stage whether it completed or failed (0.0 if not run)."""
    return timings.get(stage_name, timings.get(f"_{stage_name}_failed", 0.0))


def log_run_metrics(metrics: RunMetrics) -> None:
    """Emit run metrics as a single structured JSON line to stdout.

    Args:
        metrics: Populated RunMetrics dataclass.
    """
    entry = {
        "timestamp": datetime.now(UTC).isoformat(),
        "severity": "INFO",
        "metric_type": "transcription_run",
        **asdict(metrics),
    }
    print(json.dumps(entry))
