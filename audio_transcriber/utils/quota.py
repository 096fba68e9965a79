"""Process-wide quota gate shared by concurrent pipeline runs.

A quota limit is a property of the credential, not of one request. When
any run observes QUOTA_EXCEEDED it trips the gate for that credential;
until the cooldown elapses, other runs fail fast instead of spending more
requests against the same lockout.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections.abc import Callable

from audio_transcriber.utils.errors import QuotaExceededError

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 60.0


class QuotaGate:
    """Circuit breaker that opens for a cooldown period after a quota hit.

    Args:
        cooldown_seconds: How long the gate stays open after trip().
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._open_until = 0.0
        self._lock = threading.Lock()

    @property
    def remaining_seconds(self) -> float:
        """Seconds until the gate closes again (0.0 when closed)."""
        with self._lock:
            return max(0.0, self._open_until - self._clock())

    @property
    def is_open(self) -> bool:
        return self.remaining_seconds > 0.0

    def trip(self) -> None:
        """Open the gate for cooldown_seconds from now."""
        with self._lock:
            until = self._clock() + self.cooldown_seconds
            # Never shorten an existing cooldown
            self._open_until = max(self._open_until, until)
        logger.warning(
            "Quota gate tripped for %.0fs", self.cooldown_seconds
        )

    def reset(self) -> None:
        with self._lock:
            self._open_until = 0.0

    def check(self, request_id: str | None = None, model: str | None = None) -> None:
        """Raise QuotaExceededError while the gate is open.

        Raises:
            QuotaExceededError: If a quota limit was seen within the cooldown.
        """
        remaining = self.remaining_seconds
        if remaining > 0.0:
            raise QuotaExceededError(
                f"Quota cooldown active for another {remaining:.0f}s",
                request_id=request_id,
                model=model,
            )


_GATES: dict[str, QuotaGate] = {}
_GATES_LOCK = threading.Lock()


def _credential_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def get_quota_gate(
    api_key: str, cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS
) -> QuotaGate:
    """Return the shared gate for a credential, creating it on first use.

    Gates are keyed by a hash of the credential so the raw key is never
    held as a dict key. The cooldown of an existing gate is not changed.
    """
    key = _credential_key(api_key)
    with _GATES_LOCK:
        gate = _GATES.get(key)
        if gate is None:
            gate = QuotaGate(cooldown_seconds=cooldown_seconds)
            _GATES[key] = gate
        return gate


def clear_quota_gates() -> None:
    """Forget every shared gate (used by tests and on reload)."""
    with _GATES_LOCK:
        _GATES.clear()
