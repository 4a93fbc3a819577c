from __future__ import annotations

"""Fixed-window counters for throttling sign-in attempts.

Counters live in process memory, so limits are per worker. Set
AIDEE_RATE_LIMIT_DISABLED=1 to switch throttling off; it is also off while
pytest is running.
"""

from dataclasses import dataclass
from threading import Lock
from typing import Dict, Tuple
import os
import time


@dataclass
class _Window:
    hits: int
    resets_at: float


_windows: Dict[Tuple[str, str], _Window] = {}
_lock = Lock()


class RateLimitExceeded(Exception):
    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__(f"Rate limit exceeded; retry in {retry_after_seconds}s")
        self.retry_after_seconds = retry_after_seconds


def rate_limit_action(
    key: str,
    identifier: str,
    *,
    limit_env: str,
    window_env: str,
    default_limit: int,
    default_window_seconds: int,
) -> None:
    """Count one ``key`` action for ``identifier``; raise RateLimitExceeded once over the limit."""
    if _rate_limiting_disabled():
        return
    limit = _positive_int_env(limit_env, default_limit)
    window = _positive_int_env(window_env, default_window_seconds)
    now = time.monotonic()
    with _lock:
        current = _windows.get((key, identifier))
        if current is None or current.resets_at <= now:
            _windows[(key, identifier)] = _Window(hits=1, resets_at=now + window)
            return
        if current.hits >= limit:
            raise RateLimitExceeded(max(int(current.resets_at - now), 1))
        current.hits += 1


def _positive_int_env(name: str, default: int) -> int:
    try:
        value = int(os.getenv(name, ""))
    except ValueError:
        return default
    return value if value > 0 else default


def _rate_limiting_disabled() -> bool:
    flag = (os.getenv("AIDEE_RATE_LIMIT_DISABLED") or "").strip().lower()
    return flag in ("1", "true", "yes", "on") or bool(os.getenv("PYTEST_CURRENT_TEST"))


def reset_rate_limits() -> None:
    with _lock:
        _windows.clear()
