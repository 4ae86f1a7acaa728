"""Process-wide counters for routing events."""

from __future__ import annotations

import threading


class _Counter:
    """A monotonically increasing counter safe to bump from any thread."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> None:
        with self._lock:
            self._value += 1

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


_loop_detected = _Counter()
_cache_select = _Counter()
_cache_clear = _Counter()


def inc_loop_detected() -> None:
    """Record that a routing loop was detected."""
    _loop_detected.increment()


def loop_detected_count() -> int:
    """Number of routing loops detected so far."""
    return _loop_detected.value


def inc_cache_select() -> None:
    """Record that a cached upstream route was selected."""
    _cache_select.increment()


def cache_select_count() -> int:
    """Number of cached route selections so far."""
    return _cache_select.value


def inc_cache_clear() -> None:
    """Record that the route cache was cleared."""
    _cache_clear.increment()


def cache_clear_count() -> int:
    """Number of route cache clears so far."""
    return _cache_clear.value