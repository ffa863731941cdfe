"""Per-endpoint rate limiting for Particle Cloud calls.

Evaluation is lazy: entries carry the time of the last allowed call and are
compared on the next check. There are no timers and nothing expires. The
cache has fixed capacity; once it is full, endpoints that are not tracked
yet are always allowed, so limiting is best effort past that point.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from .protocol import EndpointKind

_LOGGER = logging.getLogger(__name__)


def endpoint_key(kind: EndpointKind, name: str) -> str:
    """Composite throttle key for an endpoint."""
    return f"{kind.value}:{name}"


class RateLimiter:
    """Minimum-interval enforcement per (kind, name) endpoint."""

    def __init__(
        self,
        window: float,
        capacity: int,
        *,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window
        self._capacity = capacity
        self._enabled = enabled
        self._clock = clock
        self._last_calls: dict[str, float] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return len(self._last_calls)

    def last_call(self, kind: EndpointKind, name: str) -> float | None:
        """Time of the last allowed call, or None when untracked."""
        return self._last_calls.get(endpoint_key(kind, name))

    def check(self, kind: EndpointKind, name: str) -> bool:
        """Return True when a call to the endpoint may proceed now."""
        if not self._enabled:
            return True

        key = endpoint_key(kind, name)
        now = self._clock()

        last = self._last_calls.get(key)
        if last is not None:
            elapsed = now - last
            if elapsed < self._window:
                _LOGGER.warning(
                    "[%s] Throttle active (called %.1fs ago, minimum %.1fs)",
                    key,
                    elapsed,
                    self._window,
                )
                return False
            self._last_calls[key] = now
            return True

        if len(self._last_calls) < self._capacity:
            self._last_calls[key] = now
        else:
            _LOGGER.warning(
                "[%s] Throttle cache full (%d/%d endpoints); endpoint will NOT be "
                "throttled. Consider increasing throttle_cache_size",
                key,
                len(self._last_calls),
                self._capacity,
            )
        return True
