"""Bounded retry for timed-out function calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from .errors import ParticleTimeout
from .protocol import EndpointKind

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Result of an operation run under the policy."""

    value: T
    attempts: int


class RetryPolicy:
    """Retry function calls that hit a read timeout.

    Variable reads are never retried, and no other failure class is retried.
    The delay between attempts suspends only the calling worker.
    """

    def __init__(
        self,
        retries: int = 1,
        delay: float = 0.75,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.retries = retries
        self.delay = delay
        self._sleep = sleep

    def should_retry(self, kind: EndpointKind, error: Exception, attempt: int) -> bool:
        """Decide whether a failed attempt (0-based) is followed by another."""
        return (
            kind is EndpointKind.FUNCTION
            and isinstance(error, ParticleTimeout)
            and attempt < self.retries
        )

    async def run(
        self,
        kind: EndpointKind,
        operation: Callable[[], Awaitable[T]],
        *,
        label: str = "",
    ) -> RetryOutcome[T]:
        """Await operation, retrying per policy.

        Raises:
            Exception: The last failure when no retry applies.
        """
        attempt = 0
        while True:
            try:
                value = await operation()
            except Exception as err:
                if not self.should_retry(kind, err, attempt):
                    raise
                attempt += 1
                _LOGGER.info(
                    "[%s] Retrying after timeout (attempt %d of %d)",
                    label,
                    attempt,
                    self.retries,
                )
                await self._sleep(self.delay)
                continue
            return RetryOutcome(value=value, attempts=attempt + 1)
