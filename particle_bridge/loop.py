"""Single-threaded cooperative control loop driver."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .sync import StateSynchronizer

_LOGGER = logging.getLogger(__name__)

CONTROL_LOOP_OWNER = "control-loop"


class ControlLoop:
    """Run registered tick handlers periodically.

    Each pass holds the state synchronizer scope, so worker callbacks are
    delivered strictly between passes.

    Usage:
        loop = ControlLoop(dispatcher.synchronizer, period=0.1)
        loop.add_handler(door.tick)
        await loop.run()
    """

    def __init__(self, synchronizer: StateSynchronizer, *, period: float = 0.1) -> None:
        self._synchronizer = synchronizer
        self._period = period
        self._handlers: list[Callable[[], None]] = []
        self._stop_requested = False
        self.passes = 0

    def add_handler(self, handler: Callable[[], None]) -> None:
        """Register a synchronous handler called once per pass."""
        self._handlers.append(handler)

    def run_once(self) -> None:
        """Run every handler once; a failing handler does not stop the others."""
        self.passes += 1
        for handler in self._handlers:
            try:
                handler()
            except Exception as err:
                _LOGGER.exception("Control loop handler %r failed: %s", handler, err)

    async def run(self) -> None:
        """Loop until stop() is called."""
        self._stop_requested = False
        _LOGGER.info("Control loop started (%d handlers)", len(self._handlers))
        try:
            while not self._stop_requested:
                async with self._synchronizer.scope(CONTROL_LOOP_OWNER):
                    self.run_once()
                await asyncio.sleep(self._period)
        finally:
            _LOGGER.info("Control loop stopped after %d passes", self.passes)

    def stop(self) -> None:
        """Ask run() to return after the current pass."""
        self._stop_requested = True
