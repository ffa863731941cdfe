"""Coarse critical section between the control loop and call workers.

The control loop owns the door state. It holds the scope for the duration
of every tick, and a worker holds it while delivering a result, so the two
never interleave their read-modify-write sequences. There is one scope per
process and it must not be nested.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from .errors import SynchronizerError


class StateSynchronizer:
    """Single global lock with scoped entry."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._holder: asyncio.Task[object] | None = None
        self._owner: str | None = None

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def owner(self) -> str | None:
        """Label of the current holder, for diagnostics."""
        return self._owner

    @asynccontextmanager
    async def scope(self, owner: str = "worker") -> AsyncIterator[None]:
        """Enter the critical section; exit is guaranteed on every path.

        Raises:
            SynchronizerError: If the current task already holds the scope.
        """
        task = asyncio.current_task()
        if task is not None and task is self._holder:
            raise SynchronizerError(f"Nested scope entry by {owner!r} (held by {self._owner!r})")

        async with self._lock:
            self._holder = task
            self._owner = owner
            try:
                yield
            finally:
                self._holder = None
                self._owner = None
