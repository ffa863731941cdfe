"""Door controller state machine on top of the call dispatcher.

The controller models a two-position actuator reached through the cloud.
A command moves the door optimistically into a transitional state; only a
polled observation of the commanded position confirms it. The command
acknowledgement merely says the device accepted the request. Polling runs
in two tiers: an accelerated tier while a command is pending, limited to a
fixed window, and an unconditional background tier that picks up changes
made outside the bridge.

All mutation happens either in ``tick``/``command`` on the control loop or
in result callbacks, which the dispatcher delivers inside the state
synchronizer scope.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from .config import DoorConfig
from .dispatcher import AsyncCallDispatcher

_LOGGER = logging.getLogger(__name__)


class DoorState(IntEnum):
    """Door position as reported to the host."""

    OPEN = 0
    CLOSED = 1
    OPENING = 2
    CLOSING = 3

    @property
    def is_terminal(self) -> bool:
        return self in (DoorState.OPEN, DoorState.CLOSED)

    @property
    def terminal(self) -> DoorState:
        """Position this state ends in."""
        if self in (DoorState.OPEN, DoorState.OPENING):
            return DoorState.OPEN
        return DoorState.CLOSED

    @classmethod
    def parse(cls, raw: str) -> DoorState | None:
        """Parse a reported state by name or by number, None if unknown."""
        token = raw.strip().lower()
        if token.lstrip("-").isdigit():
            try:
                return cls(int(token))
            except ValueError:
                return None
        return _STATE_NAMES.get(token)


_STATE_NAMES: dict[str, DoorState] = {
    "open": DoorState.OPEN,
    "opened": DoorState.OPEN,
    "closed": DoorState.CLOSED,
    "close": DoorState.CLOSED,
    "opening": DoorState.OPENING,
    "closing": DoorState.CLOSING,
}

_COMMAND_ARGUMENTS: dict[DoorState, str] = {
    DoorState.OPEN: "open",
    DoorState.CLOSED: "close",
}


@dataclass(frozen=True)
class DoorSnapshot:
    """Externally visible door state."""

    current_state: DoorState
    target_state: DoorState
    obstructed: bool
    command_in_flight: bool


class DoorController:
    """Track commanded versus observed state of one door.

    Usage:
        door = DoorController(dispatcher, name="garage")
        loop.add_handler(door.tick)
        door.command(DoorState.CLOSED)
    """

    def __init__(
        self,
        dispatcher: AsyncCallDispatcher,
        *,
        config: DoorConfig | None = None,
        name: str = "door",
        initial_state: DoorState = DoorState.CLOSED,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._dispatcher = dispatcher
        self._config = config or DoorConfig()
        self._clock = clock

        self.current_state = initial_state
        self.target_state = initial_state.terminal
        self.previous_state = initial_state
        self.obstructed = False
        self.commanded_target: DoorState | None = None
        self.command_in_flight = False
        self.last_observed: DoorState | None = None

        self._command_seq = 0
        self._command_started_at: float | None = None
        self._fast_poll_started_at: float | None = None
        self._last_poll_at: float | None = None
        self._deadline_poll_seq = 0

        self._state_changed_callback: Callable[[DoorSnapshot], None] | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> DoorSnapshot:
        return DoorSnapshot(
            current_state=self.current_state,
            target_state=self.target_state,
            obstructed=self.obstructed,
            command_in_flight=self.command_in_flight,
        )

    @property
    def fast_polling(self) -> bool:
        """Whether the accelerated polling tier is active."""
        return self._fast_poll_started_at is not None

    def on_state_changed(self, callback: Callable[[DoorSnapshot], None]) -> None:
        """Register callback receiving a DoorSnapshot after every change."""
        self._state_changed_callback = callback

    def command(self, target: DoorState) -> bool:
        """Request the door to move to OPEN or CLOSED.

        Returns:
            False if rejected because another command is in flight, or if the
            dispatcher failed the call at submission (the state is then
            already reverted).

        Raises:
            ValueError: If target is a transitional state.
        """
        if not target.is_terminal:
            raise ValueError(f"Door target must be OPEN or CLOSED, not {target.name}")

        if self.command_in_flight and self.commanded_target is not None:
            _LOGGER.warning(
                "[%s] Command %s rejected: %s still in flight",
                self.name,
                target.name,
                self.commanded_target.name,
            )
            self.target_state = self.commanded_target
            self._notify()
            return False

        now = self._clock()
        self.previous_state = self.current_state
        self.current_state = (
            DoorState.OPENING if target is DoorState.OPEN else DoorState.CLOSING
        )
        self.target_state = target
        self.commanded_target = target
        self.command_in_flight = True
        self.obstructed = False
        self._command_started_at = now
        self._fast_poll_started_at = now
        self._command_seq += 1

        _LOGGER.info(
            "[%s] Command %s: %s -> %s",
            self.name,
            target.name,
            self.previous_state.name,
            self.current_state.name,
        )
        self._notify()

        return self._dispatcher.call_function(
            self._config.command_function,
            _COMMAND_ARGUMENTS[target],
            self._on_command_result,
            self._command_seq,
        )

    def tick(self) -> None:
        """Control loop hook: issue a poll when one is due."""
        now = self._clock()

        # One poll right after the obstruction window, whatever the cadence
        if self._obstruction_due(now) and self._deadline_poll_seq != self._command_seq:
            self._deadline_poll_seq = self._command_seq
            _LOGGER.debug("[%s] Obstruction window elapsed, polling", self.name)
            self.poll()
            return

        if (
            self._fast_poll_started_at is not None
            and now - self._fast_poll_started_at >= self._config.fast_poll_window
        ):
            _LOGGER.debug("[%s] Accelerated polling window expired", self.name)
            self._fast_poll_started_at = None

        interval = (
            self._config.fast_poll_interval
            if self._fast_poll_started_at is not None
            else self._config.slow_poll_interval
        )
        if self._last_poll_at is None or now - self._last_poll_at >= interval:
            self.poll()

    def poll(self) -> None:
        """Read the observed door state now."""
        self._last_poll_at = self._clock()
        self._dispatcher.get_variable(
            self._config.state_variable, self._on_poll_result
        )

    def apply_observation(self, observed: DoorState) -> None:
        """Reconcile an observed door state with the tracked state."""
        self.last_observed = observed

        if self.command_in_flight and observed is self.commanded_target:
            _LOGGER.info("[%s] Door reached %s", self.name, observed.name)
            self.current_state = observed
            self._clear_command()
            self._notify()
            return

        if (
            not self.command_in_flight
            and observed.is_terminal
            and observed is not self.current_state
        ):
            _LOGGER.info(
                "[%s] Door changed externally: %s -> %s",
                self.name,
                self.current_state.name,
                observed.name,
            )
            self.current_state = observed
            self.target_state = observed
            self._notify()
            return

        if self._obstruction_due(self._clock()):
            self._declare_obstruction(observed)

    # -------------------------------------------------------------------------
    # Internal: Result callbacks
    # -------------------------------------------------------------------------

    def _on_command_result(self, result: Any, success: bool, seq: Any) -> None:
        if seq != self._command_seq or not self.command_in_flight:
            _LOGGER.debug("[%s] Ignoring result of superseded command %s", self.name, seq)
            return

        if success:
            _LOGGER.debug("[%s] Command accepted (return value %s)", self.name, result)
            return

        _LOGGER.warning(
            "[%s] Command failed; reverting to %s", self.name, self.previous_state.name
        )
        self.current_state = self.previous_state
        self.target_state = self.previous_state.terminal
        self._clear_command()
        self._notify()

    def _on_poll_result(self, result: Any, success: bool, _context: Any) -> None:
        if not success:
            _LOGGER.debug("[%s] Poll failed", self.name)
            self._expire_unobserved()
            return

        observed = DoorState.parse(str(result))
        if observed is None:
            _LOGGER.warning("[%s] Unrecognized door state %r", self.name, result)
            self._expire_unobserved()
            return

        self.apply_observation(observed)

    # -------------------------------------------------------------------------
    # Internal: Bookkeeping
    # -------------------------------------------------------------------------

    def _obstruction_due(self, now: float) -> bool:
        return (
            self.command_in_flight
            and self._command_started_at is not None
            and now - self._command_started_at > self._config.obstruction_window
        )

    def _expire_unobserved(self) -> None:
        """Give up on a command whose window elapsed without a readable poll."""
        if self._obstruction_due(self._clock()):
            fallback = self.last_observed
            if fallback is None:
                fallback = self.previous_state
            self._declare_obstruction(fallback)

    def _declare_obstruction(self, observed: DoorState) -> None:
        _LOGGER.warning(
            "[%s] Door obstructed: %s not reached within %.0fs (observed %s)",
            self.name,
            self.target_state.name,
            self._config.obstruction_window,
            observed.name,
        )
        self.obstructed = True
        self.current_state = observed
        self._clear_command()
        self._notify()

    def _clear_command(self) -> None:
        self.commanded_target = None
        self.command_in_flight = False
        self._command_started_at = None
        self._fast_poll_started_at = None

    def _notify(self) -> None:
        if self._state_changed_callback is None:
            return
        try:
            self._state_changed_callback(self.snapshot)
        except Exception as err:
            _LOGGER.exception("[%s] State change callback error: %s", self.name, err)
