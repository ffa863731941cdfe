"""Asynchronous call dispatch for Particle Cloud functions and variables.

The dispatcher is called from the control loop and never blocks it. Cheap
checks (length bounds, credentials, throttle) run synchronously and fail
through the callback straight away. Anything that passes becomes an
immutable CallRequest owned by one short-lived worker task. The worker
performs the exchange, releases the request and delivers the result inside
the state synchronizer scope.

Every submitted call produces exactly one callback invocation, whatever
path it takes. Exceptions never cross the dispatch boundary; failures are
reported as ``(default_result, False)``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .config import BridgeConfig
from .credentials import Credentials
from .errors import (
    CallFailure,
    DispatchError,
    ParticleClientError,
    ParticleParseError,
)
from .http import ParticleHttpClient
from .protocol import EndpointKind, parse_return_value, parse_variable_result
from .retry import RetryPolicy
from .sync import StateSynchronizer
from .throttle import RateLimiter, endpoint_key

_LOGGER = logging.getLogger(__name__)

CallCallback = Callable[[Any, bool, Any], None]

FUNCTION_FAILURE_RESULT = -1
VARIABLE_FAILURE_RESULT = ""


def failure_result(kind: EndpointKind) -> int | str:
    """Default result delivered with success=False."""
    if kind is EndpointKind.FUNCTION:
        return FUNCTION_FAILURE_RESULT
    return VARIABLE_FAILURE_RESULT


@dataclass(frozen=True, eq=False)
class CallRequest:
    """Snapshot of one submitted call, owned by its worker."""

    credentials: Credentials
    kind: EndpointKind
    name: str
    argument: str | None
    callback: CallCallback | None
    user_context: Any = None

    @property
    def label(self) -> str:
        return endpoint_key(self.kind, self.name)


class AsyncCallDispatcher:
    """Submit remote calls without blocking the control loop.

    Usage:
        dispatcher = AsyncCallDispatcher(client, credentials=creds)
        dispatcher.call_function("setDoor", "close", on_result, ctx)
        dispatcher.get_variable("doorState", on_state)
    """

    def __init__(
        self,
        client: ParticleHttpClient,
        *,
        credentials: Credentials | None,
        config: BridgeConfig | None = None,
        rate_limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        synchronizer: StateSynchronizer | None = None,
    ) -> None:
        self._client = client
        self._credentials = credentials
        self._config = config or BridgeConfig()
        self._rate_limiter = rate_limiter or RateLimiter(
            self._config.throttle_window,
            self._config.throttle_cache_size,
            enabled=self._config.throttle_enabled,
        )
        self._retry_policy = retry_policy or RetryPolicy(
            self._config.retry_count, self._config.retry_delay
        )
        self._synchronizer = synchronizer or StateSynchronizer()

        self._workers: set[asyncio.Task[None]] = set()
        self._outstanding: set[CallRequest] = set()
        # Shared by every call; per-call outcomes arrive through the callback
        self.most_recent_failure: CallFailure | None = None

    @property
    def synchronizer(self) -> StateSynchronizer:
        return self._synchronizer

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def is_configured(self) -> bool:
        return self._credentials is not None

    @property
    def outstanding(self) -> int:
        """Requests accepted but not yet released."""
        return len(self._outstanding)

    @property
    def active_workers(self) -> int:
        return len(self._workers)

    def configure(self, credentials: Credentials | None) -> None:
        """Replace credentials; calls already submitted keep their snapshot."""
        self._credentials = credentials

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def call_function(
        self,
        name: str,
        argument: str,
        callback: CallCallback | None,
        user_context: Any = None,
    ) -> bool:
        """Call a cloud function; callback receives (int, success, context)."""
        return self.submit(EndpointKind.FUNCTION, name, argument, callback, user_context)

    def get_variable(
        self,
        name: str,
        callback: CallCallback | None,
        user_context: Any = None,
    ) -> bool:
        """Read a cloud variable; callback receives (str, success, context)."""
        return self.submit(EndpointKind.VARIABLE, name, None, callback, user_context)

    def submit(
        self,
        kind: EndpointKind,
        name: str,
        argument: str | None,
        callback: CallCallback | None,
        user_context: Any = None,
    ) -> bool:
        """Validate a call and hand it to a new worker.

        Returns:
            True if a worker was started. On False the callback has already
            been invoked with a failure.
        """
        label = endpoint_key(kind, name)

        if not name or len(name.encode()) > self._config.max_name_length:
            _LOGGER.error(
                "[%s] Name must be 1-%d bytes", label, self._config.max_name_length
            )
            return self._fail_now(
                label, kind, callback, user_context, CallFailure.VALIDATION
            )

        if kind is EndpointKind.FUNCTION:
            argument = argument or ""
            if len(argument.encode()) > self._config.max_argument_length:
                _LOGGER.error(
                    "[%s] Argument exceeds %d byte limit",
                    label,
                    self._config.max_argument_length,
                )
                return self._fail_now(
                    label, kind, callback, user_context, CallFailure.VALIDATION
                )
        else:
            argument = None

        credentials = self._credentials
        if credentials is None:
            _LOGGER.error("[%s] Particle credentials not configured", label)
            return self._fail_now(
                label, kind, callback, user_context, CallFailure.NOT_CONFIGURED
            )

        if not self._rate_limiter.check(kind, name):
            return self._fail_now(
                label, kind, callback, user_context, CallFailure.THROTTLED
            )

        request = CallRequest(
            credentials=credentials,
            kind=kind,
            name=name,
            argument=argument,
            callback=callback,
            user_context=user_context,
        )
        self._outstanding.add(request)

        try:
            self._spawn(request)
        except DispatchError as err:
            _LOGGER.error("[%s] Failed to start worker: %s", label, err)
            self._release(request)
            return self._fail_now(
                label, kind, callback, user_context, CallFailure.DISPATCH
            )

        _LOGGER.debug("[%s] Worker started (%d active)", label, len(self._workers))
        return True

    async def wait_idle(self) -> None:
        """Wait until every started worker has finished."""
        while self._workers:
            await asyncio.gather(*list(self._workers), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Internal: Worker lifecycle
    # -------------------------------------------------------------------------

    def _spawn(self, request: CallRequest) -> None:
        if len(self._workers) >= self._config.max_workers:
            raise DispatchError(
                f"Worker budget exhausted ({len(self._workers)}/{self._config.max_workers})"
            )
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as err:
            raise DispatchError("No running event loop") from err

        task = loop.create_task(self._run(request), name=f"particle-{request.label}")
        self._workers.add(task)
        task.add_done_callback(self._workers.discard)

    def _release(self, request: CallRequest) -> None:
        self._outstanding.discard(request)

    async def _run(self, request: CallRequest) -> None:
        """Worker body: exchange, release, deliver."""
        result: Any = failure_result(request.kind)
        success = False

        try:
            outcome = await self._retry_policy.run(
                request.kind,
                lambda: self._exchange(request),
                label=request.label,
            )
        except asyncio.CancelledError:
            self._release(request)
            self._deliver_cancelled(request)
            raise
        except ParticleParseError as err:
            self.most_recent_failure = CallFailure.PARSE
            _LOGGER.error("[%s] Unreadable response: %s", request.label, err)
        except ParticleClientError as err:
            self.most_recent_failure = CallFailure.TRANSPORT
            _LOGGER.error("[%s] Call failed: %s", request.label, err)
        except Exception as err:
            self.most_recent_failure = CallFailure.TRANSPORT
            _LOGGER.exception("[%s] Unexpected worker error: %s", request.label, err)
        else:
            result = outcome.value
            success = True
            _LOGGER.debug(
                "[%s] Call succeeded after %d attempt(s)", request.label, outcome.attempts
            )
        finally:
            self._release(request)

        try:
            async with self._synchronizer.scope(request.label):
                self._invoke_callback(
                    request.label,
                    request.callback,
                    result,
                    success,
                    request.user_context,
                )
        except asyncio.CancelledError:
            # Only the scope acquire can be interrupted, so nothing was delivered
            self._deliver_cancelled(request)
            raise

    async def _exchange(self, request: CallRequest) -> int | str:
        if request.kind is EndpointKind.FUNCTION:
            body = await self._client.call_function(
                request.credentials, request.name, request.argument or ""
            )
            return parse_return_value(body)

        body = await self._client.get_variable(request.credentials, request.name)
        return parse_variable_result(body, self._config.max_variable_length)

    # -------------------------------------------------------------------------
    # Internal: Callback delivery
    # -------------------------------------------------------------------------

    def _deliver_cancelled(self, request: CallRequest) -> None:
        """Report a cancelled worker as failed.

        Runs without the scope: a control loop pass never spans an await, so
        no pass is in progress while this task executes.
        """
        self.most_recent_failure = CallFailure.CANCELLED
        _LOGGER.warning("[%s] Worker cancelled", request.label)
        self._invoke_callback(
            request.label,
            request.callback,
            failure_result(request.kind),
            False,
            request.user_context,
        )

    def _fail_now(
        self,
        label: str,
        kind: EndpointKind,
        callback: CallCallback | None,
        user_context: Any,
        reason: CallFailure,
    ) -> bool:
        self.most_recent_failure = reason
        self._invoke_callback(
            label, callback, failure_result(kind), False, user_context
        )
        return False

    @staticmethod
    def _invoke_callback(
        label: str,
        callback: CallCallback | None,
        result: Any,
        success: bool,
        user_context: Any,
    ) -> None:
        if callback is None:
            return
        try:
            callback(result, success, user_context)
        except Exception as err:
            _LOGGER.exception("[%s] Result callback error: %s", label, err)
