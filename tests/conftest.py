"""Pytest configuration and fixtures for particle_bridge tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from particle_bridge import Credentials

ACCESS_TOKEN = "a" * 40
DEVICE_ID = "0123456789abcdef01234567"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials.create(ACCESS_TOKEN, DEVICE_ID)


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    return MagicMock(spec=aiohttp.ClientSession)


@pytest.fixture
def fake_client() -> MagicMock:
    """Client double with async call_function/get_variable."""
    client = MagicMock()
    client.call_function = AsyncMock(return_value='{"id": "x", "return_value": 1}')
    client.get_variable = AsyncMock(return_value='{"name": "doorState", "result": "closed"}')
    return client


class CallbackRecorder:
    """Collects (result, success, context) callback invocations."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, bool, Any]] = []

    def __call__(self, result: Any, success: bool, context: Any) -> None:
        self.calls.append((result, success, context))


@pytest.fixture
def recorder() -> CallbackRecorder:
    return CallbackRecorder()


def create_mock_response(
    status: int = 200,
    text_data: str | None = None,
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        text_data: Data to return from text() call

    Returns:
        Configured AsyncMock response
    """
    response = AsyncMock()
    response.status = status
    response.text.return_value = text_data if text_data is not None else ""

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response
