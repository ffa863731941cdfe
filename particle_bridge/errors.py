"""Error types for Particle Cloud bridge interactions."""

from __future__ import annotations

from enum import Enum


class ParticleClientError(Exception):
    """Base error for Particle Cloud client failures."""


class ParticleTimeout(ParticleClientError):
    """Read timeout while waiting for the cloud to answer."""


class ParticleConnectionError(ParticleClientError):
    """Network connection to the cloud failed."""


class ParticleResponseError(ParticleClientError):
    """Non-success HTTP response from the cloud."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


class ParticleParseError(ParticleClientError):
    """Expected field missing or malformed in a response body."""


class DispatchError(ParticleClientError):
    """A worker for an asynchronous call could not be started."""


class CredentialError(ValueError):
    """Credentials do not have the required shape."""


class ConfigLoadError(Exception):
    """Error loading bridge configuration."""


class SynchronizerError(RuntimeError):
    """The state synchronizer scope was entered re-entrantly."""


class CallFailure(Enum):
    """Why an asynchronous call was reported as failed."""

    VALIDATION = "validation"
    NOT_CONFIGURED = "not_configured"
    THROTTLED = "throttled"
    DISPATCH = "dispatch"
    TRANSPORT = "transport"
    PARSE = "parse"
    CANCELLED = "cancelled"
