"""Asynchronous Particle Cloud bridge for single-threaded device control."""

__version__ = "0.1.0"

from .config import BridgeConfig, DoorConfig, load_config, parse_config
from .credentials import Credentials, CredentialStore, describe_credentials
from .dispatcher import AsyncCallDispatcher, CallRequest
from .door import DoorController, DoorSnapshot, DoorState
from .errors import (
    CallFailure,
    ConfigLoadError,
    CredentialError,
    DispatchError,
    ParticleClientError,
    ParticleConnectionError,
    ParticleParseError,
    ParticleResponseError,
    ParticleTimeout,
    SynchronizerError,
)
from .http import ParticleHttpClient
from .loop import ControlLoop
from .protocol import EndpointKind, extract_field
from .retry import RetryOutcome, RetryPolicy
from .sync import StateSynchronizer
from .throttle import RateLimiter

__all__ = [
    "AsyncCallDispatcher",
    "BridgeConfig",
    "CallFailure",
    "CallRequest",
    "ConfigLoadError",
    "ControlLoop",
    "CredentialError",
    "CredentialStore",
    "Credentials",
    "DispatchError",
    "DoorConfig",
    "DoorController",
    "DoorSnapshot",
    "DoorState",
    "EndpointKind",
    "ParticleClientError",
    "ParticleConnectionError",
    "ParticleHttpClient",
    "ParticleParseError",
    "ParticleResponseError",
    "ParticleTimeout",
    "RateLimiter",
    "RetryOutcome",
    "RetryPolicy",
    "StateSynchronizer",
    "SynchronizerError",
    "__version__",
    "describe_credentials",
    "extract_field",
    "load_config",
    "parse_config",
]
