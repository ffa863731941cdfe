"""Bridge configuration loading.

Configuration is treated as data: every option has a default in code, and an
optional YAML file overrides a subset of them. The door section carries the
polling cadence of the door controller.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigLoadError

DEFAULT_API_BASE_URL = "https://api.particle.io/v1"


@dataclass(frozen=True)
class DoorConfig:
    """Door controller settings.

    Attributes:
        command_function: Cloud function that moves the door.
        state_variable: Cloud variable reporting the observed door state.
        fast_poll_interval: Accelerated polling interval (seconds).
        fast_poll_window: Total lifetime of accelerated polling (seconds).
        slow_poll_interval: Background polling interval (seconds).
        obstruction_window: Time a command may take before the door is
            declared obstructed (seconds).
    """

    command_function: str = "setDoor"
    state_variable: str = "doorState"
    fast_poll_interval: float = 11.0
    fast_poll_window: float = 32.0
    slow_poll_interval: float = 36.0
    obstruction_window: float = 32.0


@dataclass(frozen=True)
class BridgeConfig:
    """Particle Cloud bridge settings.

    Attributes:
        api_base_url: Cloud API root.
        request_timeout: Per-call transport timeout (seconds).
        connect_timeout: Connection establishment timeout (seconds).
        retry_count: Attempts beyond the first for timed-out function calls.
        retry_delay: Pause between attempts (seconds).
        throttle_window: Minimum interval between calls to one endpoint.
        throttle_enabled: Global rate limiter switch.
        throttle_cache_size: Number of endpoints the rate limiter tracks.
        max_name_length: Function and variable name bound.
        max_argument_length: Function argument bound.
        max_variable_length: Returned variable data bound.
        max_workers: Concurrently running call workers.
        credentials_path: File holding the stored credentials record.
        door: Door controller settings.
    """

    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float = 8.0
    connect_timeout: float = 3.0
    retry_count: int = 1
    retry_delay: float = 0.75
    throttle_window: float = 10.0
    throttle_enabled: bool = True
    throttle_cache_size: int = 10
    max_name_length: int = 64
    max_argument_length: int = 1024
    max_variable_length: int = 1024
    max_workers: int = 8
    credentials_path: Path = Path("particle_credentials.json")
    door: DoorConfig = field(default_factory=DoorConfig)

    def __post_init__(self) -> None:
        if self.retry_count < 0:
            raise ConfigLoadError("retry_count must not be negative")
        if self.throttle_cache_size < 0:
            raise ConfigLoadError("throttle_cache_size must not be negative")
        if self.max_workers < 1:
            raise ConfigLoadError("max_workers must be at least 1")
        for name in ("request_timeout", "connect_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigLoadError(f"{name} must be positive")
        for name in ("retry_delay", "throttle_window"):
            if getattr(self, name) < 0:
                raise ConfigLoadError(f"{name} must not be negative")


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file with error handling."""
    if not path.exists():
        raise ConfigLoadError(f"File not found: {path}")
    with path.open() as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as err:
            raise ConfigLoadError(f"Invalid YAML in {path}: {err}") from err
    if not isinstance(data, dict):
        raise ConfigLoadError(f"Expected a mapping in {path}")
    return data


def _check_keys(section: str, data: dict[str, Any], cls: type) -> None:
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigLoadError(f"Unknown {section} option(s): {', '.join(unknown)}")


def parse_config(data: dict[str, Any]) -> BridgeConfig:
    """Build a BridgeConfig from a plain mapping.

    Raises:
        ConfigLoadError: If an option is unknown or has an invalid value.
    """
    data = dict(data)
    door_data = data.pop("door", None) or {}
    if not isinstance(door_data, dict):
        raise ConfigLoadError("door section must be a mapping")

    _check_keys("bridge", data, BridgeConfig)
    _check_keys("door", door_data, DoorConfig)

    if "credentials_path" in data:
        data["credentials_path"] = Path(data["credentials_path"])

    try:
        return BridgeConfig(door=DoorConfig(**door_data), **data)
    except TypeError as err:
        raise ConfigLoadError(f"Invalid configuration: {err}") from err


def load_config(path: Path) -> BridgeConfig:
    """Load bridge configuration from a YAML file.

    Args:
        path: Path to the configuration file.

    Returns:
        Parsed BridgeConfig, with defaults for omitted options.

    Raises:
        ConfigLoadError: If the file is missing or invalid.
    """
    return parse_config(_load_yaml(path))
