"""Particle Cloud credentials and their persisted record."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from .errors import CredentialError

_LOGGER = logging.getLogger(__name__)

ACCESS_TOKEN_LENGTH = 40
DEVICE_ID_LENGTH = 24
DEFAULT_RECORD = "PDATA"


@dataclass(frozen=True)
class Credentials:
    """Access token and device identifier for one Particle device."""

    access_token: str = field(repr=False)
    device_id: str

    @classmethod
    def create(cls, access_token: str, device_id: str) -> Credentials:
        """Validate and build credentials.

        Both values are opaque; only their exact length is checked.

        Raises:
            CredentialError: If either value has the wrong length.
        """
        access_token = access_token.strip()
        device_id = device_id.strip()
        if len(access_token) != ACCESS_TOKEN_LENGTH:
            raise CredentialError(
                f"Access token must be exactly {ACCESS_TOKEN_LENGTH} characters "
                f"(received {len(access_token)})"
            )
        if len(device_id) != DEVICE_ID_LENGTH:
            raise CredentialError(
                f"Device ID must be exactly {DEVICE_ID_LENGTH} characters "
                f"(received {len(device_id)})"
            )
        return cls(access_token=access_token, device_id=device_id)

    def describe(self) -> str:
        """Human-readable summary that never reveals the token."""
        return f"Access Token: <configured>\nDevice ID: {self.device_id}"


def describe_credentials(credentials: Credentials | None) -> str:
    """Summary for display, including the unconfigured case."""
    if credentials is None:
        return "Access Token: <not configured>\nDevice ID: <not configured>"
    return credentials.describe()


class CredentialStore:
    """Single-record JSON persistence for credentials.

    The file holds a mapping of record name to ``{"access_token", "device_id"}``.
    Anything unreadable loads as absent so the caller can re-provision.
    """

    def __init__(self, path: Path, *, record: str = DEFAULT_RECORD) -> None:
        self._path = path
        self._record = record

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, object]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as err:
            _LOGGER.warning("Stored credentials unreadable (%s): %s", self._path, err)
            return {}
        if not isinstance(data, dict):
            _LOGGER.warning("Stored credentials unreadable (%s): not a mapping", self._path)
            return {}
        return data

    def load(self) -> Credentials | None:
        """Load the stored credentials, or None when absent or invalid."""
        entry = self._read_all().get(self._record)
        if entry is None:
            return None
        if not isinstance(entry, dict):
            _LOGGER.warning("Stored credential record %s is malformed", self._record)
            return None
        try:
            credentials = Credentials.create(
                str(entry.get("access_token", "")),
                str(entry.get("device_id", "")),
            )
        except CredentialError as err:
            _LOGGER.warning("Stored credential record %s rejected: %s", self._record, err)
            return None
        _LOGGER.info("Particle credentials loaded for device %s", credentials.device_id)
        return credentials

    def save(self, credentials: Credentials) -> None:
        """Persist credentials, replacing any existing record."""
        data = self._read_all()
        data[self._record] = {
            "access_token": credentials.access_token,
            "device_id": credentials.device_id,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        _LOGGER.info("Particle credentials saved for device %s", credentials.device_id)

    def erase(self) -> None:
        """Remove the stored record; a no-op when nothing is stored."""
        data = self._read_all()
        if data.pop(self._record, None) is None:
            return
        if data:
            self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        else:
            self._path.unlink(missing_ok=True)
        _LOGGER.info("Particle credentials cleared")
