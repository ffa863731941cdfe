"""HTTP client for Particle Cloud device endpoints."""

from __future__ import annotations

import logging
from urllib.parse import quote

import aiohttp

from .config import DEFAULT_API_BASE_URL
from .credentials import Credentials
from .errors import (
    ParticleConnectionError,
    ParticleResponseError,
    ParticleTimeout,
)
from .protocol import parse_online

_LOGGER = logging.getLogger(__name__)


class ParticleHttpClient:
    """HTTP client wrapper for Particle Cloud device endpoints.

    Each method performs exactly one request/response exchange; retrying is
    the caller's concern.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        request_timeout: float = 8.0,
        connect_timeout: float = 3.0,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._request_timeout = request_timeout
        self._connect_timeout = connect_timeout

    def _url(self, credentials: Credentials, endpoint: str) -> str:
        return f"{self._base_url}/devices/{quote(credentials.device_id)}/{quote(endpoint)}"

    @staticmethod
    def _auth_headers(credentials: Credentials) -> dict[str, str]:
        return {"Authorization": f"Bearer {credentials.access_token}"}

    async def invoke(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> tuple[int, str]:
        """Perform one request and return its status and body text.

        Raises:
            ParticleTimeout: The cloud did not answer in time.
            ParticleConnectionError: The connection could not be made.
            ParticleResponseError: The cloud answered with a non-2xx status.
        """
        client_timeout = aiohttp.ClientTimeout(
            total=timeout if timeout is not None else self._request_timeout,
            connect=self._connect_timeout,
        )
        try:
            async with self._session.request(
                method,
                url,
                headers=headers or {},
                data=data,
                timeout=client_timeout,
            ) as resp:
                body = await resp.text()
                # Any 2xx is accepted, not only 200
                if not 200 <= resp.status < 300:
                    raise ParticleResponseError(
                        resp.status, f"{method} {url} failed with HTTP {resp.status}"
                    )
                return resp.status, body
        except aiohttp.ConnectionTimeoutError as err:
            raise ParticleConnectionError(f"{method} {url} connect timed out") from err
        except TimeoutError as err:
            raise ParticleTimeout(f"{method} {url} timed out") from err
        except aiohttp.ClientError as err:
            raise ParticleConnectionError(f"{method} {url} failed") from err

    async def call_function(
        self, credentials: Credentials, name: str, argument: str
    ) -> str:
        """Call a cloud function and return the reply body."""
        _, body = await self.invoke(
            "POST",
            self._url(credentials, name),
            headers=self._auth_headers(credentials),
            data={"arg": argument},
        )
        return body

    async def get_variable(self, credentials: Credentials, name: str) -> str:
        """Read a cloud variable and return the reply body."""
        _, body = await self.invoke(
            "GET",
            self._url(credentials, name),
            headers=self._auth_headers(credentials),
        )
        return body

    async def ping_device(self, credentials: Credentials) -> bool | None:
        """Validate credentials by pinging the device.

        Returns:
            The device's reported online flag, or None when not reported.

        Raises:
            ParticleResponseError: The credentials were rejected.
        """
        _, body = await self.invoke(
            "PUT",
            self._url(credentials, "ping"),
            headers=self._auth_headers(credentials),
        )
        online = parse_online(body)
        if online is True:
            _LOGGER.info("[%s] Device is online; credentials valid", credentials.device_id)
        elif online is False:
            _LOGGER.info("[%s] Device is offline; credentials valid", credentials.device_id)
        else:
            _LOGGER.info("[%s] Credentials valid", credentials.device_id)
        return online
