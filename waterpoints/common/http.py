"""Async HTTP client with timeouts and JSON decoding."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from types import TracebackType
from typing import Any

import aiohttp

from waterpoints.common.constants import USER_AGENT
from waterpoints.common.errors import StageError


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 20.0
    read: float = 120.0

    def to_client_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(sock_connect=self.connect, sock_read=self.read)


class HttpRequestError(StageError):
    error_code = "HTTP_ERROR"


class HttpClient:
    """Thin wrapper over one ``aiohttp.ClientSession``.

    No retries: a failed call raises ``HttpRequestError`` and the caller decides
    what to do with it.
    """

    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
                timeout=self.timeout.to_client_timeout(),
            )
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def get_json(
        self,
        url: str,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            async with self.session.get(url, params=params, headers=headers) as response:
                if not 200 <= response.status < 300:
                    raise HttpRequestError(f"HTTP status {response.status} from {url}")
                try:
                    return await response.json(content_type=None)
                except ValueError as exc:
                    raise HttpRequestError(f"Invalid JSON payload from {url}") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise HttpRequestError(f"Request to {url} failed: {exc!r}") from exc
