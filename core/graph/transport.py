from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Tuple, Union

import aiohttp
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from common.exceptions import TransportError
from common.models.operations import Method


logger = logging.getLogger(__name__)


@dataclass
class TransportConfig:

    url: str = "http://localhost:7474/db/data"
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: float = 30.0
    # GET attempts; writes are sent once
    retry_attempts: int = 3


class Transport(Protocol):

    base_url: str

    async def execute(self, method: Union[Method, str], path: str, body: Any = None) -> Tuple[int, Any]:
        ...


class HttpTransport:

    def __init__(self, config: TransportConfig) -> None:
        self._config = config
        self.base_url = config.url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return self.base_url + (path if path.startswith("/") else "/" + path)

    def _client_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            auth = None
            if self._config.username:
                auth = aiohttp.BasicAuth(self._config.username, self._config.password or "")
            self._session = aiohttp.ClientSession(
                auth=auth,
                headers={"Accept": "application/json", "X-Stream": "true"},
                timeout=aiohttp.ClientTimeout(total=self._config.timeout),
            )
        return self._session

    async def close(self) -> None:
        if self._session is None:
            return
        try:
            await self._session.close()
        except Exception:
            logger.exception("Error closing HTTP session")
        finally:
            self._session = None

    async def ping(self) -> bool:
        try:
            status, _ = await self.execute(Method.GET, "/")
            return 200 <= status < 300
        except TransportError:
            return False

    async def execute(self, method: Union[Method, str], path: str, body: Any = None) -> Tuple[int, Any]:
        method = Method(method)
        if method is Method.GET:
            return await self._send_idempotent(method, path, body)
        return await self._send(method, path, body)

    async def _send_idempotent(self, method: Method, path: str, body: Any = None) -> Tuple[int, Any]:
        async for attempt in AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self._config.retry_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(TransportError),
        ):
            with attempt:
                return await self._send(method, path, body)

    async def _send(self, method: Method, path: str, body: Any = None) -> Tuple[int, Any]:
        url = self._url(path)
        session = self._client_session()
        try:
            async with session.request(method.value, url, json=body) as response:
                text = await response.text()
                status = response.status
        except asyncio.TimeoutError as exc:
            logger.error("%s %s timed out after %ss", method.value, url, self._config.timeout)
            raise TransportError(f"{method.value} {url} timed out") from exc
        except aiohttp.ClientError as exc:
            logger.error("%s %s failed: %s", method.value, url, exc)
            raise TransportError(f"{method.value} {url} failed: {exc}") from exc
        if not text:
            return status, None
        try:
            return status, json.loads(text)
        except ValueError:
            return status, text

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = [
    "HttpTransport",
    "Transport",
    "TransportConfig",
]
