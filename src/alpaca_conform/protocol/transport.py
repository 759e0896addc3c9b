from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Literal, Mapping, Optional, Sequence

import httpx
import structlog

from .parameters import Parameter

logger = structlog.get_logger(__name__)

APPLICATION_JSON_MIME_TYPE = "application/json"
CONFORM_VERSION = "0.1.0"
USER_AGENT = f"AlpacaConform/{CONFORM_VERSION}"

_ACCEPT_ENCODING = {
    "none": "identity",
    "gzip": "gzip",
    "deflate": "deflate",
    "gzipordeflate": "gzip, deflate",
}


class RequestCancelled(Exception):
    """The session was cancelled while the request was in flight."""


class RequestTimedOut(Exception):
    """No response arrived within the long response timeout."""


def query_string(parameters: Sequence[Parameter]) -> str:
    """Join parameters as `name=value&...` without any percent encoding."""
    return "&".join(f"{parameter.name}={parameter.value}" for parameter in parameters)


@dataclass(slots=True)
class AlpacaHttpClient:
    """Async HTTP client bound to one Alpaca device.

    One client is shared by the whole run. Default headers advertise JSON and
    the configured compression; callers needing extra headers for a few
    requests use `scoped_headers`, which restores the previous set on exit.
    """

    host: str
    port: int = 80
    scheme: Literal["http", "https"] = "http"
    response_timeout: float = 100.0
    connect_timeout: float = 5.0
    username: str = ""
    password: str = ""
    compression: str = "none"
    user_agent: str = USER_AGENT
    transport: Optional[httpx.AsyncBaseTransport] = None
    _client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    async def __aenter__(self) -> "AlpacaHttpClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _default_headers(self) -> dict[str, str]:
        return {
            "Accept": APPLICATION_JSON_MIME_TYPE,
            "User-Agent": self.user_agent,
            "Connection": "keep-alive",
            "Accept-Encoding": _ACCEPT_ENCODING.get(self.compression, "identity"),
        }

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            # An empty password still authenticates as "user:".
            auth = httpx.BasicAuth(self.username, self.password) if self.username else None
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                auth=auth,
                timeout=httpx.Timeout(self.response_timeout, connect=self.connect_timeout),
                transport=self.transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def headers(self) -> httpx.Headers:
        if self._client is None:
            return httpx.Headers(self._default_headers())
        return self._client.headers

    @asynccontextmanager
    async def scoped_headers(self, headers: Mapping[str, str]) -> AsyncIterator[None]:
        client = await self._ensure_client()
        snapshot = httpx.Headers(client.headers)
        client.headers.update(headers)
        try:
            yield
        finally:
            client.headers = snapshot

    async def send(
        self,
        method: str,
        path: str,
        parameters: Sequence[Parameter] = (),
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> httpx.Response:
        """Send one request, racing it against the timeout and `cancel_event`."""
        client = await self._ensure_client()

        if method == "GET":
            url = f"{path}?{query_string(parameters)}" if parameters else path
            request = client.request(method, url)
        else:
            form = {parameter.name: parameter.value for parameter in parameters}
            request = client.request(method, path, data=form)

        logger.debug("alpaca.http.request", method=method, path=path, parameters=len(parameters))

        request_task = asyncio.ensure_future(request)
        waiters: set[asyncio.Future] = {request_task}
        cancel_task: Optional[asyncio.Future] = None
        if cancel_event is not None:
            cancel_task = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_task)

        try:
            done, pending = await asyncio.wait(
                waiters,
                timeout=self.response_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in waiters:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*waiters, return_exceptions=True)

        if request_task in done:
            return request_task.result()
        if cancel_task is not None and cancel_task in done:
            logger.info("alpaca.http.cancelled", method=method, path=path)
            raise RequestCancelled(f"{method} {path} was cancelled")
        logger.warning("alpaca.http.timeout", method=method, path=path, timeout=self.response_timeout)
        raise RequestTimedOut(f"{method} {path} did not complete within {self.response_timeout} seconds")
