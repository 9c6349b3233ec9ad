from __future__ import annotations

import json as _json
from collections.abc import Sequence
from dataclasses import dataclass, field
from ssl import SSLContext
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

import aiohttp
from loguru import logger
from yarl import URL

from cloudpath.constants import DEFAULT_TIMEOUT_SECONDS

if TYPE_CHECKING:
    from loguru import Logger

# ─── Errors ──────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class HttpError(Exception):
    status: int
    body: str

    def __str__(self) -> str:
        return f"HTTP {self.status}: {self.body}"

    @property
    def reasons(self) -> tuple[str, ...]:
        """Error reasons from a Google-style JSON error body."""
        try:
            payload = _json.loads(self.body)
        except ValueError:
            return ()
        if not isinstance(payload, dict):
            return ()
        error = payload.get("error")
        match error:
            case str():
                return (error,)
            case dict():
                reasons = [
                    d["reason"] for d in error.get("errors") or ()
                    if isinstance(d, dict) and "reason" in d
                ]
                if isinstance(error.get("status"), str):
                    reasons.append(error["status"])
                return tuple(reasons)
            case _:
                return ()


# ─── Request ─────────────────────────────────────────────────────────


@dataclass(slots=True)
class OutgoingRequest:
    """A request on its way through the stage pipeline.

    ``url`` is the address actually dialed; stages may rewrite headers and
    TLS settings but never the URL.
    """

    method: str
    url: URL
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] | None = None
    json: Any = None
    ssl: SSLContext | bool = True
    server_hostname: str | None = None


@runtime_checkable
class Stage(Protocol):
    async def prepare(self, request: OutgoingRequest) -> None: ...
    def observe(self, request: OutgoingRequest, response: aiohttp.ClientResponse) -> None: ...


# ─── Client ──────────────────────────────────────────────────────────


class ApiClient:
    """HTTP client that runs every request through an ordered stage pipeline."""

    def __init__(
        self,
        base_url: str | URL,
        stages: Sequence[Stage] = (),
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        default_headers: dict[str, str] | None = None,
        log: Logger | None = None,
    ) -> None:
        self._base_url = URL(str(base_url))
        self._stages = tuple(stages)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._default_headers = default_headers or {}
        self._session: aiohttp.ClientSession | None = None
        self._log = log or logger.bind(component="http")

    @property
    def base_url(self) -> URL:
        return self._base_url

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    def _url(self, path: str) -> URL:
        base = str(self._base_url).rstrip("/")
        return URL(f"{base}/{path.lstrip('/')}", encoded=False)

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def prepare(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> OutgoingRequest:
        request = OutgoingRequest(
            method=method,
            url=self._url(path),
            headers=dict(self._default_headers),
            params=params,
            json=json,
        )
        for stage in self._stages:
            await stage.prepare(request)
        return request

    async def open(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> aiohttp.ClientResponse:
        """Send a request and return the unread response.

        The caller owns the response and must release it, typically with
        ``async with response:``.

        Raises:
            HttpError: On a 4xx/5xx status, or with status 0 when the
                request never produced a response.
        """
        session = await self._ensure_session()
        request = await self.prepare(method, path, json=json, params=params)
        self._log.debug("{method} {url}", method=method, url=request.url)

        try:
            resp = await session.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params,
                json=request.json,
                ssl=request.ssl,
                server_hostname=request.server_hostname,
            )
        except aiohttp.ClientResponseError as e:
            raise HttpError(status=e.status, body=e.message) from e
        except aiohttp.ClientError as e:
            raise HttpError(status=0, body=str(e)) from e

        for stage in self._stages:
            stage.observe(request, resp)

        if resp.status >= 400:
            try:
                body = await resp.text()
            finally:
                resp.release()
            self._log.warning(
                "HTTP {status} from {url}: {body}",
                status=resp.status, url=str(resp.url), body=body[:500],
            )
            raise HttpError(status=resp.status, body=body)
        return resp

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
        format: Literal["json", "text"] = "json",
    ) -> Any:
        resp = await self.open(method, path, json=json, params=params)
        async with resp:
            match format:
                case "json":
                    body = await resp.read()
                    return _json.loads(body) if body else None
                case "text":
                    return await resp.text()

    # ─── Lifecycle ───────────────────────────────────────────────────

    async def close(self) -> None:
        if self._session and not self._session.closed:
            self._log.debug("Closing HTTP session")
            await self._session.close()

    async def __aenter__(self) -> ApiClient:
        await self._ensure_session()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()
