from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Literal, Protocol, TypeVar, runtime_checkable

import aiohttp
from loguru import logger

# ─── Errors ──────────────────────────────────────────────────────────


@runtime_checkable
class Releasable(Protocol):
    def release(self) -> Any: ...


@dataclass(frozen=True, slots=True)
class HttpError(Exception):
    """HTTP failure. Status 0 means no response was received."""

    status: int
    body: str
    raw: Releasable | None = field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        if self.status == 0:
            return f"transport error: {self.body}"
        return f"HTTP {self.status}: {self.body}"


T = TypeVar("T")


# ─── Response ────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Response(Generic[T]):
    status: int
    data: T
    headers: dict[str, str]
    raw: Releasable | None = field(default=None, compare=False, repr=False)


# ─── Auth ────────────────────────────────────────────────────────────


@runtime_checkable
class Auth(Protocol):
    async def headers(self) -> dict[str, str]: ...
    async def refresh(self) -> None: ...


class StaticTokenAuth:
    """Fixed X-Auth-Token; refresh is a no-op."""

    def __init__(self, token: str) -> None:
        self._token = token

    async def headers(self) -> dict[str, str]:
        return {"X-Auth-Token": self._token, "Accept": "application/json"}

    async def refresh(self) -> None:
        pass


# ─── Client ──────────────────────────────────────────────────────────


class HttpClient:
    """JSON client for one service endpoint.

    Failures are raised as HttpError and never retried here; retry and
    credential refresh belong to kcprovider.core.executor.
    """

    def __init__(
        self,
        base_url: str,
        auth: Auth | None = None,
        *,
        timeout: float = 30,
        default_headers: dict[str, str] | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = auth
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._default_headers = default_headers or {}
        self._session = session
        self._owns_session = session is None
        self._log = logger.bind(component="http")

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def _build_headers(self) -> dict[str, str]:
        headers = dict(self._default_headers)
        if self._auth:
            headers.update(await self._auth.headers())
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | list[Any] | None = None,
        params: dict[str, Any] | None = None,
        format: Literal["json", "text"] = "json",
    ) -> Response[Any]:
        session = await self._ensure_session()
        headers = await self._build_headers()
        self._log.debug("{method} {path}", method=method, path=path)

        try:
            async with session.request(
                method, self._url(path), headers=headers, json=json, params=params
            ) as resp:
                return await self._parse(resp, format)
        except aiohttp.ClientResponseError as e:
            raise HttpError(status=e.status, body=e.message) from e
        except aiohttp.ClientError as e:
            raise HttpError(status=0, body=str(e) or type(e).__name__) from e
        except TimeoutError as e:
            raise HttpError(status=0, body=f"request timed out: {method} {path}") from e

    async def _parse(
        self, resp: aiohttp.ClientResponse, format: Literal["json", "text"]
    ) -> Response[Any]:
        if resp.status >= 400:
            body = await resp.text(errors="replace")
            self._log.warning(
                "HTTP {status} from {url}: {body}",
                status=resp.status, url=str(resp.url), body=body[:500],
            )
            raise HttpError(status=resp.status, body=body, raw=resp)
        resp_headers = dict(resp.headers)
        try:
            match format:
                case "json":
                    raw_body = await resp.read()
                    data = await resp.json(content_type=None) if raw_body else None
                case "text":
                    data = await resp.text()
        except ValueError as e:
            # undecodable 2xx body, e.g. a proxy's HTML page
            preview = (await resp.read())[:500].decode(errors="replace")
            self._log.warning(
                "Malformed {format} body from {url}: {body}",
                format=format, url=str(resp.url), body=preview,
            )
            raise HttpError(
                status=resp.status, body=f"malformed response body: {preview}", raw=resp
            ) from e
        return Response(status=resp.status, data=data, headers=resp_headers, raw=resp)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | list[Any] | None = None,
        params: dict[str, Any] | None = None,
        format: Literal["json", "text"] = "json",
    ) -> Response[Any]:
        return await self._send(method, path, json=json, params=params, format=format)

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> Response[Any]:
        return await self._send("GET", path, params=params)

    async def post(
        self,
        path: str,
        *,
        json: dict[str, Any] | list[Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Response[Any]:
        return await self._send("POST", path, json=json, params=params)

    async def put(
        self,
        path: str,
        *,
        json: dict[str, Any] | list[Any] | None = None,
    ) -> Response[Any]:
        return await self._send("PUT", path, json=json)

    async def patch(
        self,
        path: str,
        *,
        json: dict[str, Any] | list[Any] | None = None,
    ) -> Response[Any]:
        return await self._send("PATCH", path, json=json)

    async def delete(self, path: str, *, params: dict[str, Any] | None = None) -> Response[Any]:
        return await self._send("DELETE", path, params=params)

    # ─── Lifecycle ───────────────────────────────────────────────────

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            self._log.debug("Closing HTTP session")
            await self._session.close()

    async def __aenter__(self) -> HttpClient:
        await self._ensure_session()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()
