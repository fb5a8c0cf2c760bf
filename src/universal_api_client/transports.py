"""Network engines behind the client.

Transports turn an effective :class:`RequestConfig` into an
:class:`ApiResponse`. They raise raw library exceptions (or
:class:`ResponseStatusError` for status >= 400) and leave classification to
:func:`normalize_error`.
"""

from __future__ import annotations

import asyncio
import json
import time
from datetime import date, datetime
from typing import Any, Mapping, Protocol, runtime_checkable

import httpx

from .config import RequestConfig
from .exceptions import ApiValidationError, ResponseStatusError
from .headers import lower_keys
from .models import ApiResponse

try:
    import aiohttp
except ImportError:  # pragma: no cover
    aiohttp = None


AIOHTTP_INSTALL_HINT = "pip install 'universal-api-client[aiohttp]'"


@runtime_checkable
class Transport(Protocol):
    def execute(self, config: RequestConfig) -> ApiResponse[Any]: ...

    def close(self) -> None: ...


@runtime_checkable
class AsyncTransport(Protocol):
    async def execute(self, config: RequestConfig) -> ApiResponse[Any]: ...

    async def aclose(self) -> None: ...


def _coerce_query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _coerce_query_params(params: Mapping[str, Any] | None) -> list[tuple[str, Any]] | None:
    if params is None:
        return None
    normalized: list[tuple[str, Any]] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            normalized.extend((key, "" if v is None else _coerce_query_value(v)) for v in value)
            continue
        normalized.append((key, _coerce_query_value(value)))
    return normalized or None


def _has_header(headers: Mapping[str, str], name: str) -> bool:
    return any(key.lower() == name for key in headers)


def _encode_body(config: RequestConfig) -> tuple[dict[str, str], dict[str, Any]]:
    """Return the headers to send and the body keyword for the engine."""
    headers = dict(config.headers or {})
    data = config.data
    if data is None or config.method == "GET":
        return headers, {}
    if isinstance(data, (bytes, bytearray)):
        return headers, {"content": bytes(data)}
    if isinstance(data, str):
        if not _has_header(headers, "content-type"):
            headers["Content-Type"] = "application/json"
        return headers, {"content": data.encode()}
    return headers, {"json": data}


def _decode_text_body(raw: bytes, text: str, response_type: str | None) -> Any:
    if response_type == "bytes":
        return raw
    if not raw:
        return None
    if response_type == "text":
        return text
    try:
        return json.loads(text)
    except ValueError:
        return text


def _finish(
    config: RequestConfig,
    *,
    status: int,
    status_text: str,
    headers: Mapping[str, str],
    data: Any,
    started: float,
) -> ApiResponse[Any]:
    response = ApiResponse(
        data=data,
        status=status,
        status_text=status_text,
        headers=lower_keys(headers),
        config=config,
        duration=time.perf_counter() - started,
    )
    if status >= 400:
        raise ResponseStatusError(response)
    return response


class HttpxTransport:
    """Synchronous transport backed by :class:`httpx.Client`.

    The request timeout is handed to httpx, which applies it to each phase
    (connect, read, write, pool) rather than as one overall deadline.
    """

    name = "httpx"

    def __init__(self, client: httpx.Client | None = None, *, follow_redirects: bool = True) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(follow_redirects=follow_redirects, trust_env=False)

    def execute(self, config: RequestConfig) -> ApiResponse[Any]:
        started = time.perf_counter()
        headers, body = _encode_body(config)
        response = self._client.request(
            config.method or "GET",
            config.url or "",
            headers=headers,
            params=_coerce_query_params(config.params),
            timeout=config.timeout if config.timeout is not None else httpx.USE_CLIENT_DEFAULT,
            **body,
        )
        if not config.with_credentials:
            self._client.cookies.clear()
        data = None
        if response.status_code != 204 and config.method != "HEAD":
            data = _decode_text_body(response.content, response.text, config.response_type)
        return _finish(
            config,
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=response.headers,
            data=data,
            started=started,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class AsyncHttpxTransport:
    """Asynchronous transport backed by :class:`httpx.AsyncClient`."""

    name = "httpx"

    def __init__(self, client: httpx.AsyncClient | None = None, *, follow_redirects: bool = True) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=follow_redirects, trust_env=False)

    async def execute(self, config: RequestConfig) -> ApiResponse[Any]:
        started = time.perf_counter()
        headers, body = _encode_body(config)
        response = await self._client.request(
            config.method or "GET",
            config.url or "",
            headers=headers,
            params=_coerce_query_params(config.params),
            timeout=config.timeout if config.timeout is not None else httpx.USE_CLIENT_DEFAULT,
            **body,
        )
        if not config.with_credentials:
            self._client.cookies.clear()
        data = None
        if response.status_code != 204 and config.method != "HEAD":
            data = _decode_text_body(response.content, response.text, config.response_type)
        return _finish(
            config,
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=response.headers,
            data=data,
            started=started,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class AiohttpTransport:
    """Asynchronous transport backed by :class:`aiohttp.ClientSession`.

    The session is created on first use so the transport can be built
    outside a running event loop.
    """

    name = "aiohttp"

    def __init__(self, session: Any = None) -> None:
        if aiohttp is None:
            raise ApiValidationError(
                f"The aiohttp transport requires aiohttp. Install it with: {AIOHTTP_INSTALL_HINT}"
            )
        self._owns_session = session is None
        self._session = session

    def _get_session(self) -> Any:
        if self._session is None:
            self._session = aiohttp.ClientSession(cookie_jar=aiohttp.CookieJar(unsafe=True))
        return self._session

    async def execute(self, config: RequestConfig) -> ApiResponse[Any]:
        started = time.perf_counter()
        session = self._get_session()
        headers, body = _encode_body(config)
        params = _coerce_query_params(config.params)
        if params is not None:
            params = [(key, str(value)) for key, value in params]
        extra: dict[str, Any] = {"json": body["json"]} if "json" in body else {}
        if "content" in body:
            extra["data"] = body["content"]
        if config.timeout:
            extra["timeout"] = aiohttp.ClientTimeout(total=config.timeout)
        try:
            async with session.request(
                config.method or "GET",
                config.url or "",
                headers=headers,
                params=params,
                **extra,
            ) as response:
                raw = await response.read()
                data = None
                if response.status != 204 and config.method != "HEAD":
                    text = raw.decode(response.get_encoding(), errors="replace") if raw else ""
                    data = _decode_text_body(raw, text, config.response_type)
                status, reason, response_headers = response.status, response.reason or "", response.headers
        except asyncio.TimeoutError:
            raise
        except aiohttp.ClientError as exc:
            raise ConnectionError(str(exc) or type(exc).__name__) from exc
        if not config.with_credentials:
            session.cookie_jar.clear()
        return _finish(
            config,
            status=status,
            status_text=reason,
            headers=response_headers,
            data=data,
            started=started,
        )

    async def aclose(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()


def create_transport(name: str, *, client: httpx.Client | None = None) -> Transport:
    """Build the synchronous transport registered under ``name``."""
    if name == "httpx":
        return HttpxTransport(client)
    if name == "aiohttp":
        raise ApiValidationError("The aiohttp transport is asynchronous; use AsyncApiClient")
    raise ApiValidationError(f"Unknown transport: {name}")


def create_async_transport(name: str, *, client: httpx.AsyncClient | None = None) -> AsyncTransport:
    """Build the asynchronous transport registered under ``name``."""
    if name == "httpx":
        return AsyncHttpxTransport(client)
    if name == "aiohttp":
        return AiohttpTransport()
    raise ApiValidationError(f"Unknown transport: {name}")
