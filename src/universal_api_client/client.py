"""Main synchronous and asynchronous API clients."""

from __future__ import annotations

import inspect
import logging
import os
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping

import httpx

from .cache import ResponseCache, cache_key
from .cancellation import run_cancellable
from .config import ClientConfig, RequestConfig, merge_config, request_config_from
from .errors import normalize_error
from .exceptions import ApiError, ApiValidationError
from .middleware import Middleware
from .models import ApiResponse
from .retry import RetryPolicy, RetryScheduler
from .transports import AsyncTransport, Transport, create_async_transport, create_transport

logger = logging.getLogger(__name__)


def _describe(config: RequestConfig) -> str:
    return f"{config.method} {config.url}"


class _BaseApiClient:
    base_url_env_var = "UNIVERSAL_API_BASE_URL"

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        cache: ResponseCache | None = None,
        middlewares: Iterable[Middleware] | None = None,
        **overrides: Any,
    ) -> None:
        config = config or ClientConfig()
        if overrides:
            config = replace(config, **overrides)
        if not config.base_url and os.getenv(self.base_url_env_var):
            config = replace(config, base_url=os.getenv(self.base_url_env_var))
        self.config = config
        if cache is None:
            cache = ResponseCache(max_size=config.cache.max_size, ttl=config.cache.ttl)
        self.cache = cache
        self._middlewares: list[Middleware] = list(middlewares or [])

    def update_config(self, **changes: Any) -> None:
        self.config = replace(self.config, **changes)
        if "cache" in changes:
            self.cache.ttl = self.config.cache.ttl
            self.cache.max_size = self.config.cache.max_size

    @property
    def middlewares(self) -> tuple[Middleware, ...]:
        return tuple(self._middlewares)

    def use(self, middleware: Middleware) -> None:
        self._middlewares.append(middleware)

    def remove(self, name: str) -> None:
        self._middlewares = [m for m in self._middlewares if m.name != name]

    def clear_middlewares(self) -> None:
        self._middlewares = []

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> dict[str, Any]:
        return self.cache.stats()

    def _prepare(self, config: RequestConfig | None, overrides: Mapping[str, Any]) -> RequestConfig:
        return merge_config(self.config, request_config_from(config, overrides))

    def _cache_key(self, config: RequestConfig) -> str | None:
        if config.method != "GET" or not self.config.cache.enabled:
            return None
        return cache_key(config.url or "", config.params)

    def _store(self, key: str | None, response: ApiResponse[Any]) -> None:
        if key is None:
            return
        self.cache.set(key, response, ttl=self.config.cache.ttl)
        logger.debug("Cached response for %s", key)

    def _cached(self, key: str | None) -> ApiResponse[Any] | None:
        if key is None:
            return None
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
        return cached

    def _run_request_stages(self, config: RequestConfig) -> RequestConfig:
        for middleware in self._middlewares:
            if middleware.request is not None:
                config = middleware.request(config) or config
        return config

    def _run_response_stages(self, response: ApiResponse[Any]) -> ApiResponse[Any]:
        for middleware in self._middlewares:
            if middleware.response is not None:
                response = middleware.response(response) or response
        return response

    def _run_error_stages(self, error: ApiError) -> ApiError:
        for middleware in self._middlewares:
            if middleware.error is not None:
                result = middleware.error(error)
                if isinstance(result, ApiError):
                    error = result
        return error


class ApiClient(_BaseApiClient):
    """Synchronous client."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: Transport | None = None,
        transports: Mapping[str, Transport] | None = None,
        httpx_client: httpx.Client | None = None,
        cache: ResponseCache | None = None,
        middlewares: Iterable[Middleware] | None = None,
        **overrides: Any,
    ) -> None:
        super().__init__(config, cache=cache, middlewares=middlewares, **overrides)
        self._transports: dict[str, Transport] = dict(transports or {})
        if transport is not None:
            self._transports[self.config.adapter] = transport
        elif self.config.adapter not in self._transports:
            self._transports[self.config.adapter] = create_transport(self.config.adapter, client=httpx_client)

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        seen: set[int] = set()
        for transport in self._transports.values():
            if id(transport) not in seen:
                seen.add(id(transport))
                transport.close()

    def _transport_for(self, config: RequestConfig) -> Transport:
        name = config.adapter or self.config.adapter
        try:
            return self._transports[name]
        except KeyError:
            raise ApiValidationError(f"Transport '{name}' is not configured on this client") from None

    @staticmethod
    def _call_hook(hook: Callable[[Any], Any] | None, value: Any) -> Any:
        if hook is None:
            return value
        result = hook(value)
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise ApiValidationError(f"Hook {hook!r} is asynchronous; use AsyncApiClient for async hooks")
        return value if result is None else result

    def request(self, config: RequestConfig | None = None, /, **overrides: Any) -> ApiResponse[Any]:
        try:
            effective = self._prepare(config, overrides)
            effective = self._run_request_stages(effective)
            response = self._send(effective)
            return self._run_response_stages(response)
        except Exception as exc:
            error = self._run_error_stages(normalize_error(exc))
            if error is exc:
                raise
            raise error from exc

    def _send(self, config: RequestConfig) -> ApiResponse[Any]:
        key = self._cache_key(config)
        cached = self._cached(key)
        if cached is not None:
            return cached

        hooks = self.config.hooks
        try:
            config = self._call_hook(hooks.before_request, config)
            transport = self._transport_for(config)
            scheduler = RetryScheduler(
                RetryPolicy.from_config(config),
                cancel_token=config.cancel_token,
                description=_describe(config),
            )
            logger.debug("Sending %s", _describe(config))
            effective = config
            response = scheduler.run(lambda: transport.execute(effective))
            self._store(key, response)
            return self._call_hook(hooks.after_response, response)
        except Exception as exc:
            error = normalize_error(exc)
            self._call_hook(hooks.on_error, error)
            if error is exc:
                raise
            raise error from exc

    def get(self, url: str, **overrides: Any) -> ApiResponse[Any]:
        return self.request(method="GET", url=url, **overrides)

    def post(self, url: str, data: Any = None, **overrides: Any) -> ApiResponse[Any]:
        return self.request(method="POST", url=url, data=data, **overrides)

    def put(self, url: str, data: Any = None, **overrides: Any) -> ApiResponse[Any]:
        return self.request(method="PUT", url=url, data=data, **overrides)

    def patch(self, url: str, data: Any = None, **overrides: Any) -> ApiResponse[Any]:
        return self.request(method="PATCH", url=url, data=data, **overrides)

    def delete(self, url: str, **overrides: Any) -> ApiResponse[Any]:
        return self.request(method="DELETE", url=url, **overrides)

    def head(self, url: str, **overrides: Any) -> ApiResponse[Any]:
        return self.request(method="HEAD", url=url, **overrides)

    def options(self, url: str, **overrides: Any) -> ApiResponse[Any]:
        return self.request(method="OPTIONS", url=url, **overrides)


class AsyncApiClient(_BaseApiClient):
    """Asynchronous client."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: AsyncTransport | None = None,
        transports: Mapping[str, AsyncTransport] | None = None,
        httpx_client: httpx.AsyncClient | None = None,
        cache: ResponseCache | None = None,
        middlewares: Iterable[Middleware] | None = None,
        **overrides: Any,
    ) -> None:
        super().__init__(config, cache=cache, middlewares=middlewares, **overrides)
        self._transports: dict[str, AsyncTransport] = dict(transports or {})
        if transport is not None:
            self._transports[self.config.adapter] = transport
        elif self.config.adapter not in self._transports:
            self._transports[self.config.adapter] = create_async_transport(
                self.config.adapter, client=httpx_client
            )

    async def __aenter__(self) -> "AsyncApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        seen: set[int] = set()
        for transport in self._transports.values():
            if id(transport) not in seen:
                seen.add(id(transport))
                await transport.aclose()

    def _transport_for(self, config: RequestConfig) -> AsyncTransport:
        name = config.adapter or self.config.adapter
        try:
            return self._transports[name]
        except KeyError:
            raise ApiValidationError(f"Transport '{name}' is not configured on this client") from None

    @staticmethod
    async def _call_hook(hook: Callable[[Any], Any] | None, value: Any) -> Any:
        if hook is None:
            return value
        result = hook(value)
        if inspect.isawaitable(result):
            result = await result
        return value if result is None else result

    async def request(self, config: RequestConfig | None = None, /, **overrides: Any) -> ApiResponse[Any]:
        try:
            effective = self._prepare(config, overrides)
            effective = self._run_request_stages(effective)
            response = await self._send(effective)
            return self._run_response_stages(response)
        except Exception as exc:
            error = self._run_error_stages(normalize_error(exc))
            if error is exc:
                raise
            raise error from exc

    async def _send(self, config: RequestConfig) -> ApiResponse[Any]:
        key = self._cache_key(config)
        cached = self._cached(key)
        if cached is not None:
            return cached

        hooks = self.config.hooks
        try:
            config = await self._call_hook(hooks.before_request, config)
            transport = self._transport_for(config)
            scheduler = RetryScheduler(
                RetryPolicy.from_config(config),
                cancel_token=config.cancel_token,
                description=_describe(config),
            )
            logger.debug("Sending %s", _describe(config))
            effective = config
            response = await scheduler.arun(
                lambda: run_cancellable(transport.execute(effective), effective.cancel_token, effective.timeout)
            )
            self._store(key, response)
            return await self._call_hook(hooks.after_response, response)
        except Exception as exc:
            error = normalize_error(exc)
            await self._call_hook(hooks.on_error, error)
            if error is exc:
                raise
            raise error from exc

    async def get(self, url: str, **overrides: Any) -> ApiResponse[Any]:
        return await self.request(method="GET", url=url, **overrides)

    async def post(self, url: str, data: Any = None, **overrides: Any) -> ApiResponse[Any]:
        return await self.request(method="POST", url=url, data=data, **overrides)

    async def put(self, url: str, data: Any = None, **overrides: Any) -> ApiResponse[Any]:
        return await self.request(method="PUT", url=url, data=data, **overrides)

    async def patch(self, url: str, data: Any = None, **overrides: Any) -> ApiResponse[Any]:
        return await self.request(method="PATCH", url=url, data=data, **overrides)

    async def delete(self, url: str, **overrides: Any) -> ApiResponse[Any]:
        return await self.request(method="DELETE", url=url, **overrides)

    async def head(self, url: str, **overrides: Any) -> ApiResponse[Any]:
        return await self.request(method="HEAD", url=url, **overrides)

    async def options(self, url: str, **overrides: Any) -> ApiResponse[Any]:
        return await self.request(method="OPTIONS", url=url, **overrides)
