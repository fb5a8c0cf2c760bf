"""Factories and one-shot request helpers."""

from __future__ import annotations

import re
from dataclasses import replace
from types import MappingProxyType
from typing import Any

from .client import ApiClient, AsyncApiClient
from .config import DEFAULT_USER_AGENT, CacheConfig, ClientConfig, RequestConfig
from .graphql import DEFAULT_ENDPOINT, GraphQLClient
from .models import ApiResponse

DEFAULT_HEADERS = MappingProxyType(
    {
        "Accept": "application/json",
        "User-Agent": DEFAULT_USER_AGENT,
    }
)

_GRAPHQL_SUFFIX = re.compile(r"/graphql.*$")
_CLIENT_KWARGS = frozenset({"transport", "transports", "httpx_client", "cache", "middlewares"})


def default_client_config(**overrides: Any) -> ClientConfig:
    config = ClientConfig(headers=DEFAULT_HEADERS, cache=CacheConfig(enabled=False))
    if "headers" in overrides:
        overrides["headers"] = {**DEFAULT_HEADERS, **overrides["headers"]}
    return replace(config, **overrides) if overrides else config


def _split(config: ClientConfig | None, kwargs: dict[str, Any]) -> tuple[ClientConfig, dict[str, Any]]:
    client_kwargs = {key: kwargs.pop(key) for key in list(kwargs) if key in _CLIENT_KWARGS}
    if config is None:
        return default_client_config(**kwargs), client_kwargs
    return (replace(config, **kwargs) if kwargs else config), client_kwargs


def create_client(config: ClientConfig | None = None, **kwargs: Any) -> ApiClient:
    """Build an :class:`ApiClient`; transport and cache keywords go to the client, the rest to the config."""
    config, client_kwargs = _split(config, kwargs)
    return ApiClient(config, **client_kwargs)


def create_async_client(config: ClientConfig | None = None, **kwargs: Any) -> AsyncApiClient:
    config, client_kwargs = _split(config, kwargs)
    return AsyncApiClient(config, **client_kwargs)


def create_rest_client(base_url: str, **kwargs: Any) -> ApiClient:
    return create_client(base_url=base_url, **kwargs)


def create_graphql_client(endpoint: str, **kwargs: Any) -> GraphQLClient:
    """Split ``https://host/graphql`` into a base URL and the GraphQL path."""
    base_url = _GRAPHQL_SUFFIX.sub("", endpoint)
    path = endpoint[len(base_url):] or DEFAULT_ENDPOINT
    return GraphQLClient(create_client(base_url=base_url, **kwargs), endpoint=path)


def request(url: str, *, client_config: ClientConfig | None = None, **kwargs: Any) -> ApiResponse[Any]:
    """Send one request with a throwaway client."""
    with ApiClient(client_config or default_client_config()) as client:
        return client.request(RequestConfig(url=url), **kwargs)


async def arequest(url: str, *, client_config: ClientConfig | None = None, **kwargs: Any) -> ApiResponse[Any]:
    async with AsyncApiClient(client_config or default_client_config()) as client:
        return await client.request(RequestConfig(url=url), **kwargs)
