"""Client defaults, per-request overrides and the merge between them."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping
from urllib.parse import urlsplit

from .exceptions import ApiValidationError

if TYPE_CHECKING:
    from .cancellation import CancellationToken


DEFAULT_USER_AGENT = "universal-api-client/0.1.0"
DEFAULT_RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})
RESPONSE_TYPES = frozenset({"json", "text", "bytes"})


class BackoffStrategy(str, Enum):
    IMMEDIATE = "immediate"
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RequestConfig:
    """A single call's settings; ``None`` inherits the client value."""

    method: str | None = None
    url: str | None = None
    headers: Mapping[str, str] | None = None
    params: Mapping[str, Any] | None = None
    data: Any = None
    timeout: float | None = None
    adapter: str | None = None
    retries: int | None = None
    retry_delay: float | None = None
    retry_strategy: BackoffStrategy | str | None = None
    retryable_status_codes: frozenset[int] | None = None
    cancel_token: CancellationToken | None = None
    with_credentials: bool | None = None
    response_type: str | None = None


@dataclass(frozen=True)
class CacheConfig:
    enabled: bool = False
    ttl: float = 300.0
    max_size: int = 100


@dataclass(frozen=True)
class Hooks:
    before_request: Callable[[RequestConfig], Any] | None = None
    after_response: Callable[[Any], Any] | None = None
    on_error: Callable[[Any], Any] | None = None


@dataclass(frozen=True)
class ClientConfig:
    base_url: str | None = None
    timeout: float = 30.0
    adapter: str = "httpx"
    headers: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({"User-Agent": DEFAULT_USER_AGENT})
    )
    retries: int = 3
    retry_delay: float = 1.0
    retry_strategy: BackoffStrategy | str = BackoffStrategy.EXPONENTIAL
    retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES
    with_credentials: bool = False
    cache: CacheConfig = field(default_factory=CacheConfig)
    hooks: Hooks = field(default_factory=Hooks)


def build_url(base_url: str, path: str) -> str:
    """Join ``base_url`` and ``path`` with exactly one slash between them."""
    base = base_url.rstrip("/")
    clean = path.lstrip("/")
    if not clean:
        return base
    return f"{base}/{clean}"


def _is_absolute(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


def _normalize_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    if not headers:
        return {}
    return {str(key): str(value) for key, value in headers.items()}


def merge_config(defaults: ClientConfig, request: RequestConfig) -> RequestConfig:
    """Produce the effective configuration for one call.

    Headers are a shallow union where the request wins on collisions. A
    relative URL is joined onto ``defaults.base_url``; malformed URLs are left
    for the transport to reject.
    """
    headers = _normalize_headers(defaults.headers)
    headers.update(_normalize_headers(request.headers))

    url = request.url or ""
    if defaults.base_url and not _is_absolute(url):
        url = build_url(defaults.base_url, url)

    def pick(name: str) -> Any:
        value = getattr(request, name)
        return getattr(defaults, name) if value is None else value

    retryable = request.retryable_status_codes
    if retryable is None:
        retryable = defaults.retryable_status_codes

    try:
        strategy = BackoffStrategy(pick("retry_strategy"))
    except ValueError as exc:
        raise ApiValidationError(f"Unknown retry strategy: {pick('retry_strategy')}", original=exc) from exc

    response_type = request.response_type or "json"
    if response_type not in RESPONSE_TYPES:
        raise ApiValidationError(f"Unknown response type: {response_type}")

    return RequestConfig(
        method=(request.method or "GET").upper(),
        url=url,
        headers=MappingProxyType(headers),
        params=dict(request.params) if request.params is not None else None,
        data=request.data,
        timeout=pick("timeout"),
        adapter=pick("adapter"),
        retries=pick("retries"),
        retry_delay=pick("retry_delay"),
        retry_strategy=strategy,
        retryable_status_codes=frozenset(retryable),
        cancel_token=request.cancel_token,
        with_credentials=pick("with_credentials"),
        response_type=response_type,
    )


def request_config_from(config: RequestConfig | None, overrides: Mapping[str, Any]) -> RequestConfig:
    """Combine an optional ``RequestConfig`` with keyword overrides."""
    known = {f.name for f in fields(RequestConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise TypeError(f"Unknown request option(s): {', '.join(sorted(unknown))}")
    base = config or RequestConfig()
    return replace(base, **overrides) if overrides else base
