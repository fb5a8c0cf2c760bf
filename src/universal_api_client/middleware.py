"""Ordered request/response/error stages run by the clients."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any, Callable

from .config import RequestConfig
from .exceptions import ApiError
from .headers import sanitize_headers
from .models import ApiResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Middleware:
    """A named bundle of optional pipeline stages.

    ``request`` receives the effective config and returns the config to use.
    ``response`` receives the response and returns the response to hand back.
    ``error`` receives the normalized error and may return a replacement.
    Returning ``None`` from any stage keeps the value it was given.
    """

    name: str
    request: Callable[[RequestConfig], RequestConfig | None] | None = None
    response: Callable[[ApiResponse[Any]], ApiResponse[Any] | None] | None = None
    error: Callable[[ApiError], ApiError | None] | None = None


def _with_header(config: RequestConfig, name: str, value: str) -> RequestConfig:
    headers = dict(config.headers or {})
    headers[name] = value
    return replace(config, headers=headers)


def _log_request(config: RequestConfig) -> RequestConfig:
    logger.info("API request %s %s headers=%s", config.method, config.url, sanitize_headers(config.headers))
    return config


def _log_response(response: ApiResponse[Any]) -> ApiResponse[Any]:
    logger.info(
        "API response %s %s %s (%.1fms)",
        response.status,
        response.config.method,
        response.config.url,
        response.duration * 1000,
    )
    return response


def _log_error(error: ApiError) -> ApiError:
    logger.error("API error [%s] %s", error.type.value, error)
    return error


logging_middleware = Middleware(
    name="logging",
    request=_log_request,
    response=_log_response,
    error=_log_error,
)


def auth_middleware(token: str, scheme: str = "Bearer") -> Middleware:
    def add_authorization(config: RequestConfig) -> RequestConfig:
        return _with_header(config, "Authorization", f"{scheme} {token}")

    return Middleware(name="auth", request=add_authorization)


def _add_request_id(config: RequestConfig) -> RequestConfig:
    return _with_header(config, "X-Request-ID", uuid.uuid4().hex)


request_id_middleware = Middleware(name="request-id", request=_add_request_id)


def _warn_retryable(error: ApiError) -> ApiError:
    if error.retryable:
        logger.warning("Retryable API error after all attempts: %s", error)
    return error


retry_logging_middleware = Middleware(name="retry-logging", error=_warn_retryable)
