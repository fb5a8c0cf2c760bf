"""Mapping of arbitrary failures onto the canonical :class:`ApiError` shape."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

import httpx
import pydantic

from .exceptions import (
    ERROR_CLASSES,
    ApiAuthError,
    ApiError,
    ApiHTTPError,
    ApiNetworkError,
    ApiRateLimitError,
    ApiServerError,
    ApiTimeoutError,
    ApiUnknownError,
    ApiValidationError,
    ErrorSource,
    ErrorType,
    ResponseStatusError,
)
from .headers import lower_keys, parse_retry_after


def create_error(
    error_type: ErrorType | str,
    message: str,
    **kwargs: Any,
) -> ApiError:
    """Build the exception class registered for ``error_type``."""
    return ERROR_CLASSES[ErrorType(error_type)](message, **kwargs)


def _error_class_for_status(status: int) -> type[ApiHTTPError]:
    if status in {401, 403}:
        return ApiAuthError
    if status == 429:
        return ApiRateLimitError
    if status >= 500:
        return ApiServerError
    return ApiHTTPError


def _status_error(
    status: int,
    status_text: str,
    body: Any,
    headers: Mapping[str, str],
    original: object,
) -> ApiHTTPError:
    message = status_text or f"HTTP {status}"
    error_code = None
    field = None
    if isinstance(body, Mapping):
        if isinstance(body.get("error"), str):
            message = body["error"]
        elif isinstance(body.get("message"), str):
            message = body["message"]
        for key in ("error_code", "code"):
            if isinstance(body.get(key), str):
                error_code = body[key]
                break
        if isinstance(body.get("field"), str):
            field = body["field"]
    elif isinstance(body, str) and body.strip() and not status_text:
        message = body.strip()

    headers = lower_keys(headers)
    return _error_class_for_status(status)(
        message,
        status=status,
        code=error_code,
        field=field,
        details=body,
        original=original,
        headers=headers,
        request_id=headers.get("x-request-id"),
        retry_after=parse_retry_after(headers.get("retry-after")),
    )


def _from_httpx_response(response: httpx.Response, original: object) -> ApiHTTPError:
    try:
        body: Any = response.json()
    except (ValueError, httpx.ResponseNotRead):
        try:
            body = response.text
        except httpx.ResponseNotRead:
            body = None
    return _status_error(response.status_code, response.reason_phrase, body, response.headers, original)


def normalize_error(error: Any, source: ErrorSource | str | None = None) -> ApiError:
    """Classify ``error`` into exactly one :class:`ApiError`.

    Errors that are already normalized are returned unchanged, so calling
    this at several layers never wraps a failure twice.
    """
    if isinstance(error, ApiError):
        return error

    if isinstance(error, ResponseStatusError):
        response = error.response
        return _status_error(response.status, response.status_text, response.data, response.headers, error)

    if isinstance(error, httpx.HTTPStatusError):
        return _from_httpx_response(error.response, error)

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ApiTimeoutError(str(error) or "Request timed out", source=source, original=error)

    if isinstance(error, (httpx.TransportError, ConnectionError, OSError)):
        return ApiNetworkError(str(error) or "Network error", source=source, original=error)

    if isinstance(error, pydantic.ValidationError):
        return ApiValidationError(
            f"Invalid payload: {error.error_count()} validation error(s)",
            details=error.errors(),
            source=source,
            original=error,
        )

    if isinstance(error, Mapping):
        message = str(error.get("message") or "Unknown error")
        status = error.get("status")
        if isinstance(status, int) and status >= 400:
            return _status_error(status, message, error.get("body", error), error.get("headers") or {}, error)
        return ApiUnknownError(message, details=dict(error), source=source, original=error)

    if isinstance(error, BaseException):
        return ApiUnknownError(str(error) or type(error).__name__, source=source, original=error)

    return ApiUnknownError(str(error), source=source, original=error)
