"""Client exceptions and retry classification."""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class ErrorType(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    HTTP = "http"
    GRAPHQL = "graphql"
    AUTH = "auth"
    SERVER = "server"
    CLIENT = "client"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorSource(str, Enum):
    CLIENT = "client"
    SERVER = "server"
    NETWORK = "network"


RETRYABLE_ERROR_TYPES = frozenset({ErrorType.NETWORK, ErrorType.TIMEOUT, ErrorType.SERVER})


def is_retryable_status(status: int) -> bool:
    """Server errors, rate limiting and request timeouts are worth another attempt."""
    return status >= 500 or status in {429, 408, 503}


def is_retryable_error(error_type: ErrorType | str, status: int | None = None) -> bool:
    error_type = ErrorType(error_type)
    if error_type in RETRYABLE_ERROR_TYPES:
        return True
    if error_type is ErrorType.HTTP and status and is_retryable_status(status):
        return True
    return False


class ApiError(Exception):
    """Base exception for every failure that leaves the client."""

    type: ErrorType = ErrorType.UNKNOWN
    default_source: ErrorSource = ErrorSource.CLIENT

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        code: str | None = None,
        field: str | None = None,
        details: Any = None,
        source: ErrorSource | str | None = None,
        original: object = None,
        headers: Mapping[str, str] | None = None,
        request_id: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.field = field
        self.details = details
        self.source = ErrorSource(source) if source is not None else self.default_source
        self.original = original
        self.headers = dict(headers) if headers is not None else {}
        self.request_id = request_id
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return is_retryable_error(self.type, self.status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "message": self.message,
            "status": self.status,
            "code": self.code,
            "field": self.field,
            "details": self.details,
            "retryable": self.retryable,
            "source": self.source.value,
        }

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        parts = [f"{self.status}"]
        if self.code:
            parts.append(self.code)
        return " ".join(parts) + f": {self.message}"


class ApiNetworkError(ApiError):
    """Raised for transport-level failures like DNS and TCP errors."""

    type = ErrorType.NETWORK
    default_source = ErrorSource.NETWORK


class ApiTimeoutError(ApiError):
    """Raised when a request exceeds its configured timeout."""

    type = ErrorType.TIMEOUT
    default_source = ErrorSource.NETWORK


class ApiHTTPError(ApiError):
    """Raised for HTTP non-success responses."""

    type = ErrorType.HTTP
    default_source = ErrorSource.SERVER


class ApiAuthError(ApiHTTPError):
    """Raised for authentication and authorization failures."""

    type = ErrorType.AUTH


class ApiRateLimitError(ApiHTTPError):
    """Raised for HTTP 429 responses."""


class ApiServerError(ApiHTTPError):
    """Raised for HTTP 5xx responses."""

    type = ErrorType.SERVER


class ApiGraphQLError(ApiError):
    """Raised when a GraphQL envelope carries errors."""

    type = ErrorType.GRAPHQL
    default_source = ErrorSource.SERVER

    def __init__(
        self,
        message: str,
        *,
        errors: list[Any] | None = None,
        extensions: Any = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.errors = list(errors) if errors is not None else []
        self.extensions = extensions


class ApiClientError(ApiError):
    """Raised for misuse detected before anything is sent."""

    type = ErrorType.CLIENT


class ApiCancelledError(ApiClientError):
    """Raised when a cancellation token fires."""

    def __init__(self, message: str = "Request cancelled", **kwargs: Any) -> None:
        kwargs.setdefault("code", "cancelled")
        super().__init__(message, **kwargs)


class ApiValidationError(ApiError):
    """Raised when request/response payloads or settings are invalid."""

    type = ErrorType.VALIDATION


class ApiUnknownError(ApiError):
    """Raised for failures that match no other category."""


class ResponseStatusError(Exception):
    """Raised by transports for status >= 400; normalized before leaving the client."""

    def __init__(self, response: Any) -> None:
        super().__init__(f"HTTP {response.status}")
        self.response = response


ERROR_CLASSES: dict[ErrorType, type[ApiError]] = {
    ErrorType.NETWORK: ApiNetworkError,
    ErrorType.TIMEOUT: ApiTimeoutError,
    ErrorType.HTTP: ApiHTTPError,
    ErrorType.GRAPHQL: ApiGraphQLError,
    ErrorType.AUTH: ApiAuthError,
    ErrorType.SERVER: ApiServerError,
    ErrorType.CLIENT: ApiClientError,
    ErrorType.VALIDATION: ApiValidationError,
    ErrorType.UNKNOWN: ApiUnknownError,
}
