from __future__ import annotations

import asyncio

import httpx
import pydantic
import pytest

from universal_api_client.errors import create_error, normalize_error
from universal_api_client.exceptions import (
    ApiAuthError,
    ApiCancelledError,
    ApiError,
    ApiGraphQLError,
    ApiHTTPError,
    ApiNetworkError,
    ApiRateLimitError,
    ApiServerError,
    ApiTimeoutError,
    ApiUnknownError,
    ApiValidationError,
    ErrorSource,
    ErrorType,
    is_retryable_error,
    is_retryable_status,
)
from universal_api_client.models import GraphQLRequest


@pytest.mark.parametrize(
    ("status", "expected"),
    [(408, True), (429, True), (500, True), (503, True), (599, True), (400, False), (404, False), (409, False)],
)
def test_is_retryable_status(status: int, expected: bool) -> None:
    assert is_retryable_status(status) is expected


def test_is_retryable_error_by_type() -> None:
    assert is_retryable_error("network")
    assert is_retryable_error(ErrorType.TIMEOUT)
    assert is_retryable_error(ErrorType.SERVER)
    assert is_retryable_error(ErrorType.HTTP, 429)
    assert not is_retryable_error(ErrorType.HTTP, 404)
    assert not is_retryable_error(ErrorType.HTTP)
    assert not is_retryable_error(ErrorType.AUTH, 401)
    assert not is_retryable_error(ErrorType.GRAPHQL)
    assert not is_retryable_error(ErrorType.VALIDATION)


def test_normalize_returns_api_errors_unchanged() -> None:
    error = ApiAuthError("denied", status=401)
    assert normalize_error(error) is error


def test_normalize_httpx_status_error() -> None:
    request = httpx.Request("GET", "https://api.test/x")
    response = httpx.Response(
        503,
        json={"message": "maintenance", "code": "M1"},
        headers={"X-Request-ID": "abc", "Retry-After": "12"},
        request=request,
    )
    original = httpx.HTTPStatusError("boom", request=request, response=response)

    error = normalize_error(original)

    assert isinstance(error, ApiServerError)
    assert error.status == 503
    assert error.message == "maintenance"
    assert error.code == "M1"
    assert error.request_id == "abc"
    assert error.retry_after == 12.0
    assert error.source is ErrorSource.SERVER
    assert error.original is original
    assert error.retryable is True


def test_normalize_status_without_json_uses_reason_phrase() -> None:
    request = httpx.Request("GET", "https://api.test/x")
    response = httpx.Response(404, text="", request=request)
    error = normalize_error(httpx.HTTPStatusError("x", request=request, response=response))
    assert type(error) is ApiHTTPError
    assert error.message == "Not Found"


@pytest.mark.parametrize(
    "exc",
    [
        httpx.ReadTimeout("read timed out"),
        asyncio.TimeoutError(),
        TimeoutError("slow"),
    ],
)
def test_normalize_timeouts(exc: BaseException) -> None:
    error = normalize_error(exc)
    assert isinstance(error, ApiTimeoutError)
    assert error.type is ErrorType.TIMEOUT
    assert error.source is ErrorSource.NETWORK
    assert error.retryable is True


@pytest.mark.parametrize(
    "exc",
    [httpx.ConnectError("refused"), ConnectionResetError("reset"), OSError("unreachable")],
)
def test_normalize_network_failures(exc: BaseException) -> None:
    error = normalize_error(exc)
    assert isinstance(error, ApiNetworkError)
    assert error.retryable is True


def test_normalize_pydantic_validation_error() -> None:
    with pytest.raises(pydantic.ValidationError) as exc_info:
        GraphQLRequest.model_validate({"variables": {}})

    error = normalize_error(exc_info.value)
    assert isinstance(error, ApiValidationError)
    assert error.details[0]["loc"] == ("query",)


def test_normalize_mapping_with_status() -> None:
    error = normalize_error({"message": "slow down", "status": 429, "headers": {"Retry-After": "2"}})
    assert isinstance(error, ApiRateLimitError)
    assert error.retry_after == 2.0
    assert error.retryable is True


def test_normalize_unknown_values() -> None:
    assert isinstance(normalize_error({"message": "odd"}), ApiUnknownError)
    assert normalize_error(ValueError("bad")).message == "bad"
    assert normalize_error("text").message == "text"
    assert normalize_error(KeyError()).message == "KeyError"
    assert normalize_error(RuntimeError(), source="server").source is ErrorSource.SERVER


def test_create_error_picks_class_for_type() -> None:
    error = create_error("graphql", "bad query", errors=[{"message": "x"}], field="q")
    assert isinstance(error, ApiGraphQLError)
    assert error.errors == [{"message": "x"}]
    assert error.field == "q"
    assert isinstance(create_error(ErrorType.AUTH, "no"), ApiAuthError)


def test_to_dict_and_str() -> None:
    error = ApiHTTPError("gone", status=410, code="E_GONE", details={"id": 1})
    assert error.to_dict() == {
        "type": "http",
        "message": "gone",
        "status": 410,
        "code": "E_GONE",
        "field": None,
        "details": {"id": 1},
        "retryable": False,
        "source": "server",
    }
    assert str(error) == "410 E_GONE: gone"
    assert str(ApiError("plain")) == "plain"


def test_cancelled_error_is_client_kind() -> None:
    error = ApiCancelledError()
    assert error.type is ErrorType.CLIENT
    assert error.code == "cancelled"
    assert error.message == "Request cancelled"
    assert error.retryable is False
