from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from universal_api_client.client import ApiClient, AsyncApiClient
from universal_api_client.exceptions import ApiClientError, ApiGraphQLError, ApiServerError, ErrorType
from universal_api_client.graphql import (
    AsyncGraphQLClient,
    GraphQLClient,
    build_graphql_payload,
    execute_graphql,
    extract_operation_name,
    graphql_mutation,
    graphql_query,
    parse_graphql_response,
    validate_graphql_query,
)
from universal_api_client.helpers import create_graphql_client
from universal_api_client.models import GraphQLRequest


def _client(handler, **overrides) -> ApiClient:
    return ApiClient(
        base_url="https://api.test",
        retries=0,
        httpx_client=httpx.Client(transport=httpx.MockTransport(handler)),
        **overrides,
    )


def test_payload_trims_query_and_omits_missing_members() -> None:
    assert build_graphql_payload("  { viewer { id } }\n") == {"query": "{ viewer { id } }"}
    assert build_graphql_payload(
        GraphQLRequest(query="query Q { a }", variables={"x": 1}, operationName="Q")
    ) == {"query": "query Q { a }", "variables": {"x": 1}, "operationName": "Q"}
    assert build_graphql_payload({"query": "{ a }", "operation_name": "A"}) == {
        "query": "{ a }",
        "operationName": "A",
    }


@pytest.mark.parametrize("query", ["", "   ", None, 42])
def test_empty_query_fails_before_any_request(query) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"data": {}})

    with pytest.raises(ApiClientError) as exc_info:
        execute_graphql(_client(handler), {"query": query})

    assert exc_info.value.type is ErrorType.CLIENT
    assert exc_info.value.field == "query"
    assert calls == []


def test_execute_posts_envelope_to_endpoint() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["content_type"] = request.headers["content-type"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"user": {"id": "1"}}, "extensions": {"cost": 3}})

    result = execute_graphql(
        _client(handler),
        {"query": "query GetUser($id: ID!) { user(id: $id) { id } }", "variables": {"id": "1"}},
        endpoint="/api/graphql",
    )

    assert captured == {
        "method": "POST",
        "path": "/api/graphql",
        "content_type": "application/json",
        "body": {
            "query": "query GetUser($id: ID!) { user(id: $id) { id } }",
            "variables": {"id": "1"},
        },
    }
    assert result.data == {"user": {"id": "1"}}
    assert result.extensions == {"cost": 3}
    assert result.errors is None


def test_partial_data_with_errors_is_a_failure() -> None:
    body = {
        "data": {"user": None, "viewer": {"id": "me"}},
        "errors": [
            {
                "message": "User not found",
                "path": ["user", 0],
                "extensions": {"code": "NOT_FOUND"},
                "locations": [{"line": 1, "column": 3}],
            },
            {"message": "second"},
        ],
    }
    client = _client(lambda request: httpx.Response(200, json=body))

    with pytest.raises(ApiGraphQLError) as exc_info:
        graphql_query(client, "{ user { id } viewer { id } }")

    error = exc_info.value
    assert error.message == "User not found"
    assert error.field == "user"
    assert error.extensions == {"code": "NOT_FOUND"}
    assert len(error.errors) == 2
    assert error.details["data"] == body["data"]
    assert error.retryable is False


def test_parse_rejects_non_object_bodies() -> None:
    with pytest.raises(ApiGraphQLError):
        parse_graphql_response("<html>")
    assert parse_graphql_response({"data": None, "errors": []}).data is None


def test_http_errors_pass_through_unchanged() -> None:
    client = _client(lambda request: httpx.Response(502, json={"message": "bad gateway"}))
    with pytest.raises(ApiServerError):
        execute_graphql(client, "{ a }")


def test_query_and_mutation_helpers_return_data() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        if payload["query"].startswith("mutation"):
            return httpx.Response(200, json={"data": {"created": payload["variables"]["name"]}})
        return httpx.Response(200, json={"data": {}})

    client = _client(handler)
    assert graphql_mutation(client, "mutation { create }", {"name": "x"}) == {"created": "x"}
    assert graphql_query(client, "{ nothing }") is None


def test_graphql_client_binds_endpoint_and_headers() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.url.path, request.headers.get("x-trace")))
        return httpx.Response(200, json={"data": {"ok": True}})

    with GraphQLClient(_client(handler), endpoint="/gql") as client:
        assert client.query("{ ok }", headers={"X-Trace": "t1"}) == {"ok": True}
        assert client.mutate("mutation { ok }") == {"ok": True}
    assert seen == [("/gql", "t1"), ("/gql", None)]


def test_create_graphql_client_splits_endpoint(monkeypatch) -> None:
    created = {}

    def fake_create_client(**kwargs):
        created.update(kwargs)
        return _client(lambda request: httpx.Response(200, json={"data": {"ok": 1}}))

    monkeypatch.setattr("universal_api_client.helpers.create_client", fake_create_client)
    client = create_graphql_client("https://api.test/graphql/v2", retries=1)

    assert created == {"base_url": "https://api.test", "retries": 1}
    assert client.endpoint == "/graphql/v2"


def test_async_graphql_client() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        if "broken" in payload["query"]:
            return httpx.Response(200, json={"errors": [{"message": "boom"}]})
        return httpx.Response(200, json={"data": {"n": 1}})

    async def scenario() -> None:
        api = AsyncApiClient(
            base_url="https://api.test",
            httpx_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        async with AsyncGraphQLClient(api) as client:
            assert await client.query("{ n }") == {"n": 1}
            with pytest.raises(ApiGraphQLError, match="boom"):
                await client.execute("{ broken }")

    asyncio.run(scenario())


@pytest.mark.parametrize(
    ("query", "valid", "problems"),
    [
        ("query { a }", True, []),
        ("mutation Add { add { id } }", True, []),
        ("query { a ", False, ["Query has unbalanced braces"]),
        ("{ a }", False, ["Query must contain a valid GraphQL operation (query, mutation, or subscription)"]),
        ("   ", False, ["Query cannot be empty"]),
        ("", False, ["Query must be a non-empty string"]),
    ],
)
def test_validate_graphql_query(query: str, valid: bool, problems: list[str]) -> None:
    assert validate_graphql_query(query) == (valid, problems)


def test_extract_operation_name() -> None:
    assert extract_operation_name("query GetUser($id: ID!) { user }") == "GetUser"
    assert extract_operation_name("mutation   Save { save }") == "Save"
    assert extract_operation_name("{ anonymous }") is None
