"""GraphQL requests over the REST clients."""

from __future__ import annotations

import re
from typing import Any, Mapping

from .client import ApiClient, AsyncApiClient
from .errors import normalize_error
from .exceptions import ApiClientError, ApiGraphQLError, ErrorSource
from .models import GraphQLRequest, GraphQLResponse

DEFAULT_ENDPOINT = "/graphql"

_OPERATION = re.compile(r"\b(query|mutation|subscription)\b", re.IGNORECASE)
_OPERATION_NAME = re.compile(r"\b(query|mutation|subscription)\s+(\w+)", re.IGNORECASE)


def build_graphql_payload(request: GraphQLRequest | Mapping[str, Any] | str) -> dict[str, Any]:
    """Build the POST body ``{query, variables, operationName}``.

    ``None`` members are left out of the body.
    """
    if isinstance(request, GraphQLRequest):
        query, variables, operation_name = request.query, request.variables, request.operation_name
    elif isinstance(request, Mapping):
        query = request.get("query")
        variables = request.get("variables")
        operation_name = request.get("operationName", request.get("operation_name"))
    else:
        query, variables, operation_name = request, None, None

    if not isinstance(query, str) or not query.strip():
        raise ApiClientError("GraphQL query is required and must be a non-empty string", field="query")

    payload: dict[str, Any] = {"query": query.strip()}
    if variables is not None:
        payload["variables"] = dict(variables)
    if operation_name is not None:
        payload["operationName"] = operation_name
    return payload


def parse_graphql_response(body: Any) -> GraphQLResponse:
    """Validate the envelope, raising when ``errors`` is non-empty.

    Partial data never counts as success: any error entry fails the call.
    """
    if not isinstance(body, Mapping):
        raise ApiGraphQLError("GraphQL response must be a JSON object", details=body)

    errors = body.get("errors")
    if errors:
        errors = list(errors)
        primary = errors[0] if isinstance(errors[0], Mapping) else {"message": str(errors[0])}
        path = primary.get("path") or []
        raise ApiGraphQLError(
            primary.get("message") or "GraphQL query failed",
            errors=errors,
            extensions=primary.get("extensions"),
            field=str(path[0]) if path else None,
            details={"errors": errors, "data": body.get("data")},
            source=ErrorSource.SERVER,
        )
    return GraphQLResponse.model_validate(body)


def _post_kwargs(headers: Mapping[str, str] | None, overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = {"Content-Type": "application/json"}
    merged.update(headers or {})
    return {**overrides, "headers": merged}


def execute_graphql(
    client: ApiClient,
    request: GraphQLRequest | Mapping[str, Any] | str,
    *,
    endpoint: str = DEFAULT_ENDPOINT,
    headers: Mapping[str, str] | None = None,
    **overrides: Any,
) -> GraphQLResponse:
    try:
        payload = build_graphql_payload(request)
        response = client.post(endpoint, payload, **_post_kwargs(headers, overrides))
        return parse_graphql_response(response.data)
    except Exception as exc:
        error = normalize_error(exc)
        if error is exc:
            raise
        raise error from exc


async def aexecute_graphql(
    client: AsyncApiClient,
    request: GraphQLRequest | Mapping[str, Any] | str,
    *,
    endpoint: str = DEFAULT_ENDPOINT,
    headers: Mapping[str, str] | None = None,
    **overrides: Any,
) -> GraphQLResponse:
    try:
        payload = build_graphql_payload(request)
        response = await client.post(endpoint, payload, **_post_kwargs(headers, overrides))
        return parse_graphql_response(response.data)
    except Exception as exc:
        error = normalize_error(exc)
        if error is exc:
            raise
        raise error from exc


def graphql_query(
    client: ApiClient,
    query: str,
    variables: Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> Any | None:
    """Run a read operation and return its ``data`` (``None`` when empty)."""
    response = execute_graphql(client, {"query": query, "variables": variables}, **kwargs)
    return response.data or None


def graphql_mutation(
    client: ApiClient,
    mutation: str,
    variables: Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> Any | None:
    response = execute_graphql(client, {"query": mutation, "variables": variables}, **kwargs)
    return response.data or None


async def agraphql_query(
    client: AsyncApiClient,
    query: str,
    variables: Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> Any | None:
    response = await aexecute_graphql(client, {"query": query, "variables": variables}, **kwargs)
    return response.data or None


async def agraphql_mutation(
    client: AsyncApiClient,
    mutation: str,
    variables: Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> Any | None:
    response = await aexecute_graphql(client, {"query": mutation, "variables": variables}, **kwargs)
    return response.data or None


def validate_graphql_query(query: Any) -> tuple[bool, list[str]]:
    """Cheap structural checks; not a parser."""
    if not isinstance(query, str) or not query:
        return False, ["Query must be a non-empty string"]

    trimmed = query.strip()
    if not trimmed:
        return False, ["Query cannot be empty"]

    problems: list[str] = []
    if not _OPERATION.search(trimmed):
        problems.append("Query must contain a valid GraphQL operation (query, mutation, or subscription)")
    if trimmed.count("{") != trimmed.count("}"):
        problems.append("Query has unbalanced braces")
    return not problems, problems


def extract_operation_name(query: str) -> str | None:
    match = _OPERATION_NAME.search(query)
    return match.group(2) if match else None


class GraphQLClient:
    """Runs GraphQL operations against one endpoint through an :class:`ApiClient`."""

    def __init__(self, client: ApiClient, endpoint: str = DEFAULT_ENDPOINT) -> None:
        self.client = client
        self.endpoint = endpoint

    def __enter__(self) -> "GraphQLClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def execute(self, request: GraphQLRequest | Mapping[str, Any] | str, **kwargs: Any) -> GraphQLResponse:
        return execute_graphql(self.client, request, endpoint=self.endpoint, **kwargs)

    def query(self, query: str, variables: Mapping[str, Any] | None = None, **kwargs: Any) -> Any | None:
        return graphql_query(self.client, query, variables, endpoint=self.endpoint, **kwargs)

    def mutate(self, mutation: str, variables: Mapping[str, Any] | None = None, **kwargs: Any) -> Any | None:
        return graphql_mutation(self.client, mutation, variables, endpoint=self.endpoint, **kwargs)


class AsyncGraphQLClient:
    """Runs GraphQL operations against one endpoint through an :class:`AsyncApiClient`."""

    def __init__(self, client: AsyncApiClient, endpoint: str = DEFAULT_ENDPOINT) -> None:
        self.client = client
        self.endpoint = endpoint

    async def __aenter__(self) -> "AsyncGraphQLClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def execute(self, request: GraphQLRequest | Mapping[str, Any] | str, **kwargs: Any) -> GraphQLResponse:
        return await aexecute_graphql(self.client, request, endpoint=self.endpoint, **kwargs)

    async def query(self, query: str, variables: Mapping[str, Any] | None = None, **kwargs: Any) -> Any | None:
        return await agraphql_query(self.client, query, variables, endpoint=self.endpoint, **kwargs)

    async def mutate(self, mutation: str, variables: Mapping[str, Any] | None = None, **kwargs: Any) -> Any | None:
        return await agraphql_mutation(self.client, mutation, variables, endpoint=self.endpoint, **kwargs)
