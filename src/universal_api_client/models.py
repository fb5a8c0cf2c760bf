"""Response records and the GraphQL wire models."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .config import RequestConfig

T = TypeVar("T")


@dataclass(frozen=True)
class ApiResponse(Generic[T]):
    data: T
    status: int
    status_text: str
    headers: dict[str, str]
    config: RequestConfig
    duration: float

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)

    def json(self) -> Any | None:
        """Return ``data`` parsed as JSON when the transport kept it as text."""
        if isinstance(self.data, (str, bytes)):
            try:
                return json.loads(self.data) if self.data else None
            except ValueError:
                return None
        return self.data


@dataclass(frozen=True)
class PageInfo:
    page: int
    limit: int
    has_next: bool
    total: int | None = None
    next_page: str | int | None = None


@dataclass(frozen=True)
class PaginatedResponse(Generic[T]):
    data: list[T]
    page_info: PageInfo
    response: ApiResponse[Any] | None = field(default=None, repr=False, compare=False)


class GraphQLModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class GraphQLLocation(GraphQLModel):
    line: int
    column: int


class GraphQLErrorItem(GraphQLModel):
    message: str = "GraphQL query failed"
    locations: list[GraphQLLocation] | None = None
    path: list[str | int] | None = None
    extensions: dict[str, Any] | None = None


class GraphQLRequest(GraphQLModel):
    query: str
    variables: dict[str, Any] | None = None
    operation_name: str | None = Field(default=None, alias="operationName")


class GraphQLResponse(GraphQLModel):
    data: Any = None
    errors: list[GraphQLErrorItem] | None = None
    extensions: dict[str, Any] | None = None
