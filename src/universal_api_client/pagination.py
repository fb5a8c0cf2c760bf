"""Lazy, forward-only iteration over paginated endpoints.

Four strategies are supported:

``page``
    sends ``page=<n>`` and ``limit=<page_size>``, starting at 1.
``offset``
    sends ``offset=<n * page_size>`` and ``limit=<page_size>``.
``cursor``
    sends the cursor returned by the previous page (omitted on the first).
``link``
    sends nothing extra; each following request targets the ``rel="next"``
    URL from the ``Link`` header (or the body's next-page field).

Iterators are single pass. Once exhausted, cancelled or failed they stay
exhausted.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, AsyncIterator, Generic, Iterator, Mapping, TypeVar

from .cancellation import CancellationToken
from .client import ApiClient, AsyncApiClient
from .config import RequestConfig
from .exceptions import ApiValidationError
from .headers import parse_link_header
from .models import ApiResponse, PageInfo, PaginatedResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PaginationStrategy(str, Enum):
    PAGE = "page"
    OFFSET = "offset"
    CURSOR = "cursor"
    LINK = "link"


@dataclass(frozen=True)
class PaginationOptions:
    strategy: PaginationStrategy | str = PaginationStrategy.PAGE
    page_param: str = "page"
    limit_param: str = "limit"
    offset_param: str = "offset"
    cursor_param: str = "cursor"
    total_param: str | None = "total"
    data_param: str | None = "data"
    next_page_param: str | None = "next_page"
    has_next_param: str | None = "has_next"
    page_size: int = 20
    max_pages: int = 100
    initial_params: Mapping[str, Any] | None = None


PAGINATION_PRESETS: dict[str, PaginationOptions] = {
    # GitHub style: Link headers carry the next page
    "github": PaginationOptions(strategy=PaginationStrategy.LINK, page_size=30, data_param=None),
    "page": PaginationOptions(
        strategy=PaginationStrategy.PAGE,
        page_param="page",
        limit_param="per_page",
        total_param="total_count",
        data_param="items",
    ),
    "offset": PaginationOptions(
        strategy=PaginationStrategy.OFFSET,
        offset_param="offset",
        limit_param="limit",
        total_param="total",
        data_param="results",
    ),
    "cursor": PaginationOptions(strategy=PaginationStrategy.CURSOR, data_param="edges"),
}


class _PaginationState(Generic[T]):
    def __init__(
        self,
        url: str,
        options: PaginationOptions | None = None,
        *,
        request_config: RequestConfig | None = None,
        cancel_token: CancellationToken | None = None,
        **overrides: Any,
    ) -> None:
        options = options or PaginationOptions()
        if overrides:
            options = replace(options, **overrides)
        try:
            self.strategy = PaginationStrategy(options.strategy)
        except ValueError as exc:
            raise ApiValidationError(f"Unknown pagination strategy: {options.strategy}", original=exc) from exc
        if options.page_size < 1:
            raise ApiValidationError("page_size must be at least 1")
        self.options = options
        self.url = url
        self.request_config = request_config or RequestConfig()
        self.cancel_token = cancel_token or self.request_config.cancel_token or CancellationToken()
        self.current_page = 0
        self.has_next_page = True
        self.next_page_url: str | None = None
        self.next_cursor: str | None = None
        self._exhausted = False

    @property
    def exhausted(self) -> bool:
        return (
            self._exhausted
            or self.cancel_token.cancelled
            or not self.has_next_page
            or self.current_page >= self.options.max_pages
        )

    def cancel(self, reason: str = "Pagination cancelled") -> None:
        """Stop the sequence and abort any request still in flight."""
        self._exhausted = True
        self.cancel_token.cancel(reason)

    def _pagination_params(self) -> dict[str, Any]:
        options = self.options
        if self.strategy is PaginationStrategy.PAGE:
            return {options.page_param: self.current_page + 1, options.limit_param: options.page_size}
        if self.strategy is PaginationStrategy.OFFSET:
            return {
                options.offset_param: self.current_page * options.page_size,
                options.limit_param: options.page_size,
            }
        if self.strategy is PaginationStrategy.CURSOR:
            params: dict[str, Any] = {}
            if self.next_cursor is not None:
                params[options.cursor_param] = self.next_cursor
            params[options.limit_param] = options.page_size
            return params
        return {}

    def _next_request(self) -> RequestConfig:
        url = self.url
        params: dict[str, Any] = dict(self.request_config.params or {})
        if self.strategy is PaginationStrategy.LINK and self.next_page_url is not None:
            # the discovered URL already carries its own query string
            url = self.next_page_url
            params = {}
        else:
            params.update(self.options.initial_params or {})
        params.update(self._pagination_params())
        return replace(
            self.request_config,
            method="GET",
            url=url,
            params=params or None,
            cancel_token=self.cancel_token,
        )

    def _extract_items(self, body: Any) -> list[Any]:
        data_param = self.options.data_param
        if not data_param:
            return list(body) if isinstance(body, list) else [body]
        if not isinstance(body, Mapping):
            return []
        items = body.get(data_param)
        return list(items) if isinstance(items, list) else []

    def _next_token(self, body: Any, response: ApiResponse[Any]) -> str | int | None:
        token = None
        next_page_param = self.options.next_page_param
        if next_page_param and isinstance(body, Mapping) and body.get(next_page_param):
            token = body[next_page_param]
        link = parse_link_header(response.header("link")).get("next")
        if link:
            token = link
        return token

    def _advance(self, response: ApiResponse[Any]) -> PaginatedResponse[T]:
        options = self.options
        body = response.data
        items = self._extract_items(body)
        mapping = body if isinstance(body, Mapping) else {}

        total = mapping.get(options.total_param) if options.total_param else None
        if isinstance(total, bool) or not isinstance(total, (int, float)):
            total = None
        flag = bool(options.has_next_param) and mapping.get(options.has_next_param) is True
        token = self._next_token(body, response)

        self.current_page += 1
        if self.strategy is PaginationStrategy.LINK:
            has_next = token is not None
            self.next_page_url = str(token) if token is not None else None
        elif self.strategy is PaginationStrategy.CURSOR:
            cursor = str(token) if token is not None else None
            flag_present = bool(options.has_next_param) and options.has_next_param in mapping
            has_next = cursor is not None and cursor != self.next_cursor and (flag or not flag_present)
            self.next_cursor = cursor
        else:
            has_next = flag

        if has_next and len(items) < options.page_size:
            has_next = False

        if self.strategy is PaginationStrategy.PAGE and total is not None:
            has_next = self.current_page < math.ceil(total / options.page_size)

        self.has_next_page = has_next
        logger.debug(
            "Fetched page %d of %s (%d items, has_next=%s)",
            self.current_page,
            self.url,
            len(items),
            has_next,
        )
        page_info = PageInfo(
            page=self.current_page,
            limit=options.page_size,
            has_next=has_next,
            total=int(total) if total is not None else None,
            next_page=token,
        )
        return PaginatedResponse(data=items, page_info=page_info, response=response)


class PaginatedIterator(_PaginationState[T]):
    """Synchronous page iterator bound to an :class:`ApiClient`."""

    def __init__(self, client: ApiClient, url: str, options: PaginationOptions | None = None, **kwargs: Any) -> None:
        super().__init__(url, options, **kwargs)
        self._client = client

    def __iter__(self) -> Iterator[PaginatedResponse[T]]:
        return self

    def __next__(self) -> PaginatedResponse[T]:
        if self.exhausted:
            raise StopIteration
        try:
            response = self._client.request(self._next_request())
        except Exception:
            self._exhausted = True
            raise
        return self._advance(response)

    def all(self) -> list[PaginatedResponse[T]]:
        return list(self)

    def items(self) -> Iterator[T]:
        for page in self:
            yield from page.data


class AsyncPaginatedIterator(_PaginationState[T]):
    """Asynchronous page iterator bound to an :class:`AsyncApiClient`."""

    def __init__(
        self, client: AsyncApiClient, url: str, options: PaginationOptions | None = None, **kwargs: Any
    ) -> None:
        super().__init__(url, options, **kwargs)
        self._client = client

    def __aiter__(self) -> AsyncIterator[PaginatedResponse[T]]:
        return self

    async def __anext__(self) -> PaginatedResponse[T]:
        if self.exhausted:
            raise StopAsyncIteration
        try:
            response = await self._client.request(self._next_request())
        except Exception:
            self._exhausted = True
            raise
        return self._advance(response)

    async def all(self) -> list[PaginatedResponse[T]]:
        return [page async for page in self]

    async def items(self) -> AsyncIterator[T]:
        async for page in self:
            for item in page.data:
                yield item


def paginate(
    client: ApiClient | AsyncApiClient,
    url: str,
    options: PaginationOptions | str | None = None,
    **kwargs: Any,
) -> PaginatedIterator[Any] | AsyncPaginatedIterator[Any]:
    """Return the iterator matching ``client``; ``options`` may name a preset."""
    if isinstance(options, str):
        try:
            options = PAGINATION_PRESETS[options]
        except KeyError:
            raise ApiValidationError(f"Unknown pagination preset: {options}") from None
    if isinstance(client, AsyncApiClient):
        return AsyncPaginatedIterator(client, url, options, **kwargs)
    return PaginatedIterator(client, url, options, **kwargs)
