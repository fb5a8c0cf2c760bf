"""HTTP client with retries, response caching, pagination and GraphQL helpers."""

from .cache import ResponseCache, cache_key
from .cancellation import CancellationToken
from .client import ApiClient, AsyncApiClient
from .config import BackoffStrategy, CacheConfig, ClientConfig, Hooks, RequestConfig, build_url, merge_config
from .errors import create_error, normalize_error
from .exceptions import (
    ApiAuthError,
    ApiCancelledError,
    ApiClientError,
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
from .graphql import (
    AsyncGraphQLClient,
    GraphQLClient,
    aexecute_graphql,
    agraphql_mutation,
    agraphql_query,
    execute_graphql,
    extract_operation_name,
    graphql_mutation,
    graphql_query,
    validate_graphql_query,
)
from .headers import parse_link_header, parse_retry_after, sanitize_headers
from .helpers import (
    arequest,
    create_async_client,
    create_client,
    create_graphql_client,
    create_rest_client,
    request,
)
from .middleware import (
    Middleware,
    auth_middleware,
    logging_middleware,
    request_id_middleware,
    retry_logging_middleware,
)
from .models import ApiResponse, GraphQLRequest, GraphQLResponse, PageInfo, PaginatedResponse
from .pagination import (
    PAGINATION_PRESETS,
    AsyncPaginatedIterator,
    PaginatedIterator,
    PaginationOptions,
    PaginationStrategy,
    paginate,
)
from .retry import RetryPolicy, RetryScheduler
from .transports import AiohttpTransport, AsyncHttpxTransport, HttpxTransport

__all__ = [
    "AiohttpTransport",
    "ApiAuthError",
    "ApiCancelledError",
    "ApiClient",
    "ApiClientError",
    "ApiError",
    "ApiGraphQLError",
    "ApiHTTPError",
    "ApiNetworkError",
    "ApiRateLimitError",
    "ApiResponse",
    "ApiServerError",
    "ApiTimeoutError",
    "ApiUnknownError",
    "ApiValidationError",
    "AsyncApiClient",
    "AsyncGraphQLClient",
    "AsyncHttpxTransport",
    "AsyncPaginatedIterator",
    "BackoffStrategy",
    "CacheConfig",
    "CancellationToken",
    "ClientConfig",
    "ErrorSource",
    "ErrorType",
    "GraphQLClient",
    "GraphQLRequest",
    "GraphQLResponse",
    "Hooks",
    "HttpxTransport",
    "Middleware",
    "PAGINATION_PRESETS",
    "PageInfo",
    "PaginatedIterator",
    "PaginatedResponse",
    "PaginationOptions",
    "PaginationStrategy",
    "RequestConfig",
    "ResponseCache",
    "RetryPolicy",
    "RetryScheduler",
    "aexecute_graphql",
    "agraphql_mutation",
    "agraphql_query",
    "arequest",
    "auth_middleware",
    "build_url",
    "cache_key",
    "create_async_client",
    "create_client",
    "create_error",
    "create_graphql_client",
    "create_rest_client",
    "execute_graphql",
    "extract_operation_name",
    "graphql_mutation",
    "graphql_query",
    "is_retryable_error",
    "is_retryable_status",
    "logging_middleware",
    "merge_config",
    "normalize_error",
    "paginate",
    "parse_link_header",
    "parse_retry_after",
    "request",
    "request_id_middleware",
    "retry_logging_middleware",
    "sanitize_headers",
    "validate_graphql_query",
]
