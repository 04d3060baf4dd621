"""App Store Connect request execution: auth, retries, error mapping, URL trust."""

from src.features.auth.errors import PrivateKeyError, SigningError
from src.features.client.classifier import (
    classify_response,
    parse_api_error,
    parse_retry_after_header,
)
from src.features.client.client import AscClient, build_request_body
from src.features.client.constants import BASE_URL
from src.features.client.context import RequestContext
from src.features.client.errors import (
    APIError,
    AssociatedError,
    ClientError,
    PermanentError,
    RepeatedPaginationURLError,
    RequestCancelledError,
    ResponseSizeExceededError,
    RetryableError,
    RetryExhaustedError,
    SecurityError,
    TransportError,
    is_bad_request,
    is_conflict,
    is_forbidden,
    is_not_found,
    is_retryable,
    is_unauthorized,
)
from src.features.client.executor import RequestDescriptor, RequestExecutor
from src.features.client.metrics import ClientMetrics
from src.features.client.pagination import NextLinkTracker
from src.features.client.retry import RetryCoordinator, RetryPolicy, should_retry_method
from src.features.client.settings import (
    ConfigSources,
    DebugSettings,
    RetryOverrides,
    get_retry_log_override,
    resolve_debug_settings,
    resolve_retry_log_enabled,
    resolve_retry_policy,
    resolve_timeout,
    set_debug_http_override,
    set_debug_override,
    set_retry_log_override,
)
from src.features.client.url_guard import (
    TrustedHostPolicy,
    URLGuard,
    validate_analytics_download_url,
    validate_next_url,
)


__all__ = [
    "BASE_URL",
    "APIError",
    "AscClient",
    "AssociatedError",
    "ClientError",
    "ClientMetrics",
    "ConfigSources",
    "DebugSettings",
    "NextLinkTracker",
    "PermanentError",
    "PrivateKeyError",
    "RepeatedPaginationURLError",
    "RequestCancelledError",
    "RequestContext",
    "RequestDescriptor",
    "RequestExecutor",
    "ResponseSizeExceededError",
    "RetryCoordinator",
    "RetryExhaustedError",
    "RetryOverrides",
    "RetryPolicy",
    "RetryableError",
    "SecurityError",
    "SigningError",
    "TransportError",
    "TrustedHostPolicy",
    "URLGuard",
    "build_request_body",
    "classify_response",
    "get_retry_log_override",
    "is_bad_request",
    "is_conflict",
    "is_forbidden",
    "is_not_found",
    "is_retryable",
    "is_unauthorized",
    "parse_api_error",
    "parse_retry_after_header",
    "resolve_debug_settings",
    "resolve_retry_log_enabled",
    "resolve_retry_policy",
    "resolve_timeout",
    "set_debug_http_override",
    "set_debug_override",
    "set_retry_log_override",
    "should_retry_method",
    "validate_analytics_download_url",
    "validate_next_url",
]
