"""HTTP constants for the API client.

Centralizes all HTTP-related constants to avoid duplication across modules.
"""

from http import HTTPStatus
from typing import Final


BASE_URL: Final[str] = "https://api.appstoreconnect.apple.com"

# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
RETRYABLE_STATUS_CODES: Final[frozenset[int]] = frozenset(
    {HTTPStatus.TOO_MANY_REQUESTS, HTTPStatus.SERVICE_UNAVAILABLE}
)

# Methods that are safe to repeat automatically
IDEMPOTENT_METHODS: Final[frozenset[str]] = frozenset({"GET", "HEAD"})

JSON_CONTENT_TYPE: Final[str] = "application/json"

# Request timeout (seconds)
DEFAULT_TIMEOUT_SECONDS = 30.0

# Retry defaults
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0
DEFAULT_MAX_DELAY_SECONDS = 30.0
DEFAULT_JITTER_FRACTION = 0.25

# Error body excerpts kept in messages
MAX_ERROR_BODY_BYTES = 200

# Response Size Limits for stream downloads
DEFAULT_MAX_RESPONSE_SIZE_BYTES = 100 * 1024 * 1024  # 100 MB

# Chunk size for streaming reads
DEFAULT_CHUNK_SIZE = 8192

COMPONENT_CLIENT: Final[str] = "client"

# Query parameters that mark a URL as pre-signed by its origin
SIGNED_QUERY_KEYS: Final[frozenset[str]] = frozenset(
    {
        "x-amz-signature",
        "x-amz-credential",
        "x-amz-algorithm",
        "x-amz-signedheaders",
        "signature",
        "key-pair-id",
        "policy",
        "sig",
    }
)

# Query parameters whose values must never be logged
SENSITIVE_QUERY_KEYS: Final[frozenset[str]] = SIGNED_QUERY_KEYS | {
    "x-amz-security-token",
    "token",
    "access_token",
    "id_token",
    "refresh_token",
}
