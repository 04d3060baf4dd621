"""Header and URL redaction utilities for logging."""

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from src.features.client.constants import SENSITIVE_QUERY_KEYS, SIGNED_QUERY_KEYS


# Headers that must never appear in logs
SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "cookie",
        "x-api-key",
        "x-auth-token",
        "proxy-authorization",
        "set-cookie",
    }
)

REDACTED_VALUE = "[REDACTED]"


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Redact sensitive headers for logging.

    Replaces the values of Authorization, Cookie, and other
    sensitive headers with [REDACTED] for safe logging.

    Args:
        headers: Original headers dictionary.

    Returns:
        New dictionary with sensitive values redacted.
    """
    return {
        key: REDACTED_VALUE if is_sensitive_header(key) else value
        for key, value in headers.items()
    }


def is_sensitive_header(header_name: str) -> bool:
    """Check if a header name is sensitive."""
    return header_name.lower() in SENSITIVE_HEADERS


def sanitize_auth_header(value: str) -> str:
    """Hide the token in an Authorization header value, keeping the scheme."""
    if not value:
        return ""
    if value.startswith("Bearer "):
        return f"Bearer {REDACTED_VALUE}"
    return REDACTED_VALUE


def has_signed_query(pairs: list[tuple[str, str]]) -> bool:
    """Check whether query pairs carry a non-blank signed-URL parameter.

    Args:
        pairs: Decoded ``(key, value)`` query pairs.

    Returns:
        True if any signature-style parameter has a value.
    """
    return any(
        key.lower() in SIGNED_QUERY_KEYS and value.strip() for key, value in pairs
    )


def sanitize_url_for_log(url: str) -> str:
    """Redact credentials and signatures from a URL before logging it.

    User info is replaced, sensitive query values are masked, and on a
    pre-signed URL every query value is masked.

    Args:
        url: URL that may carry credentials.

    Returns:
        URL safe to log.
    """
    if not url:
        return ""
    try:
        parts = urlsplit(url)
    except ValueError:
        return REDACTED_VALUE

    netloc = parts.netloc
    if "@" in netloc:
        netloc = f"{REDACTED_VALUE}@{netloc.rsplit('@', 1)[1]}"

    pairs = parse_qsl(parts.query, keep_blank_values=True)
    if pairs:
        redact_all = has_signed_query(pairs)
        pairs = [
            (key, REDACTED_VALUE)
            if redact_all or key.lower() in SENSITIVE_QUERY_KEYS
            else (key, value)
            for key, value in pairs
        ]
        query = urlencode(pairs, safe="[]")
    else:
        query = parts.query

    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))
