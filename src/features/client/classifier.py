"""Classification of failed HTTP responses."""

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from http import HTTPStatus

from src.features.client.constants import RETRYABLE_STATUS_CODES
from src.features.client.errors import (
    APIError,
    AssociatedError,
    PermanentError,
    RetryableError,
)
from src.features.client.sanitize import sanitize_error_body
from src.features.config.durations import format_duration


def _parse_delay_seconds(text: str) -> int | None:
    # ASCII digits only, with an optional leading sign
    digits = text[1:] if text[:1] in "+-" else text
    if not (digits.isascii() and digits.isdigit()):
        return None
    return int(text)


def _parse_http_date(text: str) -> datetime | None:
    # RFC1123, RFC850 and ANSIC all parse here, with English names
    # regardless of the process locale
    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def parse_retry_after_header(value: str | None, now: datetime | None = None) -> float:
    """Parse a Retry-After header value.

    Accepts a positive number of seconds or an HTTP date. A date in the past,
    a non-positive number, or anything unparseable yields 0, meaning "no
    server hint".

    Args:
        value: Header value.
        now: Reference time for HTTP dates (default: current UTC time).

    Returns:
        Seconds to wait.
    """
    text = (value or "").strip()
    if not text:
        return 0.0

    seconds = _parse_delay_seconds(text)
    if seconds is not None:
        return float(seconds) if seconds > 0 else 0.0

    parsed = _parse_http_date(text)
    if parsed is None:
        return 0.0
    delay = (parsed - (now or datetime.now(UTC))).total_seconds()
    return delay if delay > 0 else 0.0


def _parse_associated_errors(meta: object) -> dict[str, list[AssociatedError]]:
    if not isinstance(meta, dict):
        return {}
    raw = meta.get("associatedErrors")
    if not isinstance(raw, dict):
        return {}

    result: dict[str, list[AssociatedError]] = {}
    for resource, entries in raw.items():
        if not isinstance(entries, list):
            continue
        result[str(resource)] = [
            AssociatedError(
                code=str(entry.get("code") or ""),
                detail=str(entry.get("detail") or ""),
            )
            for entry in entries
            if isinstance(entry, dict)
        ]
    return result


def parse_api_error(body: bytes, status_code: int = 0) -> APIError | None:
    """Extract the first error from a JSON error envelope.

    Args:
        body: Raw response body.
        status_code: HTTP status code to attach.

    Returns:
        APIError, or None if the body is not an error envelope.
    """
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None

    if not isinstance(payload, dict):
        return None
    errors = payload.get("errors")
    if not isinstance(errors, list) or not errors or not isinstance(errors[0], dict):
        return None

    first = errors[0]
    return APIError(
        code=str(first.get("code") or ""),
        title=str(first.get("title") or ""),
        detail=str(first.get("detail") or ""),
        status_code=status_code,
        associated_errors=_parse_associated_errors(first.get("meta")),
    )


def parse_error_body(body: bytes, status_code: int = 0) -> PermanentError:
    """Turn an error body into a permanent error.

    Falls back to a sanitized, length-capped excerpt when the body is not a
    JSON error envelope.

    Args:
        body: Raw response body.
        status_code: HTTP status code.

    Returns:
        APIError or a generic PermanentError.
    """
    api_error = parse_api_error(body, status_code)
    if api_error is not None:
        return api_error

    excerpt = sanitize_error_body(body).strip()
    if not excerpt:
        return PermanentError(
            f"API request failed with status {status_code}", status_code=status_code
        )
    return PermanentError(
        f"unknown error (status {status_code}): {excerpt}", status_code=status_code
    )


def _retryable_message(
    status_code: int, retry_after: float, api_error: APIError | None
) -> str:
    if status_code == HTTPStatus.TOO_MANY_REQUESTS:
        base = "rate limited by App Store Connect"
    elif status_code == HTTPStatus.SERVICE_UNAVAILABLE:
        base = "App Store Connect service unavailable"
    else:
        base = "API request failed"

    message = f"{base} (status {status_code})"
    if api_error is not None:
        message = f"{message}: {api_error}"
    if retry_after > 0:
        message = f"{message} (retry after {format_duration(retry_after)})"
    return message


def classify_response(
    status_code: int,
    headers: Mapping[str, str],
    body: bytes,
) -> RetryableError | PermanentError:
    """Classify a non-2xx response.

    Args:
        status_code: HTTP status code.
        headers: Response headers (case-insensitive mapping expected).
        body: Full response body.

    Returns:
        RetryableError for 429/503, a PermanentError otherwise.
    """
    if status_code in RETRYABLE_STATUS_CODES:
        retry_after = parse_retry_after_header(headers.get("Retry-After"))
        api_error = parse_api_error(body, status_code) if body else None
        return RetryableError(
            _retryable_message(status_code, retry_after, api_error),
            status_code=status_code,
            retry_after=retry_after,
            api_error=api_error,
        )

    return parse_error_body(body, status_code)
