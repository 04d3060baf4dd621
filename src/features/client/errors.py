"""Domain exceptions for the API client.

This module defines the hierarchy raised by the request execution layer.
Only ``RetryableError`` is ever retried; every other failure surfaces to the
caller on the first occurrence.
"""

from dataclasses import dataclass

from src.features.client.sanitize import sanitize_terminal


class ClientError(Exception):
    """Base exception for all client-layer errors."""


class TransportError(ClientError):
    """Raised when no response was received (connection failure, timeout)."""


class RetryableError(ClientError):
    """Raised for 429 and 503 responses.

    Attributes:
        status_code: HTTP status code of the response.
        retry_after: Server-provided delay hint in seconds (0 when absent).
        api_error: Structured error parsed from the body, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        retry_after: float = 0.0,
        api_error: "APIError | None" = None,
    ) -> None:
        """Initialize the retryable error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code.
            retry_after: Retry-After hint in seconds.
            api_error: Structured error detail, if the body carried one.
        """
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after
        self.api_error = api_error


class RetryExhaustedError(RetryableError):
    """Raised when the retry budget is spent on retryable failures.

    Attributes:
        attempts: Number of attempts made.
        last_error: The final retryable failure.
    """

    def __init__(self, attempts: int, last_error: RetryableError) -> None:
        """Initialize the error from the last retryable failure.

        Args:
            attempts: Number of attempts made.
            last_error: The final retryable failure.
        """
        super().__init__(
            f"retry limit exceeded after {attempts} attempts: {last_error}",
            status_code=last_error.status_code,
            retry_after=last_error.retry_after,
            api_error=last_error.api_error,
        )
        self.attempts = attempts
        self.last_error = last_error


class PermanentError(ClientError):
    """Raised for non-2xx responses that must not be retried.

    Attributes:
        status_code: HTTP status code (0 if unknown).
    """

    def __init__(self, message: str, status_code: int = 0) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code.
        """
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class AssociatedError:
    """An actionable error reported under ``meta.associatedErrors``."""

    code: str = ""
    detail: str = ""


class APIError(PermanentError):
    """Structured error parsed from a JSON error envelope.

    Attributes:
        code: Machine-readable error code (e.g. ``NOT_FOUND``).
        title: Short summary.
        detail: Longer explanation.
        associated_errors: Extra errors grouped by resource path.
    """

    def __init__(
        self,
        code: str = "",
        title: str = "",
        detail: str = "",
        status_code: int = 0,
        associated_errors: dict[str, list[AssociatedError]] | None = None,
    ) -> None:
        """Initialize the API error.

        Args:
            code: Machine-readable error code.
            title: Short summary.
            detail: Longer explanation.
            status_code: HTTP status code.
            associated_errors: Extra errors grouped by resource path.
        """
        self.code = code
        self.title = title
        self.detail = detail
        self.associated_errors = associated_errors or {}
        super().__init__(self._render(), status_code=status_code)

    def _render(self) -> str:
        title = sanitize_terminal(self.title).strip()
        detail = sanitize_terminal(self.detail).strip()
        code = sanitize_terminal(self.code).strip()

        if title and detail:
            base = f"{title}: {detail}"
        else:
            base = title or detail or code or "API error"

        associated = _format_associated_errors(self.associated_errors)
        if not associated:
            return base
        return f"{base}\n\n{associated}"

    def has_code(self, code: str) -> bool:
        """Check the error code case-insensitively."""
        return self.code.lower() == code.lower()


def _format_associated_errors(values: dict[str, list[AssociatedError]]) -> str:
    sections: list[str] = []
    for key in sorted(values):
        resource = sanitize_terminal(key).strip() or "(unknown resource)"
        lines = [f"Associated errors for {resource}:"]
        for entry in values[key]:
            text = sanitize_terminal(entry.detail).strip() or sanitize_terminal(
                entry.code
            ).strip()
            if text:
                lines.append(f"  - {text}")
        if len(lines) > 1:
            sections.append("\n".join(lines))
    return "\n\n".join(sections)


class SecurityError(ClientError):
    """Raised when a URL fails the trust policy. Never retried."""


class RequestCancelledError(ClientError):
    """Raised when the caller's context is cancelled or its deadline passes."""


class ResponseSizeExceededError(ClientError):
    """Raised when a streamed response exceeds the configured limit."""


def _has_api_code(error: BaseException, code: str) -> bool:
    current: BaseException | None = error
    while current is not None:
        if isinstance(current, APIError) and current.has_code(code):
            return True
        if isinstance(current, RetryableError) and current.api_error is not None:
            return current.api_error.has_code(code)
        current = current.__cause__
    return False


def is_retryable(error: BaseException) -> bool:
    """Check if an error indicates the request can be retried."""
    return isinstance(error, RetryableError)


def is_not_found(error: BaseException) -> bool:
    """Check if the error is a "not found" API error."""
    return _has_api_code(error, "NOT_FOUND")


def is_unauthorized(error: BaseException) -> bool:
    """Check if the error is an "unauthorized" API error."""
    return _has_api_code(error, "UNAUTHORIZED")


def is_forbidden(error: BaseException) -> bool:
    """Check if the error is a "forbidden" API error."""
    return _has_api_code(error, "FORBIDDEN")


def is_bad_request(error: BaseException) -> bool:
    """Check if the error is a "bad request" API error."""
    return _has_api_code(error, "BAD_REQUEST")


def is_conflict(error: BaseException) -> bool:
    """Check if the error is a "conflict" API error."""
    return _has_api_code(error, "CONFLICT")


class RepeatedPaginationURLError(ClientError):
    """Raised when a pagination chain links back to a page already fetched."""
