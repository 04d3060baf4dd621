"""Scrubbing of server-influenced text before it reaches messages or terminals."""

from src.features.client.constants import MAX_ERROR_BODY_BYTES


_KEPT_WHITESPACE = frozenset({"\n", "\r", "\t"})


def _is_control(ch: str) -> bool:
    # C0 controls, DEL and the C1 range (which includes the 8-bit CSI)
    return ch < " " or "\x7f" <= ch <= "\x9f"


def sanitize_terminal(text: str) -> str:
    """Strip control characters so text cannot carry terminal escapes.

    Args:
        text: Untrusted text.

    Returns:
        Text without C0/C1 control characters or DEL.
    """
    return "".join(ch for ch in text if not _is_control(ch))


def sanitize_error_body(body: bytes, max_length: int = MAX_ERROR_BODY_BYTES) -> str:
    """Produce a short, printable excerpt of a raw error body.

    The body is cut to ``max_length`` bytes and control characters are
    removed, keeping newlines and tabs.

    Args:
        body: Raw response body.
        max_length: Maximum number of bytes kept.

    Returns:
        Printable excerpt.
    """
    text = body[:max_length].decode("utf-8", errors="replace")
    return "".join(ch for ch in text if not _is_control(ch) or ch in _KEPT_WHITESPACE)
