"""Parsing of duration strings such as ``500ms``, ``2s`` or ``1h30m``.

Durations are written as a sequence of decimal numbers, each with a unit
suffix. Valid units are ``ns``, ``us`` (or ``µs``), ``ms``, ``s``, ``m`` and
``h``. A bare ``0`` is also accepted.
"""

import re
from typing import Final


_UNIT_SECONDS: Final[dict[str, float]] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT_PATTERN = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> float:
    """Parse a duration string into seconds.

    Args:
        value: Duration text, optionally signed (e.g. ``"1.5s"``, ``"-2m"``).

    Returns:
        Duration in seconds.

    Raises:
        ValueError: If the text is not a valid duration.
    """
    text = value.strip()
    if not text:
        msg = "invalid duration: empty string"
        raise ValueError(msg)

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    if text == "0":
        return 0.0

    total = 0.0
    position = 0
    while position < len(text):
        match = _COMPONENT_PATTERN.match(text, position)
        if match is None:
            msg = f"invalid duration: {value!r}"
            raise ValueError(msg)
        number, unit = match.groups()
        total += float(number) * _UNIT_SECONDS[unit]
        position = match.end()

    if position == 0:
        msg = f"invalid duration: {value!r}"
        raise ValueError(msg)

    return sign * total


def format_duration(seconds: float) -> str:
    """Render seconds compactly for log and error messages.

    Args:
        seconds: Duration in seconds.

    Returns:
        Text such as ``"1.5s"`` or ``"250ms"``.
    """
    if 0 < abs(seconds) < 1:
        return f"{round(seconds * 1000)}ms"
    return f"{round(seconds, 3):g}s"
