"""Unit tests for duration parsing and formatting."""

import pytest

from src.features.config.durations import format_duration, parse_duration


class TestParseDuration:
    """Tests for parse_duration."""

    @pytest.mark.parametrize(
        ("text", "seconds"),
        [
            ("1s", 1.0),
            ("500ms", 0.5),
            ("1.5s", 1.5),
            ("2m", 120.0),
            ("1h30m", 5400.0),
            ("250us", 0.00025),
            ("0", 0.0),
            ("+3s", 3.0),
            ("-2s", -2.0),
            (" 10s ", 10.0),
        ],
    )
    def test_valid(self, text: str, seconds: float) -> None:
        """Test accepted duration forms."""
        assert parse_duration(text) == pytest.approx(seconds)

    @pytest.mark.parametrize("text", ["", "   ", "10", "s", "1x", "1s2", "1 s", "-"])
    def test_invalid(self, text: str) -> None:
        """Test rejected duration forms."""
        with pytest.raises(ValueError, match="invalid duration"):
            parse_duration(text)


class TestFormatDuration:
    """Tests for format_duration."""

    @pytest.mark.parametrize(
        ("seconds", "text"),
        [(1.0, "1s"), (30.0, "30s"), (1.5, "1.5s"), (0.25, "250ms"), (0.0, "0s")],
    )
    def test_format(self, seconds: float, text: str) -> None:
        """Test compact rendering."""
        assert format_duration(seconds) == text
