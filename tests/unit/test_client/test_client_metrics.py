"""Tests for ClientMetrics."""

import threading
from collections.abc import Generator

import pytest

from src.features.client.metrics import ClientMetrics


@pytest.fixture(autouse=True)
def reset_metrics() -> Generator[None]:
    """Reset singleton before and after each test."""
    ClientMetrics.reset()
    yield
    ClientMetrics.reset()


class TestClientMetricsSingleton:
    """Tests for singleton pattern."""

    def test_get_instance_returns_same_instance(self) -> None:
        """get_instance returns the same instance each time."""
        assert ClientMetrics.get_instance() is ClientMetrics.get_instance()

    def test_reset_clears_singleton(self) -> None:
        """reset clears the singleton, allowing new instance creation."""
        first = ClientMetrics.get_instance()
        first.record_retry()
        ClientMetrics.reset()

        second = ClientMetrics.get_instance()

        assert first is not second
        assert second.http_retry_total == 0


class TestClientMetricsRecording:
    """Tests for recording methods."""

    def test_record_request(self) -> None:
        """Requests are counted by status with bytes and duration."""
        metrics = ClientMetrics.get_instance()

        metrics.record_request(200, 100, 10.0)
        metrics.record_request(200, 50, 30.0)
        metrics.record_request(503, 0, 5.0)

        assert metrics.http_requests_total == {200: 2, 503: 1}
        assert metrics.http_bytes_total == 150
        assert metrics.avg_duration_ms == 15.0

    def test_record_failure_by_kind(self) -> None:
        """Failures are grouped by kind."""
        metrics = ClientMetrics.get_instance()

        metrics.record_failure("transport")
        metrics.record_failure("transport")
        metrics.record_failure("permanent")

        assert metrics.http_failures_total == {"transport": 2, "permanent": 1}

    def test_avg_duration_without_requests(self) -> None:
        """Average is zero before any request."""
        assert ClientMetrics.get_instance().avg_duration_ms == 0.0

    def test_to_dict(self) -> None:
        """to_dict exposes a copy of every counter."""
        metrics = ClientMetrics.get_instance()
        metrics.record_request(200, 10, 1.0)
        metrics.record_retry()

        result = metrics.to_dict()
        result["http_requests_total"][200] = 99  # type: ignore[index]

        assert result["http_retry_total"] == 1
        assert result["http_request_count"] == 1
        assert metrics.http_requests_total == {200: 1}

    def test_concurrent_retries(self) -> None:
        """Counters are consistent under concurrent updates."""
        metrics = ClientMetrics.get_instance()

        threads = [
            threading.Thread(target=lambda: [metrics.record_retry() for _ in range(100)])
            for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert metrics.http_retry_total == 800
