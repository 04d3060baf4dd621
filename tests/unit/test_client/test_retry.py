"""Unit tests for retry policy and the retry coordinator."""

import random
from collections.abc import Callable, Generator

import pytest
from pydantic import ValidationError
from structlog.testing import capture_logs

from src.features.client.context import RequestContext
from src.features.client.errors import (
    PermanentError,
    RequestCancelledError,
    RetryableError,
    RetryExhaustedError,
    TransportError,
)
from src.features.client.metrics import ClientMetrics
from src.features.client.retry import RetryCoordinator, RetryPolicy, should_retry_method


@pytest.fixture(autouse=True)
def reset_metrics() -> Generator[None]:
    """Reset singleton before and after each test."""
    ClientMetrics.reset()
    yield
    ClientMetrics.reset()


class RecordingSleep:
    """Fake sleep that records requested delays."""

    def __init__(self, completes: bool = True) -> None:
        self.delays: list[float] = []
        self._completes = completes

    def __call__(self, ctx: RequestContext, seconds: float) -> bool:
        self.delays.append(seconds)
        return self._completes


def failing_then(
    failures: list[Exception], result: bytes = b"ok"
) -> tuple[Callable[[], bytes], list[int]]:
    """Build an operation that raises each failure in turn, then succeeds."""
    calls = [0]

    def operation() -> bytes:
        calls[0] += 1
        if calls[0] <= len(failures):
            raise failures[calls[0] - 1]
        return result

    return operation, calls


def rate_limited(retry_after: float = 0.0) -> RetryableError:
    return RetryableError("rate limited", status_code=429, retry_after=retry_after)


NO_JITTER = {"jitter_fraction": 0.0}


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_default_values(self) -> None:
        """Test default retry policy values."""
        policy = RetryPolicy()

        assert policy.max_attempts == 4
        assert policy.base_delay_seconds == 1.0
        assert policy.max_delay_seconds == 30.0
        assert policy.jitter_fraction == 0.25

    def test_max_below_base_rejected(self) -> None:
        """Test the cap must not be below the base delay."""
        with pytest.raises(ValidationError):
            RetryPolicy(base_delay_seconds=5.0, max_delay_seconds=1.0)

    def test_at_least_one_attempt(self) -> None:
        """Test zero attempts is rejected."""
        with pytest.raises(ValidationError):
            RetryPolicy(max_attempts=0)

    def test_policy_is_frozen(self) -> None:
        """Test the policy cannot change after resolution."""
        policy = RetryPolicy()

        with pytest.raises(ValidationError):
            policy.max_attempts = 10  # type: ignore[misc]

    def test_exponential_backoff(self) -> None:
        """Test delays double per attempt without jitter."""
        policy = RetryPolicy(base_delay_seconds=1.0, max_delay_seconds=30.0, **NO_JITTER)

        assert policy.compute_backoff(1) == 1.0
        assert policy.compute_backoff(2) == 2.0
        assert policy.compute_backoff(3) == 4.0
        assert policy.compute_backoff(5) == 16.0

    def test_backoff_capped(self) -> None:
        """Test delays never exceed the cap, even for huge attempt numbers."""
        policy = RetryPolicy(base_delay_seconds=1.0, max_delay_seconds=30.0, **NO_JITTER)

        assert policy.compute_backoff(6) == 30.0
        assert policy.compute_backoff(1000) == 30.0

    def test_jitter_bounds(self) -> None:
        """Test jitter stays within the configured fraction."""
        policy = RetryPolicy(base_delay_seconds=2.0, max_delay_seconds=30.0)
        rng = random.Random(42)

        delays = [policy.compute_backoff(1, rng) for _ in range(200)]

        assert all(1.5 <= d <= 2.5 for d in delays)
        assert len(set(delays)) > 1


class TestShouldRetryMethod:
    """Tests for the idempotent method check."""

    @pytest.mark.parametrize("method", ["GET", "get", "HEAD"])
    def test_idempotent(self, method: str) -> None:
        """Test GET and HEAD are retried."""
        assert should_retry_method(method) is True

    @pytest.mark.parametrize("method", ["POST", "PATCH", "DELETE", "PUT"])
    def test_mutating(self, method: str) -> None:
        """Test mutating methods are never retried."""
        assert should_retry_method(method) is False


class TestRetryCoordinator:
    """Tests for RetryCoordinator.run."""

    def test_success_without_retry(self) -> None:
        """Test a first-attempt success does not sleep."""
        sleep = RecordingSleep()
        operation, calls = failing_then([])

        result = RetryCoordinator(sleep=sleep).run(
            operation, RetryPolicy(), RequestContext.background()
        )

        assert result == b"ok"
        assert calls[0] == 1
        assert sleep.delays == []

    def test_retries_until_success(self) -> None:
        """Test retryable failures are retried within budget."""
        sleep = RecordingSleep()
        operation, calls = failing_then([rate_limited(), rate_limited()])
        policy = RetryPolicy(max_attempts=4, base_delay_seconds=0.5, **NO_JITTER)

        result = RetryCoordinator(sleep=sleep).run(
            operation, policy, RequestContext.background()
        )

        assert result == b"ok"
        assert calls[0] == 3
        assert sleep.delays == [0.5, 1.0]
        assert ClientMetrics.get_instance().http_retry_total == 2

    def test_exhaustion(self) -> None:
        """Test the budget is respected and the last error is chained."""
        sleep = RecordingSleep()
        errors = [rate_limited() for _ in range(5)]
        operation, calls = failing_then(errors)
        policy = RetryPolicy(max_attempts=3, base_delay_seconds=0.1, max_delay_seconds=0.1)

        with pytest.raises(RetryExhaustedError) as exc_info:
            RetryCoordinator(sleep=sleep).run(
                operation, policy, RequestContext.background()
            )

        assert calls[0] == 3
        assert len(sleep.delays) == 2
        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error is errors[2]
        assert exc_info.value.__cause__ is errors[2]
        assert exc_info.value.status_code == 429
        assert str(exc_info.value).startswith("retry limit exceeded after 3 attempts: ")
        assert ClientMetrics.get_instance().http_failures_total == {"retry_exhausted": 1}

    def test_single_attempt_policy(self) -> None:
        """Test max_attempts=1 never retries."""
        sleep = RecordingSleep()
        operation, calls = failing_then([rate_limited()])

        with pytest.raises(RetryExhaustedError):
            RetryCoordinator(sleep=sleep).run(
                operation, RetryPolicy(max_attempts=1), RequestContext.background()
            )

        assert calls[0] == 1
        assert sleep.delays == []

    def test_server_hint_wins_when_larger(self) -> None:
        """Test Retry-After overrides a shorter backoff and is not capped."""
        sleep = RecordingSleep()
        operation, _ = failing_then([rate_limited(retry_after=60.0)])
        policy = RetryPolicy(base_delay_seconds=0.1, max_delay_seconds=0.2, **NO_JITTER)

        RetryCoordinator(sleep=sleep).run(operation, policy, RequestContext.background())

        assert sleep.delays == [60.0]

    def test_backoff_wins_when_larger(self) -> None:
        """Test a small server hint does not shorten the backoff."""
        sleep = RecordingSleep()
        operation, _ = failing_then([rate_limited(retry_after=0.5)])
        policy = RetryPolicy(base_delay_seconds=2.0, max_delay_seconds=10.0, **NO_JITTER)

        RetryCoordinator(sleep=sleep).run(operation, policy, RequestContext.background())

        assert sleep.delays == [2.0]

    @pytest.mark.parametrize(
        "error",
        [
            PermanentError("not found", status_code=404),
            TransportError("request failed: connection refused"),
        ],
    )
    def test_non_retryable_propagates(self, error: Exception) -> None:
        """Test permanent and transport errors surface on first sight."""
        sleep = RecordingSleep()
        operation, calls = failing_then([error])

        with pytest.raises(type(error)) as exc_info:
            RetryCoordinator(sleep=sleep).run(
                operation, RetryPolicy(), RequestContext.background()
            )

        assert exc_info.value is error
        assert calls[0] == 1
        assert sleep.delays == []

    def test_cancelled_sleep(self) -> None:
        """Test cancellation during the wait ends the loop."""
        ctx = RequestContext()
        ctx.cancel()
        operation, calls = failing_then([rate_limited(), rate_limited()])

        with pytest.raises(RequestCancelledError, match="retry cancelled: context canceled"):
            RetryCoordinator(sleep=RecordingSleep(completes=False)).run(
                operation, RetryPolicy(), ctx
            )

        assert calls[0] == 1

    def test_real_sleep_observes_cancellation(self) -> None:
        """Test the default sleep returns as soon as the context is cancelled."""
        ctx = RequestContext()
        ctx.cancel()
        operation, _ = failing_then([rate_limited(retry_after=30.0)])

        with pytest.raises(RequestCancelledError):
            RetryCoordinator().run(operation, RetryPolicy(), ctx)


class TestRetryLogging:
    """Tests for retry log levels."""

    def test_info_when_enabled(self) -> None:
        """Test retries are logged at info level when retry logging is on."""
        operation, _ = failing_then([rate_limited()])

        with capture_logs() as logs:
            RetryCoordinator(retry_log_enabled=True, sleep=RecordingSleep()).run(
                operation, RetryPolicy(), RequestContext.background()
            )

        retries = [log for log in logs if log["event"] == "retrying_request"]
        assert len(retries) == 1
        assert retries[0]["log_level"] == "info"
        assert retries[0]["attempt"] == 1
        assert retries[0]["status_code"] == 429

    def test_not_info_when_disabled(self) -> None:
        """Test retries stay below info level by default."""
        operation, _ = failing_then([rate_limited()])

        with capture_logs() as logs:
            RetryCoordinator(sleep=RecordingSleep()).run(
                operation, RetryPolicy(), RequestContext.background()
            )

        assert all(
            log["log_level"] != "info"
            for log in logs
            if log["event"] == "retrying_request"
        )
