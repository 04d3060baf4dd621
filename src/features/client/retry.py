"""Retry policy and coordinator for transient API failures."""

import random
from collections.abc import Callable
from typing import Annotated, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.features.client.constants import (
    COMPONENT_CLIENT,
    DEFAULT_BASE_DELAY_SECONDS,
    DEFAULT_JITTER_FRACTION,
    DEFAULT_MAX_DELAY_SECONDS,
    DEFAULT_MAX_RETRIES,
    IDEMPOTENT_METHODS,
)
from src.features.client.context import RequestContext
from src.features.client.errors import (
    RequestCancelledError,
    RetryableError,
    RetryExhaustedError,
)
from src.features.client.metrics import ClientMetrics
from src.features.config.durations import format_duration


logger = structlog.get_logger()

T = TypeVar("T")

# 2**30 already exceeds any sensible max delay
_MAX_BACKOFF_EXPONENT = 30


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    Controls how many attempts a call may make and the backoff between them.
    Uses exponential backoff: delay = base_delay_seconds * 2 ** (attempt - 1),
    capped at max_delay_seconds and scaled by a random jitter factor.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: Annotated[int, Field(ge=1)] = DEFAULT_MAX_RETRIES + 1
    base_delay_seconds: Annotated[float, Field(gt=0.0)] = DEFAULT_BASE_DELAY_SECONDS
    max_delay_seconds: Annotated[float, Field(gt=0.0)] = DEFAULT_MAX_DELAY_SECONDS
    jitter_fraction: Annotated[float, Field(ge=0.0, lt=1.0)] = DEFAULT_JITTER_FRACTION

    @model_validator(mode="after")
    def check_delay_order(self) -> "RetryPolicy":
        """Ensure the cap is not below the base delay."""
        if self.max_delay_seconds < self.base_delay_seconds:
            msg = "max_delay_seconds must be >= base_delay_seconds"
            raise ValueError(msg)
        return self

    def compute_backoff(self, attempt: int, rng: random.Random | None = None) -> float:
        """Calculate the delay after a failed attempt.

        Args:
            attempt: Number of the attempt that just failed (1-indexed).
            rng: Random source for jitter (default: module-level random).

        Returns:
            Delay in seconds.
        """
        exponent = min(max(attempt - 1, 0), _MAX_BACKOFF_EXPONENT)
        delay = min(self.max_delay_seconds, self.base_delay_seconds * (2**exponent))

        # Jitter keeps many clients from retrying in lockstep
        source = rng or random
        factor = source.uniform(1 - self.jitter_fraction, 1 + self.jitter_fraction)
        return delay * factor


def should_retry_method(method: str) -> bool:
    """Check whether a method is idempotent and therefore retried automatically."""
    return method.upper() in IDEMPOTENT_METHODS


def _context_sleep(ctx: RequestContext, seconds: float) -> bool:
    return ctx.wait(seconds)


class RetryCoordinator:
    """Runs an operation again while it fails with a RetryableError.

    Non-retryable errors propagate on first sight. When the attempt budget is
    spent, the last failure is raised as a RetryExhaustedError.
    """

    def __init__(
        self,
        retry_log_enabled: bool = False,
        sleep: Callable[[RequestContext, float], bool] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            retry_log_enabled: Log each retry at info level instead of debug.
            sleep: Waits on the context for the given seconds and returns
                False if the context ended first (default: RequestContext.wait).
            rng: Random source for jitter.
        """
        self._retry_log_enabled = retry_log_enabled
        self._sleep = sleep or _context_sleep
        self._rng = rng
        self._metrics = ClientMetrics.get_instance()
        self._log = logger.bind(component=COMPONENT_CLIENT, subcomponent="retry")

    def run(
        self,
        operation: Callable[[], T],
        policy: RetryPolicy,
        ctx: RequestContext,
    ) -> T:
        """Execute ``operation`` under ``policy``.

        Args:
            operation: Performs one attempt.
            policy: Retry limits and backoff.
            ctx: Cancellation context observed between attempts.

        Returns:
            The first successful result.

        Raises:
            RetryExhaustedError: If every attempt failed with a retryable error.
            RequestCancelledError: If the context ended while waiting.
        """
        attempt = 1
        while True:
            try:
                return operation()
            except RetryableError as e:
                if attempt >= policy.max_attempts:
                    self._metrics.record_failure("retry_exhausted")
                    raise RetryExhaustedError(attempt, e) from e

                delay = max(policy.compute_backoff(attempt, self._rng), e.retry_after)
                self._log_retry(attempt, policy, delay, e)
                self._metrics.record_retry()

                if not self._sleep(ctx, delay):
                    reason = ctx.error() or "context canceled"
                    msg = f"retry cancelled: {reason}"
                    raise RequestCancelledError(msg) from e

                attempt += 1

    def _log_retry(
        self,
        attempt: int,
        policy: RetryPolicy,
        delay: float,
        error: RetryableError,
    ) -> None:
        fields = {
            "attempt": attempt,
            "max_attempts": policy.max_attempts,
            "delay": format_duration(delay),
            "status_code": error.status_code,
            "error": str(error),
        }
        if self._retry_log_enabled:
            self._log.info("retrying_request", **fields)
        else:
            self._log.debug("retrying_request", **fields)
