"""Retry wrapper for single-attempt callables."""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, TypeVar

from rfp_assist.rag.errors import InvalidConfiguration

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class RetryOutcome(Generic[T]):
    """Result of ``retry_call``: either ``value`` or the last ``error``."""

    value: Optional[T] = None
    error: Optional[Exception] = None
    attempts: int = 0
    delays: List[float] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


def linear_backoff(base_delay: float) -> Callable[[int], float]:
    """Delay after failed attempt ``n`` is ``base_delay * n``."""
    return lambda attempt: base_delay * attempt


def retry_call(
    attempt: Callable[[], T],
    *,
    max_attempts: int,
    backoff: Callable[[int], float],
    should_retry: Callable[[Exception], bool],
    sleep: Callable[[float], None] = time.sleep,
    label: str = "call",
) -> RetryOutcome[T]:
    """Run ``attempt`` until it succeeds or the retry budget is spent.

    Exceptions for which ``should_retry`` is false end the loop at once.
    Nothing is raised; the outcome carries the value or the last error.
    """
    if max_attempts < 1:
        raise InvalidConfiguration(f"max_attempts must be at least 1, got {max_attempts}")
    outcome: RetryOutcome[T] = RetryOutcome()
    for n in range(1, max_attempts + 1):
        outcome.attempts = n
        try:
            outcome.value = attempt()
            outcome.error = None
            return outcome
        except Exception as e:
            outcome.error = e
            if not should_retry(e):
                logger.error(f"{label} failed on attempt {n} (not retryable): {e}")
                return outcome
            if n == max_attempts:
                logger.error(f"{label} failed after {n} attempts: {e}")
                return outcome
            delay = backoff(n)
            logger.warning(f"{label} attempt {n}/{max_attempts} failed: {e}. Retrying in {delay}s")
            outcome.delays.append(delay)
            sleep(delay)
    return outcome
