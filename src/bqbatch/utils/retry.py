"""Backoff and retry-eligibility helpers for the batch executor."""

from ..config import RetryPolicyConfig
from ..domain.base_enums import ErrorKind
from ..domain.errors import ExecutionError


def compute_backoff(attempt: int, base_seconds: float, max_seconds: float) -> float:
    """
    Delay to wait after failed attempt number `attempt` (1-based).

    delay = base_seconds * 2 ** (attempt - 1), capped at max_seconds.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return min(base_seconds * (2 ** (attempt - 1)), max_seconds)


def is_retryable(error: ExecutionError, policy: RetryPolicyConfig) -> bool:
    """True when `error` may be retried under `policy`."""
    if error.is_transient:
        return True
    return policy.retry_on_quota and error.kind == ErrorKind.QUOTA
