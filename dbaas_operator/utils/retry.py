"""
Retry utilities.

Reconcile failures are never retried in place; the work queue requeues the
key after ``backoff_delay``. Startup connectivity (Kubernetes API, Redis)
is retried with tenacity through ``startup_retry``.
"""
from typing import Callable, Optional, Tuple, Type

from kubernetes_asyncio.client.exceptions import ApiException
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from dbaas_operator.config.logging import get_logger

logger = get_logger(__name__)

# HTTP status codes of the Kubernetes API worth retrying at startup
RETRYABLE_STATUS_CODES = {
    408,  # Request Timeout
    429,  # Too Many Requests (rate limiting)
    500,  # Internal Server Error
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
}


def backoff_delay(
    attempt: int,
    initial_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
) -> float:
    """
    Delay before retry number ``attempt`` (0-based) with exponential backoff.

    Args:
        attempt: Number of failures already seen for this key, minus one
        initial_delay: Delay after the first failure
        max_delay: Upper bound for the delay
        exponential_base: Growth factor between attempts

    Returns:
        Delay in seconds
    """
    return min(initial_delay * (exponential_base ** max(attempt, 0)), max_delay)


def is_retryable_k8s_error(exception: BaseException) -> bool:
    """
    Determine if a Kubernetes API exception should trigger a retry.

    Args:
        exception: The exception to check

    Returns:
        True if the exception is retryable, False otherwise
    """
    if not isinstance(exception, ApiException):
        return False
    return exception.status in RETRYABLE_STATUS_CODES


def _log_retry(retry_state: RetryCallState) -> None:
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "startup_call_failed_retrying",
        function=getattr(retry_state.fn, "__name__", str(retry_state.fn)),
        attempt=retry_state.attempt_number,
        delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error_type=type(exception).__name__ if exception else None,
        error=str(exception) if exception else None,
    )


def startup_retry(
    max_attempts: int = 10,
    initial_delay: float = 2.0,
    max_delay: float = 30.0,
    retry_on: Optional[Tuple[Type[BaseException], ...]] = None,
) -> Callable:
    """
    Decorator retrying a startup connection with exponential backoff.

    Retries retryable Kubernetes API errors, connection errors, timeouts and
    any extra exception types in ``retry_on``. The last error is re-raised.

    Example:
        @startup_retry(max_attempts=5)
        async def connect():
            ...
    """
    extra = (ConnectionError, TimeoutError) + tuple(retry_on or ())

    def should_retry(exception: BaseException) -> bool:
        return is_retryable_k8s_error(exception) or isinstance(exception, extra)

    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=initial_delay, min=initial_delay, max=max_delay),
        retry=retry_if_exception(should_retry),
        before_sleep=_log_retry,
        reraise=True,
    )
