"""Retry policies for connecting to backing services.

Inference calls are never retried here: a failed model call surfaces as
``InferenceFailure`` and the caller decides. These policies only cover
startup connectivity (Redis ping, account service health) where a pod may
come up before its dependencies.
"""

import logging
from typing import Callable, TypeVar

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Startup policy: 2s, 4s, 8s, 16s between 5 attempts, then re-raise
service_startup_retry = retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=2, max=32),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


def create_custom_retry(
    max_attempts: int = 5,
    min_wait: float = 2,
    max_wait: float = 32,
    retry_on: tuple = (Exception,),
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Build a startup retry decorator with a different budget.

    Args:
        max_attempts: Attempts before the last exception is re-raised
        min_wait: Lower bound of the exponential backoff (seconds)
        max_wait: Upper bound of the exponential backoff (seconds)
        retry_on: Exception types that trigger another attempt

    Example:
        ```python
        quick_retry = create_custom_retry(max_attempts=2, min_wait=0, max_wait=0)

        @quick_retry
        async def ping():
            ...
        ```
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
