"""Retry utilities with exponential backoff using tenacity.

Connector executors never retry on their own: one invocation is one HTTP
exchange. These helpers let *callers* opt into retries around an invocation
with consistent structured logging.

## Components

### ErrorClassifier (Protocol)
Protocol for classifying errors as retriable vs non-retriable.

### HTTPErrorClassifier
Base implementation with common HTTP status code classification:
- 5xx errors: Retriable (server-side issues)
- 429: Retriable (throttling)
- Other 4xx errors: Non-retriable (client-side issues)

### create_retry_logger
Factory for tenacity `before_sleep` callbacks with error detail extraction.

### RetryWithBackoff
Class-based retry utility with exponential backoff and structured logging.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from functools import partial
from typing import Any, Protocol, TypeVar, runtime_checkable

from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

T = TypeVar("T")

# Programming errors are never retried.
NEVER_RETRY_EXCEPTIONS: tuple[type[Exception], ...] = (TypeError, AttributeError, KeyError)

# =============================================================================
# Error Classification
# =============================================================================

RETRIABLE_HTTP_STATUS_CODES: frozenset[str] = frozenset(
    {
        "429",  # Too Many Requests
        "500",  # Internal Server Error
        "502",  # Bad Gateway
        "503",  # Service Unavailable
        "504",  # Gateway Timeout
    }
)


@runtime_checkable
class ErrorClassifier(Protocol):
    """Protocol for error classification in retry logic."""

    def is_retriable(self, exc: BaseException) -> bool:
        """Return True if the error is transient and should be retried."""
        ...

    def get_error_details(self, exc: BaseException) -> dict[str, Any]:
        """Return structured error details for logging (may be empty)."""
        ...


class HTTPErrorClassifier(ABC):
    """Base error classifier with HTTP status code classification.

    Subclasses implement `is_retriable()` and `get_error_details()` for their
    own exception types and use `is_retriable_http_status()` for status codes.

    Attributes:
        retriable_http_codes: Set of HTTP status codes considered retriable.
    """

    retriable_http_codes: frozenset[str] = RETRIABLE_HTTP_STATUS_CODES

    def is_retriable_http_status(self, status: str | int) -> bool:
        """Check if an HTTP status code indicates a retriable error.

        Args:
            status: HTTP status code as string or int.

        Returns:
            True for retriable server errors and throttling, False otherwise.
        """
        status_str = str(status)

        if status_str in self.retriable_http_codes:
            return True

        # Unknown or 4xx - fail fast
        return False

    @abstractmethod
    def is_retriable(self, exc: BaseException) -> bool:
        """Determine if an exception should trigger a retry."""

    @abstractmethod
    def get_error_details(self, exc: BaseException) -> dict[str, Any]:
        """Extract structured error details for logging."""


# =============================================================================
# Retry Logging
# =============================================================================


def create_retry_logger(
    logger: logging.Logger,
    get_error_details: Callable[[BaseException], dict[str, Any]] | None = None,
    message: str = "Operation failed, retrying",
) -> Callable[[Any], None]:
    """Create a retry logging callback for tenacity's `before_sleep`.

    Args:
        logger: Logger instance to use for logging.
        get_error_details: Optional function to extract additional error
            details from exceptions.
        message: Log message.

    Returns:
        Callback function for tenacity's before_sleep parameter.
    """

    def log_retry(retry_state: Any) -> None:
        if retry_state.outcome is None or not retry_state.outcome.failed:
            return

        exc = retry_state.outcome.exception()
        wait_time = retry_state.next_action.sleep if retry_state.next_action else 0

        extra: dict[str, Any] = {
            "attempt": retry_state.attempt_number,
            "wait_seconds": round(wait_time, 2),
            "error_type": type(exc).__name__,
        }

        if get_error_details is not None:
            extra.update(get_error_details(exc))

        logger.warning(message, extra=extra)

    return log_retry


# =============================================================================
# RetryWithBackoff
# =============================================================================


class RetryWithBackoff:
    """Retry utility with exponential backoff and structured logging.

    Attributes:
        max_attempts: Maximum number of attempts (default: 3).
        wait_min: Minimum wait time between retries in seconds (default: 1.0).
        wait_max: Maximum wait time between retries in seconds (default: 10.0).
        multiplier: Exponential backoff multiplier (default: 1.0).
        classifier: Decides which errors are retried. When None, every
            `Exception` except programming errors is retried.
        logger: Logger instance for structured logging.

    Example:
        ```python
        from mlconnect.core.retries import InvocationErrorClassifier
        from mlconnect.foundation.retry import RetryWithBackoff

        retry = RetryWithBackoff(max_attempts=4, classifier=InvocationErrorClassifier())
        output = retry.call(service.execute_predict, ml_input)
        ```
    """

    def __init__(
        self,
        max_attempts: int = 3,
        wait_min: float = 1.0,
        wait_max: float = 10.0,
        multiplier: float = 1.0,
        classifier: ErrorClassifier | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.max_attempts = max_attempts
        self.wait_min = wait_min
        self.wait_max = wait_max
        self.multiplier = multiplier
        self.classifier = classifier
        self.logger = logger or logging.getLogger("mlconnect.retry")

    def _should_retry(self, exc: BaseException) -> bool:
        if isinstance(exc, NEVER_RETRY_EXCEPTIONS):
            return False
        if self.classifier is not None:
            return self.classifier.is_retriable(exc)
        return isinstance(exc, Exception)

    @staticmethod
    def _log_failure(
        retry_state: Any,
        logger: logging.Logger,
        max_attempts: int,
    ) -> None:
        """Log callback for the final failure after all retries are exhausted."""
        if retry_state.outcome is None or not retry_state.outcome.failed:
            return
        if retry_state.attempt_number < max_attempts:
            return

        exception = retry_state.outcome.exception()
        logger.error(
            "All retry attempts exhausted",
            extra={
                "max_attempts": max_attempts,
                "error": str(exception),
                "error_type": type(exception).__name__,
            },
        )

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call a function with retry logic.

        Args:
            func: Function to call with retry logic.
            *args: Positional arguments to pass to func.
            **kwargs: Keyword arguments to pass to func.

        Returns:
            Result of func(*args, **kwargs).

        Raises:
            Exception: The last exception once attempts are exhausted, or the
                first non-retriable exception.
        """
        get_details = self.classifier.get_error_details if self.classifier is not None else None
        retry = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.multiplier, min=self.wait_min, max=self.wait_max),
            retry=retry_if_exception(self._should_retry),
            before_sleep=create_retry_logger(self.logger, get_details, "Retry attempt failed, retrying"),
            after=partial(self._log_failure, logger=self.logger, max_attempts=self.max_attempts),
            reraise=True,
        )
        result: T = retry(func, *args, **kwargs)
        return result
