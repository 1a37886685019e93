"""Unit tests for foundation.retry module.

This file tests the retry utilities including:
- RetryWithBackoff: Class-based retry with exponential backoff
- HTTPErrorClassifier: Base class for HTTP error classification
- create_retry_logger: Factory for retry logging callbacks

# Test Coverage

The tests cover:
  - Initialization: Default and custom configuration values
  - Success Paths: Immediate success, argument passing
  - Retry Logic: Retriable exception handling, max attempts exhaustion
  - Exception Filtering: Programming errors are never retried
  - Classifier: Classifier decides which errors are retried
  - Logging: Retry attempt logging, final failure logging

# Test Structure

Tests use pytest class-based organization with descriptive test names.
Waits are set to zero so retries run instantly.

# Running Tests

Run with: pytest tests/unit/foundation/test_retry.py
"""

import logging
from typing import Any
from unittest.mock import MagicMock

import pytest

from mlconnect.foundation.retry import (
    RETRIABLE_HTTP_STATUS_CODES,
    HTTPErrorClassifier,
    RetryWithBackoff,
    create_retry_logger,
)


class _OnlyValueErrors(HTTPErrorClassifier):
    def is_retriable(self, exc: BaseException) -> bool:
        return isinstance(exc, ValueError)

    def get_error_details(self, exc: BaseException) -> dict[str, Any]:
        return {"detail": str(exc)}


def _fast_retry(**kwargs: Any) -> RetryWithBackoff:
    return RetryWithBackoff(wait_min=0, wait_max=0, multiplier=0, **kwargs)


# =============================================================================
# RetryWithBackoff Tests
# =============================================================================


class TestRetryWithBackoff:
    """Test suite for RetryWithBackoff class."""

    def test_init_defaults(self) -> None:
        """Test that RetryWithBackoff initializes with default values.

        **Why this test is important:**
          - Default configuration must work out of the box
          - Callers rely on the documented defaults

        **What it tests:**
          - max_attempts defaults to 3
          - wait_min / wait_max default to 1.0 / 10.0
          - No classifier by default
          - Logger defaults to "mlconnect.retry"
        """
        retry = RetryWithBackoff()

        assert retry.max_attempts == 3
        assert retry.wait_min == 1.0
        assert retry.wait_max == 10.0
        assert retry.multiplier == 1.0
        assert retry.classifier is None
        assert retry.logger.name == "mlconnect.retry"

    def test_immediate_success_calls_once(self) -> None:
        """Test that a successful call is not repeated.

        **Why this test is important:**
          - Remote invocations are not idempotent in general
          - A success must never trigger a second call

        **What it tests:**
          - Function is called exactly once
          - Arguments and keyword arguments are forwarded
        """
        func = MagicMock(return_value="ok")

        result = _fast_retry().call(func, 1, key="value")

        assert result == "ok"
        func.assert_called_once_with(1, key="value")

    def test_retries_until_success(self) -> None:
        """Test that transient failures are retried until success.

        **What it tests:**
          - Two failures followed by success give three calls
          - The successful result is returned
        """
        func = MagicMock(side_effect=[ConnectionError("a"), ConnectionError("b"), "done"])

        assert _fast_retry().call(func) == "done"
        assert func.call_count == 3

    def test_exhausted_attempts_reraise_last_error(self) -> None:
        """Test that the last error is re-raised once attempts run out.

        **Why this test is important:**
          - Callers must see the real failure, not a wrapper
          - Attempt count must be bounded

        **What it tests:**
          - Original exception type propagates
          - Function is called max_attempts times
        """
        func = MagicMock(side_effect=ConnectionError("down"))

        with pytest.raises(ConnectionError, match="down"):
            _fast_retry(max_attempts=4).call(func)
        assert func.call_count == 4

    @pytest.mark.parametrize("exc", [TypeError("t"), AttributeError("a"), KeyError("k")])
    def test_programming_errors_never_retried(self, exc: Exception) -> None:
        """Test that programming errors fail on the first attempt.

        **What it tests:**
          - TypeError, AttributeError and KeyError are not retried
        """
        func = MagicMock(side_effect=exc)

        with pytest.raises(type(exc)):
            _fast_retry().call(func)
        func.assert_called_once()

    def test_classifier_controls_retry(self) -> None:
        """Test that the classifier decides which errors are retried.

        **Why this test is important:**
          - Remote 4xx answers must fail fast while 5xx are retried
          - The classifier is the single place encoding that policy

        **What it tests:**
          - Non-retriable error is raised after one call
          - Retriable error is retried
        """
        retry = _fast_retry(classifier=_OnlyValueErrors())

        not_retried = MagicMock(side_effect=RuntimeError("no"))
        with pytest.raises(RuntimeError):
            retry.call(not_retried)
        not_retried.assert_called_once()

        retried = MagicMock(side_effect=[ValueError("yes"), "ok"])
        assert retry.call(retried) == "ok"
        assert retried.call_count == 2

    def test_final_failure_logged(self) -> None:
        """Test that exhausting all attempts logs an error.

        **What it tests:**
          - logger.error called with "All retry attempts exhausted"
          - Structured fields include max_attempts and error_type
        """
        mock_logger = MagicMock(spec=logging.Logger)
        retry = _fast_retry(max_attempts=2, logger=mock_logger)

        with pytest.raises(ConnectionError):
            retry.call(MagicMock(side_effect=ConnectionError("x")))

        mock_logger.error.assert_called_once()
        extra = mock_logger.error.call_args[1]["extra"]
        assert extra["max_attempts"] == 2
        assert extra["error_type"] == "ConnectionError"
        assert mock_logger.warning.call_count == 1


# =============================================================================
# HTTPErrorClassifier Tests
# =============================================================================


class TestHTTPErrorClassifier:
    """Test suite for HTTPErrorClassifier status classification."""

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504, "503"])
    def test_retriable_statuses(self, status: int | str) -> None:
        """Test that throttling and server errors are retriable."""
        assert _OnlyValueErrors().is_retriable_http_status(status) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 501, 200])
    def test_non_retriable_statuses(self, status: int) -> None:
        """Test that client errors and unlisted statuses fail fast."""
        assert _OnlyValueErrors().is_retriable_http_status(status) is False

    def test_default_code_set(self) -> None:
        assert RETRIABLE_HTTP_STATUS_CODES == frozenset({"429", "500", "502", "503", "504"})


# =============================================================================
# create_retry_logger Tests
# =============================================================================


class TestCreateRetryLogger:
    """Test suite for the tenacity before_sleep callback factory."""

    def test_logs_attempt_and_details(self) -> None:
        """Test that the callback logs attempt number and error details.

        **What it tests:**
          - Warning logged with the given message
          - attempt, wait_seconds and error_type fields present
          - Details from get_error_details merged into extra
        """
        mock_logger = MagicMock(spec=logging.Logger)
        callback = create_retry_logger(mock_logger, lambda exc: {"http_status": 503}, "Call failed")

        state = MagicMock()
        state.outcome.failed = True
        state.outcome.exception.return_value = ValueError("boom")
        state.next_action.sleep = 1.234
        state.attempt_number = 2

        callback(state)

        mock_logger.warning.assert_called_once()
        args, kwargs = mock_logger.warning.call_args
        assert args[0] == "Call failed"
        assert kwargs["extra"] == {
            "attempt": 2,
            "wait_seconds": 1.23,
            "error_type": "ValueError",
            "http_status": 503,
        }

    def test_ignores_successful_outcome(self) -> None:
        """Test that nothing is logged when the outcome did not fail."""
        mock_logger = MagicMock(spec=logging.Logger)
        callback = create_retry_logger(mock_logger)
        state = MagicMock()
        state.outcome.failed = False

        callback(state)

        mock_logger.warning.assert_not_called()
