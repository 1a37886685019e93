"""Exception classes for foundation utilities.

This module provides exception classes used by foundation components.
"""


class FoundationError(Exception):
    """Base exception class for foundation-related errors."""


class UpstreamError(FoundationError):
    """Exception raised when a remote dependency cannot be reached.

    This exception indicates that a required external service is unavailable
    or failed before producing an HTTP response (connection refused, timeout,
    TLS failure, open circuit breaker).
    """
