"""Circuit breaker utilities for remote model endpoints.

This module wraps **pybreaker** so that every connector executor can fail fast
when its remote endpoint keeps failing at the transport level.

## Circuit Breaker States

- **CLOSED**: Normal operation, requests pass through
- **OPEN**: Endpoint is failing, requests fail immediately without I/O
- **HALF_OPEN**: Testing if the endpoint has recovered, allows one request

## What counts as a failure

Only errors raised before an HTTP response exists (connection refused, DNS,
timeouts, TLS) should trip a breaker. A remote service answering 4xx/5xx is a
*response*, and validation errors never reach the network. Executors pass an
`exclude` predicate to `create_circuit_breaker` to express this.

## Decorator

`@with_circuit_breaker()` wraps a method of a class that owns a `_breaker`
attribute (see `mlconnect.clients.mixins.CircuitBreakerMixin`):
1. Run the call through `breaker.call`, which fails fast while the circuit
   is open and lets one trial call through once the recovery timeout passed
2. Convert `pybreaker.CircuitBreakerError` into the caller's error type
"""

import functools
import logging
from collections.abc import Callable, Iterable
from typing import Any, NoReturn

import pybreaker

from mlconnect.foundation.exceptions import UpstreamError

logger = logging.getLogger("mlconnect.foundation.circuit_breaker")


class CircuitBreakerListener(pybreaker.CircuitBreakerListener):
    """Logging listener for circuit breaker state changes."""

    def state_change(
        self,
        cb: pybreaker.CircuitBreaker,
        old_state: pybreaker.CircuitBreakerState | None,
        new_state: pybreaker.CircuitBreakerState,
    ) -> None:
        """Log circuit breaker state transitions.

        Args:
            cb: The circuit breaker instance.
            old_state: Previous state.
            new_state: New state.
        """
        logger.warning(
            "Circuit breaker state changed",
            extra={
                "circuit_breaker": cb.name,
                "old_state": str(old_state),
                "new_state": str(new_state),
                "failure_count": cb.fail_counter,
            },
        )

    def failure(
        self,
        cb: pybreaker.CircuitBreaker,
        exc: BaseException,
    ) -> None:
        """Log when a protected call fails with a counted error."""
        logger.error(
            "Circuit breaker failure",
            extra={
                "circuit_breaker": cb.name,
                "state": str(cb.current_state),
                "failure_count": cb.fail_counter,
                "exception_type": type(exc).__name__,
            },
        )

    def success(self, cb: pybreaker.CircuitBreaker) -> None:
        logger.debug(
            "Circuit breaker success",
            extra={
                "circuit_breaker": cb.name,
                "state": str(cb.current_state),
            },
        )


def create_circuit_breaker(
    name: str,
    failure_threshold: int = 5,
    recovery_timeout: int = 30,
    exclude: Iterable[type[BaseException] | Callable[[BaseException], bool]] | None = None,
) -> pybreaker.CircuitBreaker:
    """Create a circuit breaker for a remote endpoint.

    Args:
        name: Unique name for the circuit breaker (usually the connector name).
        failure_threshold: Number of consecutive failures before opening the
            circuit. Default: 5.
        recovery_timeout: Seconds to wait before moving to half-open.
            Default: 30.
        exclude: Exception types, or predicates returning True, for errors
            that must NOT count as failures.

    Returns:
        Configured CircuitBreaker instance with logging listener.

    Example:
        ```python
        breaker = create_circuit_breaker(
            "openai-chat",
            failure_threshold=5,
            recovery_timeout=30,
            exclude=[lambda exc: not isinstance(exc, TransportError)],
        )
        ```
    """
    return pybreaker.CircuitBreaker(
        name=name,
        fail_max=failure_threshold,
        reset_timeout=recovery_timeout,
        exclude=list(exclude or []),
        listeners=[CircuitBreakerListener()],
    )


def handle_circuit_breaker_error(
    service_name: str,
    error_cls: Callable[[str], Exception] = UpstreamError,
) -> NoReturn:
    """Raise the error used to report an open circuit.

    Args:
        service_name: Name of the endpoint (for the error message).
        error_cls: Exception type to raise. Defaults to UpstreamError.

    Raises:
        Exception: Always raises `error_cls` describing the open circuit.
    """
    msg = (
        f"{service_name} is currently unavailable. "
        "The circuit breaker is open due to repeated failures. "
        "Calls will be attempted again after the recovery timeout."
    )
    raise error_cls(msg)


def _get_breaker_or_raise(instance: object) -> pybreaker.CircuitBreaker:
    """Get circuit breaker from instance or raise RuntimeError."""
    breaker = getattr(instance, "_breaker", None)
    if breaker is None:
        msg = (
            f"{instance.__class__.__name__} has no circuit breaker. "
            "Ensure the class inherits from CircuitBreakerMixin and "
            "calls _init_circuit_breaker() in __attrs_post_init__."
        )
        raise RuntimeError(msg)
    return breaker


def with_circuit_breaker(
    service_name: str | None = None,
    error_cls: Callable[[str], Exception] = UpstreamError,
):
    """Decorator to wrap method calls with circuit breaker protection.

    Args:
        service_name: Name used in error messages. When None, the breaker's
            own name is used.
        error_cls: Exception type raised while the circuit is open.

    Returns:
        Decorator function that wraps methods with circuit breaker logic.

    Note:
        This decorator expects the instance to have a `_breaker` attribute
        (typically provided by CircuitBreakerMixin).
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args: Any, **kwargs: Any):
            breaker = _get_breaker_or_raise(self)
            name = service_name or breaker.name

            def _impl():
                return func(self, *args, **kwargs)

            try:
                return breaker.call(_impl)
            except pybreaker.CircuitBreakerError:
                handle_circuit_breaker_error(name, error_cls)

        return wrapper

    return decorator
