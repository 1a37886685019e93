"""Mixins for connector executors and service clients.

This module provides reusable mixins that add circuit breaker support,
connector validation and logging to executor and client classes.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any

import attrs
import pybreaker

from mlconnect.core.exceptions import InvalidConfigError
from mlconnect.foundation.circuit_breaker import create_circuit_breaker


@attrs.define(frozen=False, slots=True)
class CircuitBreakerMixin(ABC):
    """Mixin for executors with circuit breaker support.

    Subclasses implement `_circuit_breaker_config()` and may override
    `_circuit_breaker_exclude()` to keep errors from counting as failures.

    Example:
        ```python
        @attrs.define(frozen=False, slots=True)
        class MyExecutor(CircuitBreakerMixin):
            def _circuit_breaker_config(self) -> tuple[str, int, int]:
                return ("my-connector", 5, 30)

            def __attrs_post_init__(self) -> None:
                self._init_circuit_breaker()
        ```
    """

    _breaker: pybreaker.CircuitBreaker = attrs.field(init=False)

    @abstractmethod
    def _circuit_breaker_config(self) -> tuple[str, int, int]:
        """Return (name, failure_threshold, recovery_timeout)."""

    def _circuit_breaker_exclude(self) -> list[Callable[[BaseException], bool]]:
        return []

    def _init_circuit_breaker(self) -> None:
        """Initialize the circuit breaker. Call from `__attrs_post_init__`."""
        name, failure_threshold, recovery_timeout = self._circuit_breaker_config()
        object.__setattr__(
            self,
            "_breaker",
            create_circuit_breaker(
                name=name,
                failure_threshold=failure_threshold,
                recovery_timeout=recovery_timeout,
                exclude=self._circuit_breaker_exclude(),
            ),
        )


class ConnectorValidationMixin:
    """Mixin for executors bound to a subset of connector protocols."""

    @classmethod
    def _validate_connector(cls, connector: Any, expected_protocols: Iterable[Any]) -> None:
        """Validate that the connector uses one of the expected protocols.

        Raises:
            InvalidConfigError: If the protocol does not match.
        """
        expected = list(expected_protocols)
        if connector.protocol not in expected:
            names = ", ".join(p.value for p in expected)
            msg = f"{cls.__name__} requires a connector with protocol [{names}], got '{connector.protocol.value}'"
            raise InvalidConfigError(msg)


class LoggerMixin:
    """Mixin that gives each executor class a logger named after its module.

    The logger is available as `self._logger` or `cls._logger`.
    """

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._logger = logging.getLogger(cls.__module__)  # type: ignore[attr-defined]
