"""Scalability layer: circuit breaker around the backend."""

from autocontrol.scalability.circuit_breaker import CircuitBreaker, CircuitState

__all__ = [
    "CircuitBreaker",
    "CircuitState",
]
