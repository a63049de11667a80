"""
Módulo de resiliencia.

- Circuit Breaker: protege la búsqueda nearby contra fallos en cascada
"""

from .circuit_breaker import CircuitBreaker, CircuitState

__all__ = [
    "CircuitBreaker",
    "CircuitState",
]
