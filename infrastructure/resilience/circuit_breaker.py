"""
Circuit Breaker para la búsqueda nearby.

Cuando nearby search falla repetidamente, el circuito se abre y las
siguientes búsquedas con ubicación van directo al fallback scoped sin
esperar el timeout del transporte. No es un reintento: cada request
sigue ejecutando como máximo una llamada nearby.

Estados:
- CLOSED: funcionamiento normal
- OPEN: nearby se considera fallido sin hacer la request
- HALF_OPEN: se deja pasar un número limitado de requests de prueba
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from core.exceptions import CircuitBreakerOpenError

T = TypeVar("T")


class CircuitState(str, Enum):
    """Estados del Circuit Breaker."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker asíncrono.

    Uso:
        cb = CircuitBreaker(name="nearby-search", failure_threshold=5)
        resultado = await cb.call(cliente.nearby_providers, params)
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        open_seconds: float = 20.0,
        half_open_success_threshold: int = 2,
        half_open_max_requests: int = 3,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            name: Nombre identificador para logs
            failure_threshold: Fallos consecutivos para abrir el circuito
            open_seconds: Tiempo en OPEN antes de pasar a HALF_OPEN
            half_open_success_threshold: Éxitos para cerrar desde HALF_OPEN
            half_open_max_requests: Requests de prueba permitidas en HALF_OPEN
            clock: Reloj monotónico (inyectable en tests)
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.open_seconds = open_seconds
        self.half_open_success_threshold = half_open_success_threshold
        self.half_open_max_requests = half_open_max_requests
        self._clock = clock
        self.logger = logger or logging.getLogger(f"circuit_breaker.{name}")

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._half_open_requests = 0
        self._open_until = 0.0
        self._lock = asyncio.Lock()

        self._total_requests = 0
        self._total_failures = 0
        self._total_rejects = 0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    async def allow_request(self) -> bool:
        """True si la request puede proceder según el estado del circuito."""
        async with self._lock:
            self._total_requests += 1

            if self._state == CircuitState.CLOSED:
                return True

            if self._state == CircuitState.OPEN:
                if self._clock() < self._open_until:
                    self._total_rejects += 1
                    return False
                self._transition(CircuitState.HALF_OPEN, "open window elapsed")

            if self._half_open_requests >= self.half_open_max_requests:
                self._total_rejects += 1
                return False
            self._half_open_requests += 1
            return True

    async def record_success(self) -> None:
        async with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.half_open_success_threshold:
                    self._transition(CircuitState.CLOSED, "recovered")
            else:
                self._failure_count = 0

    async def record_failure(self, reason: str = "unknown") -> None:
        async with self._lock:
            self._total_failures += 1
            self._failure_count += 1

            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN, reason)
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                self._transition(CircuitState.OPEN, reason)

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Ejecuta `func` protegida por el circuito.

        Raises:
            CircuitBreakerOpenError: si el circuito rechaza la request
        """
        if not await self.allow_request():
            raise CircuitBreakerOpenError(f"Circuit breaker '{self.name}' is open")

        try:
            resultado = await func(*args, **kwargs)
        except Exception as exc:
            await self.record_failure(type(exc).__name__)
            raise
        await self.record_success()
        return resultado

    def _transition(self, nuevo: CircuitState, reason: str) -> None:
        anterior = self._state
        self._state = nuevo
        self._failure_count = 0
        self._success_count = 0
        self._half_open_requests = 0
        if nuevo == CircuitState.OPEN:
            self._open_until = self._clock() + self.open_seconds

        log = self.logger.warning if nuevo == CircuitState.OPEN else self.logger.info
        log(
            f"🔄 Circuit breaker '{self.name}': {anterior.value} -> {nuevo.value}",
            extra={"circuit_breaker": self.name, "reason": reason},
        )

    def get_metrics(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "total_requests": self._total_requests,
            "total_failures": self._total_failures,
            "total_rejects": self._total_rejects,
            "seconds_until_half_open": (
                max(0.0, self._open_until - self._clock())
                if self._state == CircuitState.OPEN
                else None
            ),
        }

    async def reset(self) -> None:
        """Fuerza el circuito a CLOSED."""
        async with self._lock:
            self._transition(CircuitState.CLOSED, "manual reset")
