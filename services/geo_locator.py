"""
Geo Locator: one awaitable, cancellable, timed geolocation request.

Wraps a callback-style PositionSource so callers can write linear async
code. Only one request is in flight at a time; a newer `acquire()`
resolves the older one as SUPERSEDED and any late platform callback for
it is ignored.
"""

import asyncio
import logging
from typing import Optional

from core.interfaces import PositionSource
from models.discovery import GeoFailure, GeoFailureReason, GeoLocation, GeoResult

logger = logging.getLogger(__name__)


class GeoLocator:
    def __init__(self, source: PositionSource):
        self._source = source
        self._sequence = 0
        self._pending: Optional[asyncio.Future] = None

    @property
    def is_available(self) -> bool:
        return self._source.is_available()

    async def acquire(self, timeout_ms: int = 5000, max_age_ms: int = 0) -> GeoResult:
        """
        Requests the device position once.

        Returns a GeoLocation, or a GeoFailure with reason DENIED,
        UNAVAILABLE, TIMEOUT or SUPERSEDED. Never raises for platform
        failures and never retries.
        """
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")

        if not self._source.is_available():
            return GeoFailure(
                reason=GeoFailureReason.UNAVAILABLE,
                message="Geolocation is not supported",
            )

        self._supersede_pending()

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._sequence += 1
        sequence = self._sequence
        self._pending = future

        def _resolve(outcome: GeoResult) -> None:
            def _apply() -> None:
                # timed out, superseded or cancelled: the answer is stale
                if future.done() or sequence != self._sequence:
                    logger.debug(
                        "📍 Callback de geolocalización tardío ignorado",
                        extra={"geo_sequence": sequence},
                    )
                    return
                future.set_result(outcome)

            # platforms may call back from their own thread
            loop.call_soon_threadsafe(_apply)

        def _on_success(latitude: float, longitude: float) -> None:
            try:
                _resolve(GeoLocation(latitude=latitude, longitude=longitude))
            except ValueError as e:
                _resolve(
                    GeoFailure(
                        reason=GeoFailureReason.UNAVAILABLE,
                        message=f"Invalid coordinates: {e}",
                    )
                )

        def _on_error(reason: GeoFailureReason, message: str = "") -> None:
            _resolve(GeoFailure(reason=GeoFailureReason(reason), message=message))

        try:
            self._source.get_current_position(
                _on_success,
                _on_error,
                timeout_ms=timeout_ms,
                maximum_age_ms=max_age_ms,
            )
        except Exception as e:
            logger.warning(f"⚠️ Fuente de posición falló: {e}")
            self._clear_pending(future)
            future.cancel()
            return GeoFailure(reason=GeoFailureReason.UNAVAILABLE, message=str(e))

        try:
            return await asyncio.wait_for(future, timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.info(
                "⏰ Timeout de geolocalización",
                extra={"timeout_ms": timeout_ms, "geo_sequence": sequence},
            )
            return GeoFailure(
                reason=GeoFailureReason.TIMEOUT,
                message=f"No position within {timeout_ms} ms",
            )
        finally:
            self._clear_pending(future)

    def _supersede_pending(self) -> None:
        pendiente = self._pending
        if pendiente is not None and not pendiente.done():
            pendiente.set_result(
                GeoFailure(
                    reason=GeoFailureReason.SUPERSEDED,
                    message="Replaced by a newer geolocation request",
                )
            )
        self._pending = None

    def _clear_pending(self, future: asyncio.Future) -> None:
        if self._pending is future:
            self._pending = None
