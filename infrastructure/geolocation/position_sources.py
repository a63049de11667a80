"""
Fuentes de posición de la plataforma (estilo callbacks).

En un navegador esto sería navigator.geolocation; en un proceso de
servidor o CLI la posición del dispositivo viene de configuración.
"""

import logging
from typing import Optional

from core.interfaces import PositionCallback, PositionErrorCallback, PositionSource
from models.discovery import GeoFailureReason

logger = logging.getLogger(__name__)


class FixedPositionSource(PositionSource):
    """Reporta siempre las mismas coordenadas (DEVICE_LATITUDE/LONGITUDE)."""

    def __init__(self, latitude: float, longitude: float):
        self.latitude = latitude
        self.longitude = longitude

    def is_available(self) -> bool:
        return True

    def get_current_position(
        self,
        on_success: PositionCallback,
        on_error: PositionErrorCallback,
        *,
        timeout_ms: int,
        maximum_age_ms: int,
    ) -> None:
        on_success(self.latitude, self.longitude)


class UnavailablePositionSource(PositionSource):
    """Plataforma sin geolocalización."""

    def is_available(self) -> bool:
        return False

    def get_current_position(
        self,
        on_success: PositionCallback,
        on_error: PositionErrorCallback,
        *,
        timeout_ms: int,
        maximum_age_ms: int,
    ) -> None:
        on_error(GeoFailureReason.UNAVAILABLE, "Geolocation is not supported")


def build_position_source(
    latitude: Optional[float], longitude: Optional[float]
) -> PositionSource:
    if latitude is None or longitude is None:
        logger.info("📍 Sin posición de dispositivo configurada")
        return UnavailablePositionSource()
    return FixedPositionSource(latitude, longitude)
