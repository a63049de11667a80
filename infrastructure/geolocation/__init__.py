"""Fuentes de posición de la plataforma."""

from .position_sources import (
    FixedPositionSource,
    UnavailablePositionSource,
    build_position_source,
)

__all__ = [
    "FixedPositionSource",
    "UnavailablePositionSource",
    "build_position_source",
]
