"""Modelos Pydantic del motor de descubrimiento."""

from .discovery import (
    DiscoveryState,
    DiscoveryStatus,
    ErrorInfo,
    GeoFailure,
    GeoFailureReason,
    GeoLocation,
    GeoResult,
)
from .filters import FilterState
from .markers import MapMarker, Recommendations
from .search import (
    EntityKind,
    LocatedEntity,
    Pagination,
    SearchQuery,
    SearchResult,
    SortBy,
)

__all__ = [
    # Búsqueda
    "SearchQuery",
    "SortBy",
    "EntityKind",
    "LocatedEntity",
    "Pagination",
    "SearchResult",
    # Filtros
    "FilterState",
    # Estado de descubrimiento
    "DiscoveryState",
    "DiscoveryStatus",
    "ErrorInfo",
    "GeoLocation",
    "GeoFailure",
    "GeoFailureReason",
    "GeoResult",
    # Vistas
    "MapMarker",
    "Recommendations",
]
