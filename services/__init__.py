# Módulo de servicios del motor de descubrimiento
from .discovery_orchestrator import DiscoveryOrchestrator
from .favorites_store import FAVORITES_KEY, FavoritesStore, favorites_key
from .geo_locator import GeoLocator
from .map_markers import MapMarkerView, build_markers
from .pagination import PaginationController
from .query_builder import QueryBuilder, parse_optional_number
from .recommendations import RecommendationLoader
from .result_fetcher import ResultFetcher

__all__ = [
    "DiscoveryOrchestrator",
    "FavoritesStore",
    "FAVORITES_KEY",
    "favorites_key",
    "GeoLocator",
    "MapMarkerView",
    "build_markers",
    "PaginationController",
    "QueryBuilder",
    "parse_optional_number",
    "RecommendationLoader",
    "ResultFetcher",
]
