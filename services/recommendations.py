"""
Home page recommendations: popular services and recommended providers.

Prefers nearby results when a location is known and degrades to the
location-free listings otherwise. Never raises for backend failures; a
section that cannot be loaded is empty.
"""

import asyncio
import logging
from typing import List, Optional

from core.exceptions import FetchError
from models.discovery import GeoLocation
from models.markers import Recommendations
from models.search import EntityKind, LocatedEntity, SearchQuery
from services.geo_locator import GeoLocator
from services.result_fetcher import ResultFetcher

logger = logging.getLogger(__name__)


class RecommendationLoader:
    def __init__(
        self,
        fetcher: ResultFetcher,
        locator: Optional[GeoLocator] = None,
        limit: int = 10,
        radius_km: float = 10.0,
        geo_timeout_ms: int = 5000,
        geo_max_age_ms: int = 0,
    ):
        self._fetcher = fetcher
        self._locator = locator
        self.limit = limit
        self.radius_km = radius_km
        self._geo_timeout_ms = geo_timeout_ms
        self._geo_max_age_ms = geo_max_age_ms

    async def load(self, location: Optional[GeoLocation] = None) -> Recommendations:
        if location is None:
            location = await self._locate()

        servicios, proveedores = await asyncio.gather(
            self._popular_services(location),
            self._recommended_providers(location),
        )
        return Recommendations(
            popular_services=servicios,
            recommended_providers=proveedores,
            location=location,
        )

    async def _locate(self) -> Optional[GeoLocation]:
        if self._locator is None or not self._locator.is_available:
            return None
        outcome = await self._locator.acquire(
            timeout_ms=self._geo_timeout_ms, max_age_ms=self._geo_max_age_ms
        )
        if isinstance(outcome, GeoLocation):
            return outcome
        logger.info(f"📍 Recomendaciones sin ubicación ({outcome.reason.value})")
        return None

    def _nearby_query(self, location: GeoLocation) -> SearchQuery:
        return SearchQuery(
            lat=location.latitude,
            lng=location.longitude,
            radius_km=self.radius_km,
            limit=self.limit,
        )

    async def _popular_services(self, location: Optional[GeoLocation]) -> List[LocatedEntity]:
        if location is not None:
            try:
                resultado = await self._fetcher.fetch_nearby(
                    self._nearby_query(location), kind=EntityKind.SERVICE
                )
                return resultado.items
            except FetchError as e:
                logger.warning(f"⚠️ Servicios cercanos no disponibles: {e.message}")

        try:
            return await self._fetcher.list_services(self.limit)
        except FetchError as e:
            logger.warning(f"⚠️ Listado de servicios no disponible: {e.message}")
            return []

    async def _recommended_providers(
        self, location: Optional[GeoLocation]
    ) -> List[LocatedEntity]:
        if location is not None:
            try:
                resultado = await self._fetcher.fetch_nearby(
                    self._nearby_query(location), kind=EntityKind.PROVIDER
                )
                return resultado.items
            except FetchError as e:
                logger.warning(f"⚠️ Proveedores cercanos no disponibles: {e.message}")

        try:
            resultado = await self._fetcher.fetch_scoped(SearchQuery(limit=self.limit))
            return resultado.items
        except FetchError as e:
            logger.warning(f"⚠️ Proveedores recomendados no disponibles: {e.message}")
            return []
