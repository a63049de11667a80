"""
Result Fetcher: executes a SearchQuery against the backend.

- Query with coordinates: nearby search (unpaginated, single page).
- Nearby failure: exactly one scoped search with the same filters and
  no coordinates. No retries, no loops.
- Query without coordinates: scoped (paginated) search.

Nearby returning zero rows is a valid, terminal answer.
"""

import logging
from typing import Any, Dict, List, Optional

from core.exceptions import (
    BackendRequestError,
    DiscoveryError,
    FavoriteLookupFailed,
    FetchError,
    NearbyFetchFailed,
    ScopedFetchFailed,
)
from core.interfaces import SearchBackend
from infrastructure.resilience import CircuitBreaker
from models.search import EntityKind, LocatedEntity, Pagination, SearchQuery, SearchResult

logger = logging.getLogger(__name__)


class ResultFetcher:
    def __init__(
        self,
        backend: SearchBackend,
        nearby_breaker: Optional[CircuitBreaker] = None,
    ):
        self._backend = backend
        self._nearby_breaker = nearby_breaker

    async def fetch(self, query: SearchQuery) -> SearchResult:
        """
        Returns one page of results for `query`.

        Raises:
            ScopedFetchFailed: scoped search (direct or fallback) failed
        """
        if not query.has_location:
            return await self.fetch_scoped(query)

        try:
            return await self.fetch_nearby(query)
        except NearbyFetchFailed as e:
            extra: Dict[str, Any] = {
                "cause": type(e.cause).__name__ if e.cause else None
            }
            if self._nearby_breaker is not None:
                extra["circuit_breaker"] = self._nearby_breaker.get_metrics()
            logger.warning(
                "⚠️ Nearby search falló, usando scoped search sin coordenadas",
                extra=extra,
            )
            return await self.fetch_scoped(query.without_location())

    async def fetch_nearby(
        self, query: SearchQuery, kind: EntityKind = EntityKind.PROVIDER
    ) -> SearchResult:
        """
        Unpaginated nearby search; rows are truncated to `query.limit`.

        Raises:
            NearbyFetchFailed: transport/HTTP error, open circuit or
                malformed payload
        """
        params = query.to_nearby_params()

        async def _ejecutar() -> List[LocatedEntity]:
            if kind == EntityKind.SERVICE:
                filas = await self._backend.nearby_services(params)
            else:
                filas = await self._backend.nearby_providers(params)
            return [LocatedEntity.from_payload(fila, kind) for fila in filas]

        try:
            if self._nearby_breaker is not None:
                entidades = await self._nearby_breaker.call(_ejecutar)
            else:
                entidades = await _ejecutar()
        except (DiscoveryError, ValueError) as e:
            raise NearbyFetchFailed(f"Nearby search failed: {e}", cause=e) from e

        items = entidades[: query.limit]
        logger.info(
            f"📍 Nearby search: {len(items)} resultados",
            extra={"kind": kind.value, "radius_km": query.radius_km},
        )
        return SearchResult(
            items=items, pagination=Pagination.single_page(len(items), query.limit)
        )

    async def fetch_scoped(self, query: SearchQuery) -> SearchResult:
        """
        Paginated search; backend pagination is passed through unchanged.

        Raises:
            ScopedFetchFailed: transport/HTTP error or malformed payload
        """
        try:
            payload = await self._backend.search_providers(query.to_scoped_params())
            filas = payload.get("results") or []
            if not isinstance(filas, list):
                raise ValueError("results is not a list")
            pagination = Pagination.from_payload(payload.get("pagination"))
            items = [LocatedEntity.from_payload(fila) for fila in filas]
            if not query.has_location:
                # a distance is only meaningful relative to coordinates we sent
                items = [item.without_distance() for item in items]
            resultado = SearchResult(items=items[: pagination.limit], pagination=pagination)
        except (BackendRequestError, ValueError) as e:
            logger.error(f"❌ Scoped search falló: {e}")
            raise ScopedFetchFailed(f"Search failed: {e}", cause=e) from e

        logger.info(
            f"🔎 Scoped search: {len(resultado.items)} resultados "
            f"(página {pagination.page}/{pagination.total_pages})",
        )
        return resultado

    async def lookup(self, entity_id: str, kind: EntityKind = EntityKind.PROVIDER) -> LocatedEntity:
        """
        Resolves one entity by id (favorites hydration).

        Raises:
            FavoriteLookupFailed: not found, transport error or bad payload
        """
        try:
            if kind == EntityKind.SERVICE:
                payload = await self._backend.get_service(entity_id)
            else:
                payload = await self._backend.get_provider(entity_id)
            return LocatedEntity.from_payload(payload, kind)
        except (BackendRequestError, ValueError) as e:
            logger.warning(
                f"⚠️ No se pudo resolver {kind.value} {entity_id}: {e}",
                extra={"entity_id": entity_id},
            )
            raise FavoriteLookupFailed(entity_id, cause=e) from e

    async def list_services(self, limit: int) -> List[LocatedEntity]:
        """
        Location-free services listing, truncated to `limit`.

        Raises:
            FetchError: transport error or malformed payload
        """
        try:
            filas: List[Dict[str, Any]] = await self._backend.list_services()
            servicios = [LocatedEntity.from_payload(fila, EntityKind.SERVICE) for fila in filas]
        except (BackendRequestError, ValueError) as e:
            raise FetchError(f"Services listing failed: {e}", cause=e) from e
        return servicios[:limit]
