"""
Discovery Orchestrator: state machine for the search page.

    idle → locating → loading → success | error
    success/error → loading on any filter or page change

`locating` is skipped when the session already has coordinates, when a
previous attempt this session failed, or when geolocation is
structurally unavailable. Geolocation failures never block the user:
the search proceeds without coordinates.

Every run takes a number from a monotonic sequence counter. A fetch or
geolocation that resolves after a newer run started is discarded, so a
slow request can never overwrite state produced by a later one
(last-request-wins).
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from core.exceptions import FetchError
from infrastructure.logging import set_correlation_id, set_request_context
from models.discovery import (
    DiscoveryState,
    DiscoveryStatus,
    ErrorInfo,
    GeoFailure,
    GeoFailureReason,
    GeoLocation,
    GeoResult,
)
from models.filters import FilterState
from models.search import SearchQuery, SortBy
from services.geo_locator import GeoLocator
from services.pagination import PaginationController
from services.query_builder import QueryBuilder
from services.result_fetcher import ResultFetcher

logger = logging.getLogger(__name__)

Listener = Callable[[DiscoveryState], None]

NAVIGATION_KEYS = ("keyword", "categoryId", "organizationId", "groupId", "radius")


class DiscoveryOrchestrator:
    """
    Owns DiscoveryState; consumers only get snapshots.

    All public operations are coroutines that return the state as it was
    when the operation finished. When a newer operation overtook it, the
    returned state is the newer one's current state.
    """

    def __init__(
        self,
        fetcher: ResultFetcher,
        locator: GeoLocator,
        query_builder: Optional[QueryBuilder] = None,
        url_params: Optional[Mapping[str, str]] = None,
        geo_timeout_ms: int = 5000,
        geo_max_age_ms: int = 0,
    ):
        self._fetcher = fetcher
        self._locator = locator
        self._builder = query_builder or QueryBuilder()
        self._geo_timeout_ms = geo_timeout_ms
        self._geo_max_age_ms = geo_max_age_ms

        self.pagination = PaginationController()
        self._url_params = self._clean_params(url_params)
        self._filters = FilterState()
        self._location: Optional[GeoLocation] = None
        self._location_attempted = False
        self._sequence = 0
        self._last_query: Optional[SearchQuery] = None
        self._state = DiscoveryState()
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> DiscoveryState:
        return self._state.model_copy(deep=True)

    @property
    def filters(self) -> FilterState:
        return self._filters

    @property
    def url_params(self) -> Dict[str, str]:
        return dict(self._url_params)

    @property
    def location(self) -> Optional[GeoLocation]:
        return self._location

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registers `listener` for every transition; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def load(self) -> DiscoveryState:
        """Initial load of page 1 with the current filters."""
        return await self._run(page=1)

    async def set_filters(self, **changes: Any) -> DiscoveryState:
        """Applies filter edits and reloads from page 1."""
        self._filters = self._filters.merged(**changes)
        self.pagination.reset()
        return await self._run(page=1)

    async def clear_filters(self) -> DiscoveryState:
        self._filters = FilterState.cleared(self._builder.default_radius_km)
        self.pagination.reset()
        return await self._run(page=1)

    async def navigate(self, params: Mapping[str, str]) -> DiscoveryState:
        """
        External navigation (a new URL): replaces the seed and drops
        in-session edits.
        """
        self._url_params = self._clean_params(params)
        self._filters = FilterState()
        self.pagination.reset()
        return await self._run(page=1)

    async def go_to_page(self, page: int) -> DiscoveryState:
        """
        Loads page `page` of the last successful search.

        Raises:
            PageOutOfRangeError: rejected locally, state untouched
        """
        query = self.pagination.go_to_page(page)
        return await self._execute(query, self._next_sequence())

    async def retry(self) -> DiscoveryState:
        """Re-runs the last attempted query unchanged."""
        if self._last_query is None:
            return await self.load()
        return await self._execute(self._last_query, self._next_sequence())

    async def refresh_location(self) -> DiscoveryState:
        """Forgets the session location and re-acquires it."""
        self._location = None
        self._location_attempted = False
        self.pagination.reset()
        return await self._run(page=1)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self, page: int) -> DiscoveryState:
        sequence = self._next_sequence()

        if self._should_locate():
            borrador = self._builder.build(
                self._filters, page=page, url_params=self._url_params
            )
            self._publish(
                DiscoveryState(
                    query=borrador,
                    status=DiscoveryStatus.LOCATING,
                    sequence=sequence,
                )
            )
            outcome = await self._locator.acquire(
                timeout_ms=self._geo_timeout_ms, max_age_ms=self._geo_max_age_ms
            )
            self._absorb_location(outcome)
            if not self._is_current(sequence):
                logger.debug(
                    "🗑️ Descartando geolocalización de una ejecución superada",
                    extra={"sequence": sequence, "current_sequence": self._sequence},
                )
                return self.state

        query = self._builder.build(
            self._filters,
            page=page,
            location=self._location,
            url_params=self._url_params,
        )
        return await self._execute(query, sequence)

    async def _execute(self, query: SearchQuery, sequence: int) -> DiscoveryState:
        self._last_query = query
        if query.sort_by == SortBy.DISTANCE and not query.has_location:
            logger.debug("Orden por distancia sin coordenadas: best-effort")

        self._publish(
            DiscoveryState(
                query=query,
                status=DiscoveryStatus.LOADING,
                location=self._location,
                sequence=sequence,
            )
        )

        try:
            result = await self._fetcher.fetch(query)
        except FetchError as e:
            if not self._is_current(sequence):
                self._log_discarded(sequence)
                return self.state
            logger.error(
                f"❌ Búsqueda fallida: {e.message}",
                extra={"sequence": sequence, "error_code": e.code},
            )
            self._publish(
                DiscoveryState(
                    query=query,
                    status=DiscoveryStatus.ERROR,
                    error=ErrorInfo.from_exception(e),
                    location=self._location,
                    sequence=sequence,
                )
            )
            return self.state

        if not self._is_current(sequence):
            self._log_discarded(sequence)
            return self.state

        self.pagination.record(query, result)
        self._publish(
            DiscoveryState(
                query=query,
                status=DiscoveryStatus.SUCCESS,
                result=result,
                location=self._location,
                sequence=sequence,
            )
        )
        logger.info(
            f"✅ Búsqueda completada: {len(result.items)} resultados",
            extra={
                "sequence": sequence,
                "page": result.pagination.page,
                "total_pages": result.pagination.total_pages,
            },
        )
        return self.state

    def _should_locate(self) -> bool:
        if self._location is not None or self._location_attempted:
            return False
        if not self._locator.is_available:
            self._location_attempted = True
            return False
        return True

    def _absorb_location(self, outcome: GeoResult) -> None:
        if isinstance(outcome, GeoLocation):
            self._location = outcome
            self._location_attempted = True
            logger.info("📍 Ubicación obtenida para la sesión")
            return

        if isinstance(outcome, GeoFailure) and outcome.reason == GeoFailureReason.SUPERSEDED:
            # another acquire replaced this one; the session may still try again
            return

        self._location_attempted = True
        logger.info(
            f"📍 Sin ubicación ({outcome.reason.value}), búsqueda sin coordenadas",
            extra={"geo_reason": outcome.reason.value},
        )

    def _next_sequence(self) -> int:
        self._sequence += 1
        set_correlation_id()
        set_request_context(sequence=self._sequence)
        return self._sequence

    def _is_current(self, sequence: int) -> bool:
        return sequence == self._sequence

    def _log_discarded(self, sequence: int) -> None:
        logger.debug(
            "🗑️ Descartando resultado de una búsqueda superada",
            extra={"sequence": sequence, "current_sequence": self._sequence},
        )

    def _publish(self, state: DiscoveryState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(self.state)
            except Exception as e:
                logger.error(f"❌ Error en listener de DiscoveryState: {e}")

    @staticmethod
    def _clean_params(params: Optional[Mapping[str, str]]) -> Dict[str, str]:
        if not params:
            return {}
        return {
            clave: str(valor)
            for clave, valor in params.items()
            if clave in NAVIGATION_KEYS and valor is not None
        }
