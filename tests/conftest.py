"""
Shared pytest fixtures for vicinity-discovery tests.

This module provides:
- Fake backend (scripted responses, recorded calls, gated resolution)
- Fake position source (callback control)
- Test data factories for backend payloads
- Wired services over the fakes
"""

import asyncio
import copy
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from core.exceptions import BackendNotFoundError, BackendRequestError
from core.interfaces import PositionSource, SearchBackend
from infrastructure.storage import InMemoryKeyValueStore
from models.discovery import GeoFailureReason
from services import (
    DiscoveryOrchestrator,
    FavoritesStore,
    GeoLocator,
    QueryBuilder,
    ResultFetcher,
)

LUSAKA = (-15.41, 28.28)


# ============================================================
# TEST DATA FACTORIES
# ============================================================


@dataclass
class ProviderFactory:
    """Factory for backend provider payloads (camelCase, as the API sends them)."""

    @staticmethod
    def crear(
        id: str = "prov-1",
        nombre: str = "Juan Banda Plumbing",
        latitud: Optional[float] = -15.41,
        longitud: Optional[float] = 28.28,
        distancia: Optional[float] = None,
        **kwargs,
    ) -> Dict[str, Any]:
        """Creates a provider payload with defaults."""
        datos = {
            "id": id,
            "name": nombre,
            "latitude": latitud,
            "longitude": longitud,
            "ratingAverage": kwargs.pop("ratingAverage", 4.5),
            "ratingCount": kwargs.pop("ratingCount", 12),
            "isVerified": kwargs.pop("isVerified", True),
            "isFeatured": kwargs.pop("isFeatured", False),
            "subscriptionPlan": kwargs.pop("subscriptionPlan", "FREE"),
            "category": {"name": kwargs.pop("categoria", "Plumbing")},
            **kwargs,
        }
        if distancia is not None:
            datos["distance"] = distancia
        return datos

    @staticmethod
    def lista(cantidad: int, prefijo: str = "prov", **kwargs) -> List[Dict[str, Any]]:
        """Creates `cantidad` providers with ids prov-0..prov-N."""
        return [
            ProviderFactory.crear(id=f"{prefijo}-{i}", nombre=f"Proveedor {i}", **kwargs)
            for i in range(cantidad)
        ]


@dataclass
class ServiceFactory:
    """Factory for backend service payloads."""

    @staticmethod
    def crear(
        id: str = "svc-1",
        titulo: str = "Pipe repair",
        proveedor_id: str = "prov-1",
        distancia: Optional[float] = None,
        **kwargs,
    ) -> Dict[str, Any]:
        datos = {
            "id": id,
            "title": titulo,
            "price": kwargs.pop("price", "150"),
            "providerId": proveedor_id,
            "provider": {"id": proveedor_id, "ratingAverage": 4.0, "ratingCount": 3},
            "latitude": kwargs.pop("latitude", -15.40),
            "longitude": kwargs.pop("longitude", 28.30),
            **kwargs,
        }
        if distancia is not None:
            datos["distance"] = distancia
        return datos


def scoped_payload(
    filas: List[Dict[str, Any]],
    page: int = 1,
    limit: int = 12,
    total: Optional[int] = None,
    total_pages: Optional[int] = None,
) -> Dict[str, Any]:
    """Builds a GET /search/providers response body."""
    total = len(filas) if total is None else total
    if total_pages is None:
        total_pages = (total + limit - 1) // limit
    return {
        "results": filas,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasMore": page < total_pages,
        },
    }


# ============================================================
# FAKE CAPABILITIES
# ============================================================


class FakeSearchBackend(SearchBackend):
    """
    Scripted SearchBackend.

    Responses per endpoint may be a payload, an exception instance (raised)
    or a callable receiving the params. `hold_next(endpoint)` makes the next
    call on that endpoint wait until the returned event is set, which lets
    tests resolve requests in any order.
    """

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.responses: Dict[str, Any] = {
            "search_providers": scoped_payload([]),
            "nearby_providers": [],
            "nearby_services": [],
            "list_services": [],
        }
        self.entities: Dict[str, Dict[str, Any]] = {}
        self.failing_ids: set = set()
        self._gates: Dict[str, List[asyncio.Event]] = defaultdict(list)

    def set_response(self, endpoint: str, value: Any) -> None:
        self.responses[endpoint] = value

    def add_entity(self, payload: Dict[str, Any]) -> None:
        self.entities[payload["id"]] = payload

    def hold_next(self, endpoint: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[endpoint].append(gate)
        return gate

    def calls_to(self, endpoint: str) -> List[Dict[str, Any]]:
        return [params for nombre, params in self.calls if nombre == endpoint]

    async def _respond(self, endpoint: str, params: Optional[Dict[str, Any]]) -> Any:
        self.calls.append((endpoint, dict(params or {})))
        if self._gates[endpoint]:
            gate = self._gates[endpoint].pop(0)
            await gate.wait()
        respuesta = self.responses[endpoint]
        if callable(respuesta):
            respuesta = respuesta(params)
        if isinstance(respuesta, BaseException):
            raise respuesta
        return copy.deepcopy(respuesta)

    async def search_providers(self, params):
        return await self._respond("search_providers", params)

    async def nearby_providers(self, params):
        return await self._respond("nearby_providers", params)

    async def nearby_services(self, params):
        return await self._respond("nearby_services", params)

    async def list_services(self):
        return await self._respond("list_services", None)

    async def _lookup(self, endpoint: str, entity_id: str) -> Dict[str, Any]:
        self.calls.append((endpoint, {"id": entity_id}))
        await asyncio.sleep(0)
        if entity_id in self.failing_ids:
            raise BackendRequestError("HTTP 500", path=f"/{entity_id}", status_code=500)
        if entity_id not in self.entities:
            raise BackendNotFoundError("Not found", path=f"/{entity_id}", status_code=404)
        return copy.deepcopy(self.entities[entity_id])

    async def get_provider(self, provider_id):
        return await self._lookup("get_provider", provider_id)

    async def get_service(self, service_id):
        return await self._lookup("get_service", service_id)


class FakePositionSource(PositionSource):
    """
    PositionSource under test control.

    By default requests stay pending until the test calls `succeed()` or
    `fail()`. `respond_with_location()` / `respond_with_error()` make
    every request answer immediately instead.
    """

    def __init__(self, available: bool = True):
        self.available = available
        self.requests: List[Tuple[Callable, Callable, Dict[str, int]]] = []
        self._auto: Optional[Tuple[str, Any, Any]] = None

    def respond_with_location(self, latitude: float, longitude: float) -> None:
        self._auto = ("success", latitude, longitude)

    def respond_with_error(self, reason: GeoFailureReason, message: str = "") -> None:
        self._auto = ("error", reason, message)

    def is_available(self) -> bool:
        return self.available

    def get_current_position(self, on_success, on_error, *, timeout_ms, maximum_age_ms):
        self.requests.append(
            (on_success, on_error, {"timeout_ms": timeout_ms, "maximum_age_ms": maximum_age_ms})
        )
        if self._auto is None:
            return
        tipo, a, b = self._auto
        if tipo == "success":
            on_success(a, b)
        else:
            on_error(a, b)

    def succeed(self, latitude: float, longitude: float, index: int = -1) -> None:
        self.requests[index][0](latitude, longitude)

    def fail(self, reason: GeoFailureReason, message: str = "", index: int = -1) -> None:
        self.requests[index][1](reason, message)


async def settle(rounds: int = 5) -> None:
    """Lets scheduled callbacks and pending tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ============================================================
# FIXTURES
# ============================================================


@pytest.fixture
def provider_factory() -> ProviderFactory:
    """Provides the provider payload factory."""
    return ProviderFactory()


@pytest.fixture
def service_factory() -> ServiceFactory:
    """Provides the service payload factory."""
    return ServiceFactory()


@pytest.fixture
def fake_backend() -> FakeSearchBackend:
    """Provides a scripted search backend."""
    return FakeSearchBackend()


@pytest.fixture
def fake_position() -> FakePositionSource:
    """Provides a position source that answers with Lusaka coordinates."""
    fuente = FakePositionSource()
    fuente.respond_with_location(*LUSAKA)
    return fuente


@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    """Provides an empty in-memory key-value store."""
    return InMemoryKeyValueStore()


@pytest.fixture
def fetcher(fake_backend) -> ResultFetcher:
    """Provides a ResultFetcher over the fake backend (no circuit breaker)."""
    return ResultFetcher(fake_backend)


@pytest.fixture
def locator(fake_position) -> GeoLocator:
    """Provides a GeoLocator over the fake position source."""
    return GeoLocator(fake_position)


@pytest.fixture
def orchestrator(fetcher, locator) -> DiscoveryOrchestrator:
    """Provides an orchestrator with default builder settings."""
    return DiscoveryOrchestrator(
        fetcher,
        locator,
        query_builder=QueryBuilder(default_radius_km=10.0, page_limit=12),
        geo_timeout_ms=200,
    )


@pytest.fixture
def favorites(memory_store, fetcher) -> FavoritesStore:
    """Provides a favorites store over in-memory storage."""
    return FavoritesStore(memory_store, fetcher)
