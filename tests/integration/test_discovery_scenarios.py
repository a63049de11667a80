"""
Integration tests for the discovery flow, end to end.

Real SearchApiClient (over httpx.MockTransport), ResultFetcher, GeoLocator,
DiscoveryOrchestrator and FavoritesStore; only the network and the GPS
are faked.
"""

import json
from typing import Dict, List

import httpx
import pytest
import pytest_asyncio

from config.settings import Settings
from infrastructure.geolocation import FixedPositionSource
from infrastructure.http import SearchApiClient
from infrastructure.resilience import CircuitBreaker
from infrastructure.storage import JsonFileKeyValueStore
from main import parse_args, run_favorites
from models.discovery import DiscoveryStatus, GeoFailureReason
from models.search import EntityKind
from services import (
    DiscoveryOrchestrator,
    FavoritesStore,
    GeoLocator,
    QueryBuilder,
    ResultFetcher,
)
from tests.conftest import FakePositionSource, ProviderFactory, ServiceFactory, scoped_payload

BASE_URL = "http://backend.test/api/v1"


class FakeApi:
    """Scripted REST backend behind httpx.MockTransport."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.nearby_status = 200
        self.nearby_rows: List[Dict] = []
        self.scoped_rows: List[Dict] = []
        self.providers: Dict[str, Dict] = {}
        self.services: Dict[str, Dict] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        ruta = request.url.path.replace("/api/v1", "", 1)

        if ruta == "/search/nearby":
            if self.nearby_status != 200:
                return httpx.Response(self.nearby_status, json={"message": "boom"})
            return httpx.Response(200, json=self.nearby_rows)

        if ruta == "/search/providers":
            page = int(request.url.params.get("page", "1"))
            limit = int(request.url.params.get("limit", "12"))
            inicio = (page - 1) * limit
            return httpx.Response(
                200,
                json=scoped_payload(
                    self.scoped_rows[inicio : inicio + limit],
                    page=page,
                    limit=limit,
                    total=len(self.scoped_rows),
                ),
            )

        if ruta.startswith("/providers/"):
            entity_id = ruta.rsplit("/", 1)[-1]
            if entity_id not in self.providers:
                return httpx.Response(404, json={"message": "Not found"})
            return httpx.Response(200, json=self.providers[entity_id])

        if ruta.startswith("/services/"):
            entity_id = ruta.rsplit("/", 1)[-1]
            if entity_id not in self.services:
                return httpx.Response(404, json={"message": "Not found"})
            return httpx.Response(200, json=self.services[entity_id])

        return httpx.Response(404)

    def params_to(self, ruta: str) -> List[Dict[str, str]]:
        return [
            dict(r.url.params)
            for r in self.requests
            if r.url.path == f"/api/v1{ruta}"
        ]


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest_asyncio.fixture
async def client(api):
    cliente = SearchApiClient(BASE_URL, transport=httpx.MockTransport(api.handler))
    yield cliente
    await cliente.close()


def _orchestrator(client, fuente) -> DiscoveryOrchestrator:
    return DiscoveryOrchestrator(
        ResultFetcher(client, nearby_breaker=CircuitBreaker(name="nearby-search")),
        GeoLocator(fuente),
        query_builder=QueryBuilder(default_radius_km=10.0, page_limit=12),
        geo_timeout_ms=500,
    )


class TestNearbyScenarios:
    """Scenarios for a search with a known device location."""

    @pytest.mark.asyncio
    async def test_plumber_cerca_cinco_resultados(self, api, client):
        """keyword=plumber, radius 10, location available: nearby with radius=10, 5 rows, 1 page."""
        api.nearby_rows = ProviderFactory.lista(5, distancia=1.2)
        orchestrator = _orchestrator(client, FixedPositionSource(-15.41, 28.28))

        final = await orchestrator.set_filters(keyword="plumber", radius="10")

        nearby = api.params_to("/search/nearby")
        assert len(nearby) == 1
        assert nearby[0]["radius"] == "10"
        assert nearby[0]["lat"] == "-15.41"
        assert nearby[0]["lng"] == "28.28"
        assert final.status == DiscoveryStatus.SUCCESS
        assert final.result.pagination.total_pages == 1
        assert len(final.result.items) == 5
        assert api.params_to("/search/providers") == []

    @pytest.mark.asyncio
    async def test_plumber_nearby_500_cae_a_scoped(self, api, client):
        """Nearby HTTP 500: scoped with keyword=plumber and no lat/lng, no distances."""
        api.nearby_status = 500
        api.scoped_rows = ProviderFactory.lista(3, distancia=4.0)
        orchestrator = _orchestrator(client, FixedPositionSource(-15.41, 28.28))

        final = await orchestrator.set_filters(keyword="plumber", radius="10")

        scoped = api.params_to("/search/providers")
        assert len(scoped) == 1
        assert scoped[0]["keyword"] == "plumber"
        assert "lat" not in scoped[0]
        assert "lng" not in scoped[0]
        assert final.status == DiscoveryStatus.SUCCESS
        assert [item.distance_km for item in final.result.items] == [None, None, None]

    @pytest.mark.asyncio
    async def test_nearby_vacio_no_cae_a_scoped(self, api, client):
        api.nearby_rows = []
        api.scoped_rows = ProviderFactory.lista(3)
        orchestrator = _orchestrator(client, FixedPositionSource(-15.41, 28.28))

        final = await orchestrator.set_filters(keyword="plumber")

        assert final.status == DiscoveryStatus.SUCCESS
        assert final.result.is_empty
        assert api.params_to("/search/providers") == []


class TestWithoutLocation:
    """Scenarios where geolocation is denied."""

    @pytest.mark.asyncio
    async def test_geo_denegada_pagina_con_scoped(self, api, client):
        fuente = FakePositionSource()
        fuente.respond_with_error(GeoFailureReason.DENIED, "User denied Geolocation")
        api.scoped_rows = ProviderFactory.lista(30)
        orchestrator = _orchestrator(client, fuente)

        primera = await orchestrator.set_filters(keyword="plumber")
        assert primera.status == DiscoveryStatus.SUCCESS
        assert primera.query.lat is None
        assert primera.result.pagination.total_pages == 3
        assert orchestrator.pagination.visible_pages() == [1, 2, 3]

        tercera = await orchestrator.go_to_page(3)

        assert tercera.result.pagination.page == 3
        assert len(tercera.result.items) == 6
        assert api.params_to("/search/providers")[-1]["page"] == "3"
        assert api.params_to("/search/nearby") == []


class TestFavoritesFlow:
    """Favorites persisted to disk and hydrated over HTTP."""

    @pytest.mark.asyncio
    async def test_hydrate_poda_favorito_borrado(self, api, client, tmp_path):
        ruta = tmp_path / "storage.json"
        api.providers = {
            "a": ProviderFactory.crear(id="a"),
            "c": ProviderFactory.crear(id="c"),
        }
        fetcher = ResultFetcher(client)

        store = await FavoritesStore.open(JsonFileKeyValueStore(str(ruta)), fetcher)
        for entity_id in ("a", "b", "c", "a"):
            await store.add(entity_id)

        recargado = await FavoritesStore.open(JsonFileKeyValueStore(str(ruta)), fetcher)
        entidades = await recargado.hydrate()

        assert [e.id for e in entidades] == ["a", "c"]
        guardado = json.loads(json.loads(ruta.read_text())["app_favorites"])
        assert guardado == ["a", "c"]

    @pytest.mark.asyncio
    async def test_show_de_proveedores_no_poda_servicios(self, api, client, tmp_path, capsys):
        """`favorites show` (providers) leaves service favorites untouched."""
        api.services = {"svc-1": ServiceFactory.crear(id="svc-1")}
        config = Settings(_env_file=None, storage_path=str(tmp_path / "storage.json"))
        storage = JsonFileKeyValueStore(config.storage_path)

        await run_favorites(
            parse_args(["favorites", "add", "svc-1", "--kind", "service"]), config, client, storage
        )
        await run_favorites(parse_args(["favorites", "show"]), config, client, storage)

        assert "No tienes favoritos." in capsys.readouterr().out
        assert not any(r.url.path.startswith("/api/v1/providers/") for r in api.requests)
        servicios = await FavoritesStore.open(
            storage, ResultFetcher(client), kind=EntityKind.SERVICE
        )
        assert servicios.list() == ["svc-1"]
        assert [e.id for e in await servicios.hydrate()] == ["svc-1"]
