"""
Unit tests for the Favorites Store.

Tests idempotent add/remove, persistence round-trip and self-healing
hydration.
"""

import asyncio
import json

import pytest

from infrastructure.storage import InMemoryKeyValueStore
from models.search import EntityKind
from services.favorites_store import FAVORITES_KEY, FavoritesStore, favorites_key
from tests.conftest import ProviderFactory, ServiceFactory


async def _persistido(storage) -> list:
    return json.loads(await storage.get(FAVORITES_KEY))


class TestAddRemove:
    """Tests for idempotent writes."""

    @pytest.mark.asyncio
    async def test_add_persiste_antes_de_retornar(self, favorites, memory_store):
        assert await favorites.add("prov-1")

        assert await _persistido(memory_store) == ["prov-1"]
        assert "prov-1" in favorites

    @pytest.mark.asyncio
    async def test_add_repetido_es_no_op(self, favorites, memory_store):
        await favorites.add("prov-1")

        assert not await favorites.add("prov-1")
        assert favorites.list() == ["prov-1"]

    @pytest.mark.asyncio
    async def test_remove_ausente_es_no_op(self, favorites, memory_store):
        assert not await favorites.remove("prov-x")
        assert await memory_store.get(FAVORITES_KEY) is None

    @pytest.mark.asyncio
    async def test_orden_de_insercion(self, favorites, memory_store):
        for entity_id in ("c", "a", "b"):
            await favorites.add(entity_id)
        await favorites.remove("a")

        assert favorites.list() == ["c", "b"]
        assert await _persistido(memory_store) == ["c", "b"]

    @pytest.mark.asyncio
    async def test_clear(self, favorites, memory_store):
        await favorites.add("prov-1")
        await favorites.clear()

        assert favorites.list() == []
        assert await _persistido(memory_store) == []

    @pytest.mark.asyncio
    async def test_id_vacio_rechazado(self, favorites):
        with pytest.raises(ValueError):
            await favorites.add("")

    @pytest.mark.asyncio
    async def test_list_es_copia(self, favorites):
        await favorites.add("prov-1")
        favorites.list().append("intruso")

        assert favorites.list() == ["prov-1"]


class TestPersistence:
    """Tests for reload behavior."""

    @pytest.mark.asyncio
    async def test_round_trip_sin_duplicados(self, memory_store, fetcher):
        """add(x) several times, reload: x appears exactly once."""
        store = await FavoritesStore.open(memory_store, fetcher)
        for _ in range(3):
            await store.add("prov-1")

        recargado = await FavoritesStore.open(memory_store, fetcher)

        assert recargado.list() == ["prov-1"]

    @pytest.mark.asyncio
    async def test_duplicados_persistidos_se_depuran(self, fetcher):
        storage = InMemoryKeyValueStore({FAVORITES_KEY: json.dumps(["a", "b", "a", 7])})

        store = await FavoritesStore.open(storage, fetcher)

        assert store.list() == ["a", "b", "7"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("crudo", ["{no json", json.dumps({"a": 1}), json.dumps("a")])
    async def test_datos_ilegibles_cuentan_como_vacio(self, fetcher, crudo):
        storage = InMemoryKeyValueStore({FAVORITES_KEY: crudo})

        store = await FavoritesStore.open(storage, fetcher)

        assert store.list() == []

    @pytest.mark.asyncio
    async def test_clave_configurable(self, memory_store, fetcher):
        store = FavoritesStore(memory_store, fetcher, key="otros_favoritos")
        await store.add("prov-1")

        assert await memory_store.get("otros_favoritos") == json.dumps(["prov-1"])
        assert await memory_store.get(FAVORITES_KEY) is None


class TestHydrate:
    """Tests for concurrent hydration with self-healing."""

    @pytest.mark.asyncio
    async def test_vacio(self, favorites, fake_backend):
        assert await favorites.hydrate() == []
        assert fake_backend.calls == []

    @pytest.mark.asyncio
    async def test_fallo_parcial_poda_el_id(self, favorites, memory_store, fake_backend):
        """[a, b, c] with b failing returns [a, c] and b is pruned from storage."""
        for entity_id in ("a", "b", "c"):
            await favorites.add(entity_id)
            fake_backend.add_entity(ProviderFactory.crear(id=entity_id))
        fake_backend.failing_ids.add("b")

        entidades = await favorites.hydrate()

        assert [e.id for e in entidades] == ["a", "c"]
        assert await _persistido(memory_store) == ["a", "c"]
        assert favorites.list() == ["a", "c"]

    @pytest.mark.asyncio
    async def test_entidad_borrada_se_poda(self, favorites, memory_store, fake_backend):
        fake_backend.add_entity(ProviderFactory.crear(id="vivo"))
        await favorites.add("vivo")
        await favorites.add("borrado")

        entidades = await favorites.hydrate()

        assert [e.id for e in entidades] == ["vivo"]
        assert await _persistido(memory_store) == ["vivo"]

    @pytest.mark.asyncio
    async def test_todos_fallan_no_lanza(self, favorites, memory_store, fake_backend):
        await favorites.add("x")
        await favorites.add("y")

        assert await favorites.hydrate() == []
        assert await _persistido(memory_store) == []

    @pytest.mark.asyncio
    async def test_lookups_concurrentes(self, favorites, fake_backend):
        for entity_id in ("a", "b", "c"):
            await favorites.add(entity_id)
            fake_backend.add_entity(ProviderFactory.crear(id=entity_id))

        await favorites.hydrate()

        assert [p["id"] for p in fake_backend.calls_to("get_provider")] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_add_durante_hydrate_sobrevive(self, favorites, memory_store, fake_backend):
        """Pruning removes only the failed ids; a concurrent add is kept."""
        fake_backend.add_entity(ProviderFactory.crear(id="a"))
        await favorites.add("a")
        await favorites.add("muerto")

        tarea = asyncio.create_task(favorites.hydrate())
        await asyncio.sleep(0)
        await favorites.add("nuevo")
        await tarea

        assert favorites.list() == ["a", "nuevo"]
        assert await _persistido(memory_store) == ["a", "nuevo"]

    @pytest.mark.asyncio
    async def test_favoritos_de_servicios(self, memory_store, fetcher, fake_backend):
        fake_backend.add_entity(ServiceFactory.crear(id="svc-1"))
        store = FavoritesStore(memory_store, fetcher, kind=EntityKind.SERVICE)
        await store.add("svc-1")

        entidades = await store.hydrate()

        assert entidades[0].kind == EntityKind.SERVICE
        assert fake_backend.calls_to("get_service") == [{"id": "svc-1"}]


class TestKindsAreIsolated:
    """Each entity kind keeps its own persisted id set."""

    def test_claves_por_tipo(self):
        assert favorites_key(EntityKind.PROVIDER) == "app_favorites"
        assert favorites_key(EntityKind.SERVICE) == "app_favorites:service"
        assert favorites_key(EntityKind.SERVICE, "otros") == "otros:service"

    @pytest.mark.asyncio
    async def test_servicio_sobrevive_hydrate_de_proveedores(
        self, memory_store, fetcher, fake_backend
    ):
        fake_backend.add_entity(ServiceFactory.crear(id="svc-1"))
        fake_backend.add_entity(ProviderFactory.crear(id="prov-1"))
        servicios = await FavoritesStore.open(memory_store, fetcher, kind=EntityKind.SERVICE)
        await servicios.add("svc-1")
        proveedores = await FavoritesStore.open(memory_store, fetcher)
        await proveedores.add("prov-1")

        entidades = await proveedores.hydrate()

        assert [e.id for e in entidades] == ["prov-1"]
        assert [p["id"] for p in fake_backend.calls_to("get_provider")] == ["prov-1"]
        assert await servicios.reload() == ["svc-1"]
        assert json.loads(await memory_store.get("app_favorites:service")) == ["svc-1"]
        assert await _persistido(memory_store) == ["prov-1"]


class TestPruningPolicy:
    """Any failed lookup prunes the id, whatever the cause."""

    @pytest.mark.asyncio
    async def test_error_de_servidor_tambien_poda(self, favorites, memory_store, fake_backend):
        fake_backend.add_entity(ProviderFactory.crear(id="a"))
        fake_backend.add_entity(ProviderFactory.crear(id="b"))
        await favorites.add("a")
        await favorites.add("b")
        fake_backend.failing_ids.add("b")

        entidades = await favorites.hydrate()

        assert [e.id for e in entidades] == ["a"]
        assert await _persistido(memory_store) == ["a"]

    @pytest.mark.asyncio
    async def test_error_no_tipado_se_propaga_sin_podar(
        self, favorites, memory_store, fake_backend, monkeypatch
    ):
        async def _roto(provider_id):
            raise RuntimeError("bug")

        monkeypatch.setattr(fake_backend, "get_provider", _roto)
        await favorites.add("a")

        with pytest.raises(RuntimeError):
            await favorites.hydrate()

        assert await _persistido(memory_store) == ["a"]
