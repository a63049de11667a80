"""
Favorites Store: locally persisted, ordered set of entity ids.

Persisted as a JSON array of id strings, one key per entity kind:
providers under "app_favorites", services under "app_favorites:service".
A store never reads or prunes the ids of another kind.
Every add/remove/clear writes through before returning. `hydrate()`
resolves ids concurrently and prunes the ones that no longer resolve
(self-healing favorites).
"""

import asyncio
import json
import logging
from typing import Iterable, List

from core.exceptions import FetchError
from core.interfaces import KeyValueStore
from models.search import EntityKind, LocatedEntity
from services.result_fetcher import ResultFetcher

logger = logging.getLogger(__name__)

FAVORITES_KEY = "app_favorites"


def favorites_key(kind: EntityKind, base: str = FAVORITES_KEY) -> str:
    """Provider ids live under `base`; every other kind under `base:<kind>`."""
    if kind == EntityKind.PROVIDER:
        return base
    return f"{base}:{kind.value}"


def _dedupe(ids: Iterable[str]) -> List[str]:
    vistos = set()
    unicos = []
    for entity_id in ids:
        if entity_id in vistos:
            continue
        vistos.add(entity_id)
        unicos.append(entity_id)
    return unicos


class FavoritesStore:
    def __init__(
        self,
        storage: KeyValueStore,
        fetcher: ResultFetcher,
        key: str = FAVORITES_KEY,
        kind: EntityKind = EntityKind.PROVIDER,
    ):
        self._storage = storage
        self._fetcher = fetcher
        self.key = favorites_key(kind, key)
        self.kind = kind
        self._ids: List[str] = []

    @classmethod
    async def open(
        cls,
        storage: KeyValueStore,
        fetcher: ResultFetcher,
        key: str = FAVORITES_KEY,
        kind: EntityKind = EntityKind.PROVIDER,
    ) -> "FavoritesStore":
        """Creates the store and reads the persisted set."""
        store = cls(storage, fetcher, key=key, kind=kind)
        await store.reload()
        return store

    async def reload(self) -> List[str]:
        """Re-reads the persisted id set; unreadable data counts as empty."""
        raw = await self._storage.get(self.key)
        self._ids = self._parse(raw)
        return self.list()

    def _parse(self, raw) -> List[str]:
        if not raw:
            return []
        try:
            datos = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"⚠️ Favoritos persistidos ilegibles en '{self.key}', se ignoran")
            return []
        if not isinstance(datos, list):
            logger.warning(f"⚠️ Favoritos persistidos con formato inesperado en '{self.key}'")
            return []
        return _dedupe(
            str(item) for item in datos if isinstance(item, (str, int)) and str(item)
        )

    def list(self) -> List[str]:
        return list(self._ids)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    async def add(self, entity_id: str) -> bool:
        """Adds `entity_id`; returns False (no write) when already present."""
        if not entity_id:
            raise ValueError("entity_id must not be empty")
        if entity_id in self._ids:
            return False
        await self._persist(self._ids + [entity_id])
        logger.info(f"⭐ Favorito agregado: {entity_id}")
        return True

    async def remove(self, entity_id: str) -> bool:
        """Removes `entity_id`; returns False (no write) when absent."""
        if entity_id not in self._ids:
            return False
        await self._persist([i for i in self._ids if i != entity_id])
        logger.info(f"🗑️ Favorito eliminado: {entity_id}")
        return True

    async def clear(self) -> None:
        await self._persist([])

    async def hydrate(self) -> List[LocatedEntity]:
        """
        Resolves every persisted id to a live entity.

        Ids whose lookup fails are left out of the result and pruned from
        storage. Order follows the persisted set.
        """
        ids = await self.reload()
        if not ids:
            return []

        resultados = await asyncio.gather(
            *(self._fetcher.lookup(entity_id, self.kind) for entity_id in ids),
            return_exceptions=True,
        )

        entidades: List[LocatedEntity] = []
        fallidos: List[str] = []
        for entity_id, resultado in zip(ids, resultados):
            if isinstance(resultado, FetchError):
                fallidos.append(entity_id)
            elif isinstance(resultado, BaseException):
                raise resultado
            else:
                entidades.append(resultado)

        if fallidos:
            # ids added while the lookups ran are kept
            await self._persist([i for i in self._ids if i not in fallidos])
            logger.info(
                f"🧹 Favoritos podados: {len(fallidos)}",
                extra={"pruned_ids": fallidos},
            )

        return entidades

    async def _persist(self, ids: List[str]) -> None:
        await self._storage.set(self.key, json.dumps(ids))
        self._ids = ids
