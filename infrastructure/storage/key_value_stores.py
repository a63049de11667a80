"""
Motores de almacenamiento clave-valor para el estado local persistido.

- InMemoryKeyValueStore: dict en proceso (tests, modo efímero)
- JsonFileKeyValueStore: un archivo JSON en disco (equivalente a localStorage)
- RedisKeyValueStore: Redis vía redis.asyncio, con fallback a memoria local
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

import redis.asyncio as redis

from core.interfaces import KeyValueStore

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """
    Guarda todas las claves en un único archivo JSON.

    Cada escritura reemplaza el archivo de forma atómica (tmp + rename),
    así un corte a mitad de escritura nunca deja el archivo corrupto.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _leer(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            datos = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"⚠️ Archivo de almacenamiento ilegible, se ignora: {e}")
            return {}
        if not isinstance(datos, dict):
            logger.warning("⚠️ Archivo de almacenamiento con formato inesperado")
            return {}
        return {str(k): v for k, v in datos.items() if isinstance(v, str)}

    def _escribir(self, datos: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temporal = self.path.with_suffix(self.path.suffix + ".tmp")
        temporal.write_text(json.dumps(datos, ensure_ascii=False), encoding="utf-8")
        os.replace(temporal, self.path)

    async def get(self, key: str) -> Optional[str]:
        datos = await asyncio.to_thread(self._leer)
        return datos.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            datos = await asyncio.to_thread(self._leer)
            datos[key] = value
            await asyncio.to_thread(self._escribir, datos)
        logger.debug(f"💾 Guardado en archivo: {key}")

    async def remove(self, key: str) -> None:
        async with self._lock:
            datos = await asyncio.to_thread(self._leer)
            if key not in datos:
                return
            del datos[key]
            await asyncio.to_thread(self._escribir, datos)
        logger.debug(f"🗑️ Eliminado de archivo: {key}")


class RedisKeyValueStore(KeyValueStore):
    """
    Almacenamiento en Redis con fallback a memoria local.

    Si Redis no responde, las operaciones continúan contra un
    InMemoryKeyValueStore y se registra una advertencia.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        client: Optional[redis.Redis] = None,
        max_retries: int = 3,
    ):
        self.redis_url = redis_url
        self.redis_client: Optional[redis.Redis] = client
        self._connected = client is not None
        self._max_retries = max_retries
        self._fallback = InMemoryKeyValueStore()

    async def connect(self) -> None:
        """Conectar a Redis con reintentos y backoff simple."""
        for intento in range(self._max_retries):
            try:
                self.redis_client = redis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_timeout=10,
                    socket_connect_timeout=10,
                )
                await self.redis_client.ping()
                self._connected = True
                logger.info("✅ Conectado a Redis")
                return
            except Exception as e:
                logger.warning(
                    f"⚠️ Intento {intento + 1}/{self._max_retries} - Error conectando a Redis: {e}"
                )
                if intento < self._max_retries - 1:
                    await asyncio.sleep(1 * (intento + 1))

        logger.warning("⚠️ Modo fallback activado: usando memoria local")
        self.redis_client = None
        self._connected = False

    async def disconnect(self) -> None:
        if self.redis_client is not None:
            try:
                await self.redis_client.aclose()
                logger.info("🔌 Desconectado de Redis")
            except Exception as e:
                logger.warning(f"⚠️ Error desconectando de Redis: {e}")
            finally:
                self.redis_client = None
                self._connected = False

    async def _ensure_connected(self) -> bool:
        if not self._connected and self.redis_client is None:
            await self.connect()
        return self._connected and self.redis_client is not None

    async def get(self, key: str) -> Optional[str]:
        if await self._ensure_connected():
            try:
                return await self.redis_client.get(key)
            except Exception as e:
                logger.warning(f"⚠️ Error obteniendo de Redis, usando fallback local: {e}")
        return await self._fallback.get(key)

    async def set(self, key: str, value: str) -> None:
        if await self._ensure_connected():
            try:
                await self.redis_client.set(key, value)
                logger.debug(f"💾 Guardado en Redis: {key}")
                return
            except Exception as e:
                logger.warning(f"⚠️ Error guardando en Redis, usando fallback local: {e}")
        await self._fallback.set(key, value)

    async def remove(self, key: str) -> None:
        if await self._ensure_connected():
            try:
                await self.redis_client.delete(key)
            except Exception as e:
                logger.warning(f"⚠️ Error eliminando de Redis: {e}")
        await self._fallback.remove(key)


def build_key_value_store(
    backend: str,
    storage_path: str = ".vicinity/storage.json",
    redis_url: str = "redis://localhost:6379",
) -> KeyValueStore:
    """Crea el motor configurado (memory | file | redis)."""
    if backend == "memory":
        return InMemoryKeyValueStore()
    if backend == "file":
        return JsonFileKeyValueStore(storage_path)
    if backend == "redis":
        return RedisKeyValueStore(redis_url=redis_url)
    raise ValueError(f"Unknown storage backend: {backend}")
