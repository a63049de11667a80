"""Motores de almacenamiento clave-valor."""

from .key_value_stores import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    RedisKeyValueStore,
    build_key_value_store,
)

__all__ = [
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "RedisKeyValueStore",
    "build_key_value_store",
]
