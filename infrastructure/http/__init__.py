"""Clientes HTTP hacia el backend REST."""

from .search_api_client import SearchApiClient

__all__ = ["SearchApiClient"]
