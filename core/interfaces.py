"""
Interfaces base (capacidades externas) del motor de descubrimiento.

Define el contrato que deben cumplir las implementaciones de plataforma,
siguiendo el principio de Dependency Inversion (DIP): los servicios
dependen de estas abstracciones, nunca de httpx, Redis o del GPS concreto.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence

from models.discovery import GeoFailureReason, GeoLocation
from models.markers import MapMarker


class KeyValueStore(ABC):
    """
    Almacenamiento clave-valor persistente (equivalente a localStorage).

    Los valores son strings; la serialización es responsabilidad del
    consumidor.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Obtiene el valor guardado bajo una clave.

        Returns:
            El string guardado o None si la clave no existe
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Guarda (o reemplaza) el valor de una clave."""
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Elimina una clave; no falla si no existe."""
        pass


PositionCallback = Callable[[float, float], None]
PositionErrorCallback = Callable[[GeoFailureReason, str], None]


class PositionSource(ABC):
    """
    Capacidad de geolocalización de la plataforma, estilo callbacks.

    GeoLocator la envuelve en una única operación awaitable.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """False si la plataforma no tiene geolocalización en absoluto."""
        pass

    @abstractmethod
    def get_current_position(
        self,
        on_success: PositionCallback,
        on_error: PositionErrorCallback,
        *,
        timeout_ms: int,
        maximum_age_ms: int,
    ) -> None:
        """
        Solicita una posición. Debe invocar exactamente uno de los callbacks,
        de forma síncrona o más tarde (incluso desde otro hilo).
        """
        pass


class SearchBackend(ABC):
    """
    Contrato del backend REST consumido por el Result Fetcher.

    Los parámetros viajan ya en formato wire (camelCase). Cualquier fallo
    de transporte o HTTP se reporta como BackendRequestError.
    """

    @abstractmethod
    async def search_providers(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET /search/providers -> {results, pagination}."""
        pass

    @abstractmethod
    async def nearby_providers(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """GET /search/nearby -> lista de proveedores."""
        pass

    @abstractmethod
    async def nearby_services(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """GET /search/services/nearby -> lista de servicios."""
        pass

    @abstractmethod
    async def get_provider(self, provider_id: str) -> Dict[str, Any]:
        """GET /providers/{id}."""
        pass

    @abstractmethod
    async def get_service(self, service_id: str) -> Dict[str, Any]:
        """GET /services/{id}."""
        pass

    @abstractmethod
    async def list_services(self) -> List[Dict[str, Any]]:
        """GET /services (listado sin ubicación)."""
        pass


class MarkerRenderer(ABC):
    """Capacidad abstracta de pintar marcadores; no es un mapa."""

    @abstractmethod
    def render(self, markers: Sequence[MapMarker], center: GeoLocation) -> None:
        pass
