"""
Cliente HTTP para el backend REST del directorio (búsqueda y entidades).
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from core.exceptions import BackendNotFoundError, BackendRequestError
from core.interfaces import SearchBackend

logger = logging.getLogger(__name__)


class SearchApiClient(SearchBackend):
    """Implementación httpx del contrato SearchBackend."""

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout_seconds: float = 10.0,
        max_connections: int = 20,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: URL base, p.ej. http://localhost:3000/api/v1
            api_token: Token Bearer opcional
            timeout_seconds: Timeout del transporte (connect/read/write)
            max_connections: Tamaño del pool de conexiones
            transport: Transporte alternativo (httpx.MockTransport en tests)
        """
        self.base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_connections,
            ),
            transport=transport,
        )

    async def search_providers(self, params: Dict[str, Any]) -> Dict[str, Any]:
        datos = await self._get("/search/providers", params)
        if not isinstance(datos, dict):
            raise BackendRequestError(
                "Unexpected scoped search payload", path="/search/providers"
            )
        return datos

    async def nearby_providers(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        return await self._get_list("/search/nearby", params)

    async def nearby_services(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        return await self._get_list("/search/services/nearby", params)

    async def get_provider(self, provider_id: str) -> Dict[str, Any]:
        return await self._get_object(f"/providers/{provider_id}")

    async def get_service(self, service_id: str) -> Dict[str, Any]:
        return await self._get_object(f"/services/{service_id}")

    async def list_services(self) -> List[Dict[str, Any]]:
        return await self._get_list("/services", None)

    async def _get_list(
        self, path: str, params: Optional[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        datos = await self._get(path, params)
        if not isinstance(datos, list):
            raise BackendRequestError(f"Expected a list from {path}", path=path)
        return datos

    async def _get_object(self, path: str) -> Dict[str, Any]:
        datos = await self._get(path, None)
        if not isinstance(datos, dict):
            raise BackendRequestError(f"Expected an object from {path}", path=path)
        return datos

    async def _get(self, path: str, params: Optional[Dict[str, Any]]) -> Any:
        """
        GET con manejo uniforme de errores.

        Cualquier fallo (HTTP, timeout, conexión, JSON inválido) se traduce a
        BackendRequestError; 404 a BackendNotFoundError.
        """
        try:
            respuesta = await self._client.get(path, params=params)
            respuesta.raise_for_status()
            return respuesta.json()

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                logger.warning(
                    "🔒 Backend rechazó credenciales", extra={"path": path}
                )
            if status == 404:
                raise BackendNotFoundError(
                    f"Not found: {path}", path=path, status_code=status
                ) from e
            logger.error(
                f"❌ Error HTTP en backend: {status}",
                extra={"path": path, "status_code": status},
            )
            raise BackendRequestError(
                f"HTTP {status} from {path}", path=path, status_code=status
            ) from e

        except httpx.TimeoutException as e:
            logger.error("⏰ Timeout en backend", extra={"path": path})
            raise BackendRequestError(f"Timeout calling {path}", path=path) from e

        except httpx.HTTPError as e:
            logger.error(
                f"❌ Error de conexión con backend: {e}", extra={"path": path}
            )
            raise BackendRequestError(
                f"Connection error calling {path}", path=path
            ) from e

        except ValueError as e:
            logger.error("❌ Respuesta no es JSON válido", extra={"path": path})
            raise BackendRequestError(f"Invalid JSON from {path}", path=path) from e

    async def close(self) -> None:
        """Cerrar cliente HTTP compartido."""
        await self._client.aclose()
