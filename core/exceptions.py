"""Excepciones del dominio para el motor de descubrimiento."""

from typing import Optional


class DiscoveryError(Exception):
    """Base de todos los errores del motor de descubrimiento."""

    code = "discovery_error"
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class BackendRequestError(DiscoveryError):
    """Fallo de transporte o HTTP hablando con el backend REST."""

    code = "backend_request_failed"
    retryable = True

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.path = path
        self.status_code = status_code


class BackendNotFoundError(BackendRequestError):
    """El backend respondió 404 para la entidad solicitada."""

    code = "backend_not_found"
    retryable = False


class FetchError(DiscoveryError):
    """Base de los fallos del Result Fetcher."""

    code = "fetch_failed"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class NearbyFetchFailed(FetchError):
    """Nearby search falló; dispara el fallback a scoped search."""

    code = "nearby_fetch_failed"
    retryable = True


class ScopedFetchFailed(FetchError):
    """Scoped search falló; terminal para la request actual."""

    code = "scoped_fetch_failed"
    retryable = True


class FavoriteLookupFailed(FetchError):
    """No se pudo resolver un favorito individual."""

    code = "favorite_lookup_failed"

    def __init__(self, entity_id: str, cause: Optional[BaseException] = None):
        super().__init__(f"Favorite lookup failed: {entity_id}", cause=cause)
        self.entity_id = entity_id


class PageOutOfRangeError(DiscoveryError):
    """Página solicitada fuera de [1, total_pages] del último resultado."""

    code = "page_out_of_range"

    def __init__(self, page: int, total_pages: int):
        super().__init__(f"Page {page} is out of range (1..{total_pages})")
        self.page = page
        self.total_pages = total_pages


class CircuitBreakerOpenError(DiscoveryError):
    """Excepción lanzada cuando el circuit breaker está abierto."""

    code = "circuit_open"
    retryable = True
