"""
Configuración del servicio vicinity-discovery.

Centraliza las variables de configuración del motor de descubrimiento
(búsqueda nearby/scoped, geolocalización, favoritos). Usa pydantic-settings
para validación y manejo de variables de entorno, con soporte para `.env`.

Variables de entorno soportadas (case-insensitive):
- LOG_LEVEL: Nivel de logging (DEBUG, INFO, WARNING, ERROR). Default: INFO
- LOG_FORMAT: "json" o "human". Default: human
- API_BASE_URL: URL base del backend REST. Default: http://localhost:3000/api/v1
- API_TOKEN: Token Bearer opcional para el backend
- HTTP_TIMEOUT_SECONDS: Timeout del transporte HTTP. Default: 10
- SEARCH_PAGE_LIMIT: Tamaño de página de la búsqueda. Default: 12
- GEO_TIMEOUT_MS / GEO_MAX_AGE_MS: Parámetros de geolocalización
- DEVICE_LATITUDE / DEVICE_LONGITUDE: Posición fija del dispositivo (opcional)
- STORAGE_BACKEND: memory | file | redis. Default: file
- FAVORITES_KEY: Clave persistida de favoritos. Default: app_favorites
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuración centralizada del motor de descubrimiento.

    Solo el punto de composición (main.py) lee la instancia global;
    los componentes reciben sus valores por constructor.
    """

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "human"] = "human"

    # Backend REST
    api_base_url: str = "http://localhost:3000/api/v1"
    api_token: Optional[str] = None
    http_timeout_seconds: float = Field(default=10.0, gt=0)
    http_max_connections: int = Field(default=20, ge=1)

    # Búsqueda
    search_page_limit: int = Field(default=12, ge=1, le=100)
    default_radius_km: float = Field(default=10.0, ge=1.0, le=100.0)

    # Geolocalización
    geo_timeout_ms: int = Field(default=5000, ge=1)
    geo_max_age_ms: int = Field(default=0, ge=0)
    device_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    device_longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    # Persistencia local
    favorites_key: str = "app_favorites"
    storage_backend: Literal["memory", "file", "redis"] = "file"
    storage_path: str = ".vicinity/storage.json"
    redis_url: str = "redis://localhost:6379"

    # Circuit breaker de nearby search
    nearby_cb_failure_threshold: int = Field(default=5, ge=1)
    nearby_cb_open_seconds: float = Field(default=20.0, gt=0)
    nearby_cb_half_open_success_threshold: int = Field(default=2, ge=1)

    # Recomendaciones de la página de inicio
    recommendation_limit: int = Field(default=10, ge=1, le=50)
    recommendation_radius_km: float = Field(default=10.0, ge=1.0, le=100.0)

    # Mapa (centro por defecto: Lusaka)
    map_center_latitude: float = -15.4167
    map_center_longitude: float = 28.2833

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def has_device_position(self) -> bool:
        return self.device_latitude is not None and self.device_longitude is not None


# Instancia global de configuración
settings = Settings()
