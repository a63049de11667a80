"""
Vicinity Discovery - CLI del motor de descubrimiento.

Punto de composición: lee la configuración, configura logging y conecta
cliente HTTP, geolocalización, almacenamiento y servicios.

Ejemplos:
    vicinity-discovery search --keyword plumber --radius 10 --lat -15.41 --lng 28.28
    vicinity-discovery favorites add prov-123
    vicinity-discovery favorites show
    vicinity-discovery home
"""

import argparse
import asyncio
import logging
import sys
from typing import Dict, List, Optional, Sequence

from config.settings import Settings, settings
from core.exceptions import PageOutOfRangeError
from core.interfaces import KeyValueStore, MarkerRenderer, PositionSource
from infrastructure.geolocation import (
    FixedPositionSource,
    UnavailablePositionSource,
    build_position_source,
)
from infrastructure.http import SearchApiClient
from infrastructure.logging import configure_logging
from infrastructure.resilience import CircuitBreaker
from infrastructure.storage import RedisKeyValueStore, build_key_value_store
from models.discovery import DiscoveryStatus, GeoLocation
from models.markers import MapMarker
from models.search import EntityKind, LocatedEntity
from services import (
    DiscoveryOrchestrator,
    FavoritesStore,
    GeoLocator,
    MapMarkerView,
    QueryBuilder,
    RecommendationLoader,
    ResultFetcher,
)

logger = logging.getLogger("vicinity-discovery")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="vicinity-discovery",
        description="Búsqueda de proveedores y servicios cercanos",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Busca proveedores")
    search.add_argument("--keyword", help="Texto libre")
    search.add_argument("--category", dest="category_id", help="ID de categoría")
    search.add_argument("--organization", dest="organization_id", help="ID de organización")
    search.add_argument("--group", dest="group_id", help="ID de grupo")
    search.add_argument("--min-price", dest="min_price", help="Precio mínimo")
    search.add_argument("--max-price", dest="max_price", help="Precio máximo")
    search.add_argument("--radius", help="Radio en km (1-100, default 10)")
    search.add_argument(
        "--sort",
        dest="sort_by",
        choices=["relevance", "distance", "rating"],
        help="Orden de resultados",
    )
    search.add_argument("--page", type=int, default=1, help="Página (default 1)")
    search.add_argument(
        "--markers",
        action="store_true",
        help="Imprime los marcadores del mapa de la página mostrada",
    )
    _add_location_args(search)

    favorites = subparsers.add_parser("favorites", help="Gestiona favoritos")
    favorites.add_argument("action", choices=["add", "remove", "list", "clear", "show"])
    favorites.add_argument("entity_id", nargs="?", help="ID para add/remove")
    favorites.add_argument(
        "--kind",
        choices=[k.value for k in EntityKind],
        default=EntityKind.PROVIDER.value,
        help="Tipo de entidad (default provider)",
    )

    home = subparsers.add_parser("home", help="Recomendaciones de la página de inicio")
    _add_location_args(home)

    return parser.parse_args(argv)


def _add_location_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--lat", type=float, help="Latitud del dispositivo")
    parser.add_argument("--lng", type=float, help="Longitud del dispositivo")
    parser.add_argument(
        "--no-location",
        action="store_true",
        help="Simula geolocalización no disponible",
    )


def build_position(args: argparse.Namespace, config: Settings) -> PositionSource:
    if getattr(args, "no_location", False):
        return UnavailablePositionSource()
    lat, lng = getattr(args, "lat", None), getattr(args, "lng", None)
    if lat is not None and lng is not None:
        return FixedPositionSource(lat, lng)
    return build_position_source(config.device_latitude, config.device_longitude)


def build_fetcher(client: SearchApiClient, config: Settings) -> ResultFetcher:
    breaker = CircuitBreaker(
        name="nearby-search",
        failure_threshold=config.nearby_cb_failure_threshold,
        open_seconds=config.nearby_cb_open_seconds,
        half_open_success_threshold=config.nearby_cb_half_open_success_threshold,
    )
    return ResultFetcher(client, nearby_breaker=breaker)


def _format_entity(entity: LocatedEntity) -> str:
    partes = [f"[{entity.id}] {entity.name or '(sin nombre)'}"]
    if entity.category_name:
        partes.append(entity.category_name)
    if entity.distance_km is not None:
        partes.append(f"{entity.distance_km:.1f} km")
    if entity.rating_average is not None:
        partes.append(f"★ {entity.rating_average:.1f} ({entity.rating_count or 0})")
    if entity.is_verified:
        partes.append("verificado")
    return " · ".join(partes)


class ConsoleMarkerRenderer(MarkerRenderer):
    """Imprime los marcadores en texto plano."""

    def render(self, markers: Sequence[MapMarker], center: GeoLocation) -> None:
        print(f"\n🗺️ Mapa centrado en ({center.latitude:.4f}, {center.longitude:.4f})")
        for marker in markers:
            estrella = "★ " if marker.highlighted else ""
            print(
                f"  📌 {estrella}{marker.label} "
                f"({marker.latitude:.4f}, {marker.longitude:.4f})"
            )


async def run_search(args: argparse.Namespace, config: Settings, client: SearchApiClient) -> int:
    seed: Dict[str, str] = {}
    for clave, valor in (
        ("keyword", args.keyword),
        ("categoryId", args.category_id),
        ("organizationId", args.organization_id),
        ("groupId", args.group_id),
        ("radius", args.radius),
    ):
        if valor is not None:
            seed[clave] = valor

    orchestrator = DiscoveryOrchestrator(
        build_fetcher(client, config),
        GeoLocator(build_position(args, config)),
        query_builder=QueryBuilder(
            default_radius_km=config.default_radius_km,
            page_limit=config.search_page_limit,
        ),
        url_params=seed,
        geo_timeout_ms=config.geo_timeout_ms,
        geo_max_age_ms=config.geo_max_age_ms,
    )

    ediciones = {
        campo: getattr(args, campo)
        for campo in ("min_price", "max_price", "sort_by")
        if getattr(args, campo) is not None
    }
    state = await (
        orchestrator.set_filters(**ediciones) if ediciones else orchestrator.load()
    )
    if state.status == DiscoveryStatus.SUCCESS and args.page != 1:
        try:
            state = await orchestrator.go_to_page(args.page)
        except PageOutOfRangeError as e:
            print(f"❌ {e.message}")
            return 2

    if args.markers and state.status == DiscoveryStatus.SUCCESS:
        vista = MapMarkerView(
            ConsoleMarkerRenderer(),
            GeoLocation(
                latitude=config.map_center_latitude,
                longitude=config.map_center_longitude,
            ),
        )
        vista(state)

    if state.status == DiscoveryStatus.ERROR:
        print(f"❌ {state.error.message}")
        if state.error.retryable:
            print("   Puedes reintentar la búsqueda.")
        return 1

    if state.result is None or state.result.is_empty:
        print("Sin resultados.")
        return 0

    for entity in state.result.items:
        print(_format_entity(entity))
    paginacion = state.result.pagination
    print(
        f"\nPágina {paginacion.page}/{max(paginacion.total_pages, 1)} "
        f"· {paginacion.total} resultados"
        + (" · cerca de ti" if state.query.has_location else "")
    )
    return 0


async def run_favorites(
    args: argparse.Namespace,
    config: Settings,
    client: SearchApiClient,
    storage: KeyValueStore,
) -> int:
    store = await FavoritesStore.open(
        storage,
        build_fetcher(client, config),
        key=config.favorites_key,
        kind=EntityKind(args.kind),
    )

    if args.action in ("add", "remove"):
        if not args.entity_id:
            print(f"❌ favorites {args.action} requiere un ID")
            return 2
        if args.action == "add":
            cambiado = await store.add(args.entity_id)
        else:
            cambiado = await store.remove(args.entity_id)
        print("OK" if cambiado else "Sin cambios")
        return 0

    if args.action == "clear":
        await store.clear()
        print("Favoritos eliminados")
        return 0

    if args.action == "list":
        for entity_id in store.list():
            print(entity_id)
        return 0

    entidades = await store.hydrate()
    if not entidades:
        print("No tienes favoritos.")
    for entity in entidades:
        print(_format_entity(entity))
    return 0


async def run_home(args: argparse.Namespace, config: Settings, client: SearchApiClient) -> int:
    loader = RecommendationLoader(
        build_fetcher(client, config),
        GeoLocator(build_position(args, config)),
        limit=config.recommendation_limit,
        radius_km=config.recommendation_radius_km,
        geo_timeout_ms=config.geo_timeout_ms,
        geo_max_age_ms=config.geo_max_age_ms,
    )
    recomendaciones = await loader.load()

    titulo = " cerca de ti" if recomendaciones.location_used else ""
    print(f"Servicios populares{titulo}:")
    for entity in recomendaciones.popular_services:
        print(f"  {_format_entity(entity)}")
    print(f"\nProveedores recomendados{titulo}:")
    for entity in recomendaciones.recommended_providers:
        print(f"  {_format_entity(entity)}")
    return 0


async def async_main(args: argparse.Namespace, config: Settings) -> int:
    client = SearchApiClient(
        config.api_base_url,
        api_token=config.api_token,
        timeout_seconds=config.http_timeout_seconds,
        max_connections=config.http_max_connections,
    )
    storage = build_key_value_store(
        config.storage_backend,
        storage_path=config.storage_path,
        redis_url=config.redis_url,
    )
    try:
        if args.command == "search":
            return await run_search(args, config, client)
        if args.command == "favorites":
            return await run_favorites(args, config, client, storage)
        return await run_home(args, config, client)
    finally:
        await client.close()
        if isinstance(storage, RedisKeyValueStore):
            await storage.disconnect()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = settings
    configure_logging(config.log_level, json_output=config.log_format == "json")
    logger.debug(f"Comando: {args.command}")
    return asyncio.run(async_main(args, config))


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
