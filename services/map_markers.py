"""Map markers for located entities, pushed to an abstract renderer."""

import logging
from typing import Callable, Iterable, List

from core.interfaces import MarkerRenderer
from models.discovery import DiscoveryState, DiscoveryStatus, GeoLocation
from models.markers import MapMarker
from models.search import LocatedEntity

logger = logging.getLogger(__name__)

HIGHLIGHTED_PLANS = {"PREMIUM"}


def build_markers(entities: Iterable[LocatedEntity]) -> List[MapMarker]:
    """One marker per entity with both coordinates, in input order."""
    marcadores = []
    for entity in entities:
        if not entity.has_coordinates:
            continue
        marcadores.append(
            MapMarker(
                entity_id=entity.id,
                kind=entity.kind,
                latitude=entity.latitude,
                longitude=entity.longitude,
                label=entity.name,
                highlighted=entity.is_featured
                or (entity.subscription_plan or "").upper() in HIGHLIGHTED_PLANS,
                distance_km=entity.distance_km,
            )
        )
    return marcadores


class MapMarkerView:
    """
    DiscoveryState listener that renders markers on every success.

    Centers on the device location when known, else on `default_center`.
    """

    def __init__(self, renderer: MarkerRenderer, default_center: GeoLocation):
        self._renderer = renderer
        self.default_center = default_center

    def __call__(self, state: DiscoveryState) -> None:
        if state.status != DiscoveryStatus.SUCCESS or state.result is None:
            return
        marcadores = build_markers(state.result.items)
        centro = state.location or self.default_center
        logger.debug(f"🗺️ Renderizando {len(marcadores)} marcadores")
        self._renderer.render(marcadores, centro)

    def attach(self, subscribe: Callable[[Callable[[DiscoveryState], None]], Callable[[], None]]) -> Callable[[], None]:
        """Subscribes the view, e.g. `view.attach(orchestrator.subscribe)`."""
        return subscribe(self)
