"""Map marker and home-page recommendation models."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.discovery import GeoLocation
from models.search import EntityKind, LocatedEntity


class MapMarker(BaseModel):
    """A pin for one located entity."""

    entity_id: str
    kind: EntityKind = EntityKind.PROVIDER
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    label: str = ""
    highlighted: bool = False
    distance_km: Optional[float] = None

    model_config = ConfigDict(frozen=True)


class Recommendations(BaseModel):
    """Home page sections: popular services and recommended providers."""

    popular_services: List[LocatedEntity] = Field(default_factory=list)
    recommended_providers: List[LocatedEntity] = Field(default_factory=list)
    location: Optional[GeoLocation] = None

    @property
    def location_used(self) -> bool:
        return self.location is not None
