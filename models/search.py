"""
Search models shared by the Query Builder, Result Fetcher and views.

`SearchQuery` is immutable: every "change" (new page, dropped location)
builds a fresh instance so an in-flight request never sees its query
mutate underneath it.
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SortBy(str, Enum):
    """Sort orders accepted by the scoped search endpoint."""

    RELEVANCE = "relevance"
    DISTANCE = "distance"
    RATING = "rating"


class EntityKind(str, Enum):
    """Kinds of located entity the directory lists."""

    PROVIDER = "provider"
    SERVICE = "service"


def _wire_number(value: float) -> Any:
    """Sends 10.0 as 10 so query strings stay identical to the web client."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class SearchQuery(BaseModel):
    """Normalized request for one page of discovery results."""

    keyword: Optional[str] = None
    category_id: Optional[str] = None
    min_price: Optional[float] = Field(default=None, ge=0)
    max_price: Optional[float] = Field(default=None, ge=0)
    organization_id: Optional[str] = None
    group_id: Optional[str] = None
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    radius_km: float = Field(default=10.0, ge=1.0, le=100.0)
    sort_by: SortBy = SortBy.RELEVANCE
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=12, ge=1, le=100)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validar_coordenadas(self) -> "SearchQuery":
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be provided together")
        return self

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lng is not None

    def _rebuild(self, **changes: Any) -> "SearchQuery":
        # model_copy() skips validation; rebuilding keeps page >= 1 enforced
        datos = self.model_dump()
        datos.update(changes)
        return SearchQuery(**datos)

    def with_page(self, page: int) -> "SearchQuery":
        return self._rebuild(page=page)

    def with_location(self, latitude: float, longitude: float) -> "SearchQuery":
        return self._rebuild(lat=latitude, lng=longitude)

    def without_location(self) -> "SearchQuery":
        return self._rebuild(lat=None, lng=None)

    def non_location_filters(self) -> Dict[str, Any]:
        """Everything except the coordinates; used to compare fallback requests."""
        return self.model_dump(exclude={"lat", "lng"})

    def to_scoped_params(self) -> Dict[str, Any]:
        """Query-string parameters for GET /search/providers."""
        params = {
            "keyword": self.keyword,
            "categoryId": self.category_id,
            "minPrice": _wire_number(self.min_price) if self.min_price is not None else None,
            "maxPrice": _wire_number(self.max_price) if self.max_price is not None else None,
            "organizationId": self.organization_id,
            "groupId": self.group_id,
            "lat": self.lat,
            "lng": self.lng,
            "radius": _wire_number(self.radius_km),
            "sortBy": self.sort_by.value,
            "page": self.page,
            "limit": self.limit,
        }
        return {clave: valor for clave, valor in params.items() if valor is not None}

    def to_nearby_params(self) -> Dict[str, Any]:
        """Query-string parameters for the unpaginated nearby endpoints."""
        if not self.has_location:
            raise ValueError("nearby search requires lat/lng")
        return {
            "lat": self.lat,
            "lng": self.lng,
            "radius": _wire_number(self.radius_km),
            "limit": self.limit,
        }


class LocatedEntity(BaseModel):
    """A provider or service, optionally geolocated.

    `distance_km` is only populated when the query that produced the entity
    carried coordinates.
    """

    id: str = Field(..., min_length=1)
    kind: EntityKind = EntityKind.PROVIDER
    name: str = ""
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    distance_km: Optional[float] = Field(default=None, ge=0)
    rating_average: Optional[float] = None
    rating_count: Optional[int] = None
    is_featured: bool = False
    is_verified: bool = False
    subscription_plan: Optional[str] = None
    price_range_min: Optional[float] = None
    price_range_max: Optional[float] = None
    price: Optional[str] = None
    address: Optional[str] = None
    category_name: Optional[str] = None
    provider_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_payload(
        cls, data: Mapping[str, Any], kind: EntityKind = EntityKind.PROVIDER
    ) -> "LocatedEntity":
        """Builds an entity from the backend's camelCase JSON.

        Providers carry `name`; services carry `title` and an embedded
        `provider`. Raises ValueError (pydantic ValidationError included)
        when the payload is not an entity.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Expected an object, got {type(data).__name__}")
        if data.get("id") in (None, ""):
            raise ValueError("Entity payload without id")

        categoria = data.get("category") or {}
        proveedor = data.get("provider") or {}
        if not isinstance(proveedor, Mapping):
            raise ValueError(
                f"Embedded provider must be an object, got {type(proveedor).__name__}"
            )
        distancia = data.get("distance", data.get("distanceKm"))
        provider_id = data.get("providerId") or proveedor.get("id")

        return cls(
            id=str(data["id"]),
            kind=kind,
            name=str(data.get("name") or data.get("title") or ""),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            distance_km=distancia,
            rating_average=data.get("ratingAverage", proveedor.get("ratingAverage")),
            rating_count=data.get("ratingCount", proveedor.get("ratingCount")),
            is_featured=bool(data.get("isFeatured", False)),
            is_verified=bool(data.get("isVerified", False)),
            subscription_plan=data.get("subscriptionPlan"),
            price_range_min=data.get("priceRangeMin"),
            price_range_max=data.get("priceRangeMax"),
            price=None if data.get("price") is None else str(data.get("price")),
            address=data.get("address"),
            category_name=categoria.get("name") if isinstance(categoria, Mapping) else None,
            provider_id=None if provider_id is None else str(provider_id),
        )

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def without_distance(self) -> "LocatedEntity":
        if self.distance_km is None:
            return self
        return self.model_copy(update={"distance_km": None})


class Pagination(BaseModel):
    """Pagination metadata as returned by the scoped search endpoint."""

    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    has_more: bool = False

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validar_pagina(self) -> "Pagination":
        if self.total > 0 and self.page > self.total_pages:
            raise ValueError(
                f"page {self.page} exceeds total_pages {self.total_pages}"
            )
        return self

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "Pagination":
        if not isinstance(data, Mapping):
            raise ValueError(f"Expected pagination object, got {type(data).__name__}")
        try:
            return cls(
                page=data["page"],
                limit=data["limit"],
                total=data["total"],
                total_pages=data["totalPages"],
                has_more=bool(data.get("hasMore", False)),
            )
        except KeyError as e:
            raise ValueError(f"Pagination payload without {e}") from e

    @classmethod
    def single_page(cls, count: int, limit: int) -> "Pagination":
        """Synthetic pagination for unpaginated (nearby) responses."""
        return cls(page=1, limit=limit, total=count, total_pages=1, has_more=False)


class SearchResult(BaseModel):
    """One page of entities plus its pagination metadata."""

    items: List[LocatedEntity] = Field(default_factory=list)
    pagination: Pagination

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validar_tamano(self) -> "SearchResult":
        if len(self.items) > self.pagination.limit:
            raise ValueError(
                f"{len(self.items)} items exceed page limit {self.pagination.limit}"
            )
        return self

    @property
    def is_empty(self) -> bool:
        return not self.items
