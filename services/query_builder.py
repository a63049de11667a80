"""
Query Builder: FilterState + page + location → SearchQuery.

Pure: same inputs, same query. Precedence per field is
user edit > URL seed > default, where an explicit empty edit ("")
clears a seeded value instead of falling back to it. Invalid numeric
input is omitted rather than coerced to 0.
"""

import logging
import math
from typing import Any, Mapping, Optional

from models.discovery import GeoLocation
from models.filters import FilterState
from models.search import SearchQuery, SortBy

logger = logging.getLogger(__name__)

MIN_RADIUS_KM = 1.0
MAX_RADIUS_KM = 100.0


def parse_optional_number(raw: Any) -> Optional[float]:
    """
    Parses a user supplied number.

    Returns None for missing, empty, non-numeric or non-finite input.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        valor = float(raw)
    else:
        texto = str(raw).strip()
        if not texto:
            return None
        try:
            valor = float(texto)
        except ValueError:
            return None
    if not math.isfinite(valor):
        return None
    return valor


def _text(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    texto = str(raw).strip()
    return texto or None


def _edit_or_seed(edit: Any, seed: Any) -> Any:
    # "" is an explicit clear and must not fall through to the seed
    if edit is not None:
        return edit
    return seed


class QueryBuilder:
    """Builds normalized queries with the configured defaults."""

    def __init__(self, default_radius_km: float = 10.0, page_limit: int = 12):
        if not MIN_RADIUS_KM <= default_radius_km <= MAX_RADIUS_KM:
            raise ValueError(
                f"default_radius_km must be within [{MIN_RADIUS_KM}, {MAX_RADIUS_KM}]"
            )
        self.default_radius_km = default_radius_km
        self.page_limit = page_limit

    def build(
        self,
        filters: FilterState,
        page: int = 1,
        location: Optional[GeoLocation] = None,
        url_params: Optional[Mapping[str, str]] = None,
    ) -> SearchQuery:
        seed = url_params or {}

        min_price = self._price(filters.min_price)
        max_price = self._price(filters.max_price)

        return SearchQuery(
            keyword=_text(_edit_or_seed(filters.keyword, seed.get("keyword"))),
            category_id=_text(
                _edit_or_seed(filters.category_id, seed.get("categoryId"))
            ),
            min_price=min_price,
            max_price=max_price,
            organization_id=_text(
                _edit_or_seed(filters.organization_id, seed.get("organizationId"))
            ),
            group_id=_text(_edit_or_seed(filters.group_id, seed.get("groupId"))),
            lat=location.latitude if location is not None else None,
            lng=location.longitude if location is not None else None,
            radius_km=self._radius(_edit_or_seed(filters.radius, seed.get("radius"))),
            sort_by=self._sort(filters.sort_by),
            page=page,
            limit=self.page_limit,
        )

    def _radius(self, raw: Any) -> float:
        valor = parse_optional_number(raw)
        if valor is None or valor <= 0:
            return self.default_radius_km
        return min(max(valor, MIN_RADIUS_KM), MAX_RADIUS_KM)

    @staticmethod
    def _price(raw: Any) -> Optional[float]:
        valor = parse_optional_number(raw)
        if valor is None or valor < 0:
            return None
        return valor

    @staticmethod
    def _sort(raw: Optional[str]) -> SortBy:
        texto = _text(raw)
        if texto is None:
            return SortBy.RELEVANCE
        try:
            return SortBy(texto.lower())
        except ValueError:
            logger.debug(f"Orden desconocido '{texto}', usando relevance")
            return SortBy.RELEVANCE
