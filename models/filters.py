"""
User-facing filter state, as edited in the filter sidebar.

Every field is raw user input. `None` means "not touched in this session"
(the navigational seed may fill it in); an empty string means "explicitly
cleared" and wins over the seed.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict

RawNumber = Union[str, int, float, None]


class FilterState(BaseModel):
    """Sidebar filters; merged immutably on every edit."""

    keyword: Optional[str] = None
    category_id: Optional[str] = None
    min_price: RawNumber = None
    max_price: RawNumber = None
    radius: RawNumber = None
    organization_id: Optional[str] = None
    group_id: Optional[str] = None
    sort_by: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    def merged(self, **changes: Any) -> "FilterState":
        """Returns a new state with `changes` applied on top of this one.

        Raises pydantic ValidationError on unknown filter names.
        """
        datos = self.model_dump()
        datos.update(changes)
        return FilterState(**datos)

    @classmethod
    def cleared(cls, default_radius: float = 10.0) -> "FilterState":
        """State produced by the sidebar's "Clear all" action."""
        radio = int(default_radius) if float(default_radius).is_integer() else default_radius
        return cls(
            keyword="",
            category_id="",
            min_price="",
            max_price="",
            radius=str(radio),
            organization_id="",
            group_id="",
            sort_by="relevance",
        )
