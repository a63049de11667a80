"""
Pagination Controller.

Remembers the last successful (query, result) pair and derives page
navigation from it. Page changes reuse the last query unchanged except
for `page`; out-of-range requests are rejected without a network call.
"""

from typing import List, Optional

from core.exceptions import PageOutOfRangeError
from models.search import Pagination, SearchQuery, SearchResult


class PaginationController:
    def __init__(self):
        self._query: Optional[SearchQuery] = None
        self._pagination: Optional[Pagination] = None

    def record(self, query: SearchQuery, result: SearchResult) -> None:
        self._query = query
        self._pagination = result.pagination

    def reset(self) -> None:
        """Forget the last result (filters changed: back to page 1)."""
        self._query = None
        self._pagination = None

    @property
    def last_query(self) -> Optional[SearchQuery]:
        return self._query

    @property
    def current_page(self) -> int:
        return self._pagination.page if self._pagination else 1

    @property
    def total_pages(self) -> int:
        return self._pagination.total_pages if self._pagination else 0

    @property
    def total(self) -> int:
        return self._pagination.total if self._pagination else 0

    @property
    def has_previous(self) -> bool:
        return self._pagination is not None and self.current_page > 1

    @property
    def has_next(self) -> bool:
        return self._pagination is not None and self.current_page < self.total_pages

    def can_go_to(self, page: int) -> bool:
        return self._query is not None and 1 <= page <= self.total_pages

    def go_to_page(self, page: int) -> SearchQuery:
        """
        Query for page `page` of the last successful search.

        Raises:
            PageOutOfRangeError: no successful result yet, or page outside
                [1, total_pages]
        """
        if not self.can_go_to(page):
            raise PageOutOfRangeError(page, self.total_pages)
        return self._query.with_page(page)

    def visible_pages(self, window: int = 5) -> List[int]:
        """Page numbers for a pager showing at most `window` buttons."""
        total = self.total_pages
        if total <= 0:
            return []
        if total <= window:
            return list(range(1, total + 1))

        mitad = window // 2
        inicio = self.current_page - mitad
        inicio = max(1, min(inicio, total - window + 1))
        return list(range(inicio, inicio + window))
