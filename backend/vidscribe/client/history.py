"""
Paginated transcription history with "load more" and usage totals.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

FetchPage = Callable[[int, int], Awaitable[List[Dict[str, Any]]]]
FetchUsage = Callable[[], Awaitable[Dict[str, Any]]]
DEFAULT_PAGE_SIZE = 5


class HistoryView:
    """
    Accumulates pages of jobs, newest first.

    Ids already shown are skipped, so a reload racing with "load more"
    never shows the same job twice. `has_more` is true when the last page
    came back full, which can report one extra empty page on exact
    multiples of the page size.
    """

    def __init__(
        self,
        fetch_page: FetchPage,
        fetch_usage: Optional[FetchUsage] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.fetch_page = fetch_page
        self.fetch_usage = fetch_usage
        self.page_size = page_size
        self.items: List[Dict[str, Any]] = []
        self.has_more = False
        self.loading = False
        self.total_minutes = 0.0
        self._seen_ids: Set[str] = set()
        self._offset = 0

    async def load(self, reset: bool = False) -> List[Dict[str, Any]]:
        """Fetch the next page (or the first page again when reset) and append unseen rows."""
        if reset:
            self.items = []
            self._seen_ids = set()
            self._offset = 0

        self.loading = True
        try:
            page = await self.fetch_page(self._offset, self.page_size)
            self._offset += len(page)
            new_rows = []
            for row in page:
                if row.get("id") in self._seen_ids:
                    continue
                self._seen_ids.add(row.get("id"))
                new_rows.append(row)
            self.items.extend(new_rows)
            self.has_more = len(page) == self.page_size
            if len(new_rows) < len(page):
                logger.debug(f"Skipped {len(page) - len(new_rows)} already listed transcription(s)")
        finally:
            self.loading = False

        await self.refresh_usage()
        return self.items

    async def load_more(self) -> List[Dict[str, Any]]:
        if self.loading or not self.has_more:
            return self.items
        return await self.load(reset=False)

    async def refresh_usage(self) -> float:
        if self.fetch_usage is None:
            return self.total_minutes
        usage = await self.fetch_usage()
        self.total_minutes = float(usage.get("total_minutes") or 0.0)
        return self.total_minutes
