from __future__ import annotations

import enum
import logging
import math

from ..domain.entities import PAGE_SIZE, Commit, FilterCriteria, OperationFailure, PageSnapshot
from ..domain.interfaces import ICommitReader

log = logging.getLogger(__name__)


class PaginationState(enum.Enum):
    IDLE       = "idle"
    SEARCHING  = "searching"
    NAVIGATING = "navigating"


def total_pages(total: int, page_size: int = PAGE_SIZE) -> int:
    return math.ceil(total / page_size) if total > 0 else 0


class PaginationController:
    """
    Search/navigate stream over the commits table.

    At most one query is in flight: search() and go_to() are accepted only
    while IDLE, and a request arriving in any other state is dropped
    without touching the current page or rows. The state switch happens
    before the first await, so on a single event loop no two requests can
    both pass the check.

    Results are committed only if no clear() happened while the query ran
    (tracked by a generation counter). clear() does not make the controller
    idle; a stale query still holds the stream until it returns, and its
    result is then discarded.
    """

    def __init__(self, reader: ICommitReader, page_size: int = PAGE_SIZE) -> None:
        self._reader     = reader
        self._page_size  = page_size
        self._state      = PaginationState.IDLE
        self._criteria   = FilterCriteria()
        self._rows: tuple[Commit, ...] = ()
        self._total      = 0
        self._page       = 1
        self._error: OperationFailure | None = None
        self._generation = 0

    @property
    def state(self) -> PaginationState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is not PaginationState.IDLE

    @property
    def total_pages(self) -> int:
        return total_pages(self._total, self._page_size)

    def snapshot(self) -> PageSnapshot:
        return PageSnapshot(
            rows        = self._rows,
            total       = self._total,
            page        = self._page,
            total_pages = self.total_pages,
            busy        = self.busy,
            criteria    = self._criteria,
            error       = self._error,
        )

    async def search(self, criteria: FilterCriteria) -> PageSnapshot:
        """
        Count the matches, then fetch page 1. The page is reset to 1 no
        matter where the previous search was. With zero matches no page
        query is issued.
        """
        if self.busy:
            log.debug("search rejected: controller is %s", self._state.value)
            return self.snapshot()

        self._generation += 1
        generation  = self._generation
        self._state = PaginationState.SEARCHING
        self._error = None

        try:
            total = await self._reader.count(criteria)
            stale = generation != self._generation
            rows  = await self._reader.fetch_page(criteria, 1) if total > 0 and not stale else []
        except Exception as exc:
            if generation == self._generation:
                log.error("Search failed: %s", exc, exc_info=True)
                self._error = OperationFailure("search", str(exc))
            self._state = PaginationState.IDLE
            return self.snapshot()

        if generation != self._generation:
            log.debug("Discarding stale search result")
            self._state = PaginationState.IDLE
            return self.snapshot()

        self._criteria = criteria
        self._total    = total
        self._rows     = tuple(rows)
        self._page     = 1
        self._state    = PaginationState.IDLE
        log.info("Search | %d matches | %d pages", total, self.total_pages)
        return self.snapshot()

    async def go_to(self, page: int) -> PageSnapshot:
        """
        Fetch `page` of the current search. Out-of-range pages and requests
        made while busy are no-ops. Navigating to the current page re-fetches.
        """
        if self.busy:
            log.debug("go_to(%s) rejected: controller is %s", page, self._state.value)
            return self.snapshot()
        if isinstance(page, bool) or not isinstance(page, int) or page < 1 or page > self.total_pages:
            log.debug("go_to(%s) rejected: valid pages are 1..%d", page, self.total_pages)
            return self.snapshot()

        self._generation += 1
        generation  = self._generation
        self._state = PaginationState.NAVIGATING
        self._error = None

        try:
            rows = await self._reader.fetch_page(self._criteria, page)
        except Exception as exc:
            if generation == self._generation:
                log.error("Navigation to page %d failed: %s", page, exc, exc_info=True)
                self._error = OperationFailure("navigate", str(exc))
            self._state = PaginationState.IDLE
            return self.snapshot()

        if generation != self._generation:
            log.debug("Discarding stale page %d", page)
            self._state = PaginationState.IDLE
            return self.snapshot()

        self._rows  = tuple(rows)
        self._page  = page
        self._state = PaginationState.IDLE
        return self.snapshot()

    def clear(self) -> PageSnapshot:
        """
        Reset criteria, rows, total and page. Issues no query. A query still
        in flight keeps the controller busy until it returns, then finds its
        result stale and drops it.
        """
        self._generation += 1
        self._criteria = FilterCriteria()
        self._rows     = ()
        self._total    = 0
        self._page     = 1
        self._error    = None
        return self.snapshot()
