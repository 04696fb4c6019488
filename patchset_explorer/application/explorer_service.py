from __future__ import annotations

import logging

from ..domain.entities import (
    DetailResult,
    FileDiff,
    FilterCriteria,
    OperationFailure,
    PageSnapshot,
    SessionStatus,
    StatisticsResult,
)
from ..domain.errors import SessionInitError, SessionNotReadyError
from .aggregation import category_totals, reduce_version_counts
from .commit_reader import CommitReader
from .detail_loader import LazyDetailLoader
from .pagination import PaginationController
from .session import DatasetSession

log = logging.getLogger(__name__)


class ExplorerService:
    """
    The surface the presentation layer talks to.

    Receives the session (injected). Once the session is ready it builds the
    reader, the pagination controller and the detail loader over the
    session's single handle. Query failures come back inside the returned
    snapshot or result as an OperationFailure; nothing here retries.
    """

    def __init__(self, session: DatasetSession) -> None:
        self._session    = session
        self._reader:     CommitReader | None = None
        self._pagination: PaginationController | None = None
        self._details:    LazyDetailLoader | None = None

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    async def open_session(self) -> SessionStatus:
        try:
            handle = await self._session.open()
        except SessionInitError:
            # already logged by the session; the status carries the error
            return self._session.status

        if self._reader is None:
            self._reader     = CommitReader(handle)
            self._pagination = PaginationController(self._reader)
            self._details    = LazyDetailLoader(self._reader)
        return self._session.status

    def _require_ready(self) -> tuple[CommitReader, PaginationController, LazyDetailLoader]:
        if self._reader is None or self._pagination is None or self._details is None:
            raise SessionNotReadyError("open_session() has not completed successfully")
        return self._reader, self._pagination, self._details

    # Search / navigation

    async def search(self, criteria: FilterCriteria) -> PageSnapshot:
        _, pagination, _ = self._require_ready()
        return await pagination.search(criteria)

    async def go_to(self, page: int) -> PageSnapshot:
        _, pagination, _ = self._require_ready()
        return await pagination.go_to(page)

    def clear(self) -> PageSnapshot:
        _, pagination, _ = self._require_ready()
        return pagination.clear()

    def snapshot(self) -> PageSnapshot:
        _, pagination, _ = self._require_ready()
        return pagination.snapshot()

    # Lazy details

    async def expand(self, commit_id: str) -> DetailResult:
        _, _, details = self._require_ready()
        try:
            rows = await details.expand(commit_id)
        except Exception as exc:
            return DetailResult(commit_id, error=OperationFailure("expand", str(exc)))
        return DetailResult(commit_id, rows)

    def peek(self, commit_id: str) -> tuple[FileDiff, ...] | None:
        _, _, details = self._require_ready()
        return details.peek(commit_id)

    @property
    def details(self) -> LazyDetailLoader:
        return self._require_ready()[2]

    # Statistics

    async def aggregate(self) -> StatisticsResult:
        reader, _, _ = self._require_ready()
        try:
            rows = await reader.fetch_version_counts()
        except Exception as exc:
            log.error("Statistics query failed: %s", exc, exc_info=True)
            return StatisticsResult(error=OperationFailure("aggregate", str(exc)))

        aggregates = reduce_version_counts(rows)
        log.info("Statistics | %d versions", len(aggregates))
        return StatisticsResult(tuple(aggregates), category_totals(aggregates))

    async def close(self) -> None:
        self._reader = self._pagination = self._details = None
        await self._session.close()
