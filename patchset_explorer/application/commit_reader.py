from __future__ import annotations
import logging
from typing import Any, Callable, TypeVar

from ..domain.entities import Commit, FileDiff, FilterCriteria, VersionCount
from ..domain.errors import QueryExecutionError
from ..domain.interfaces import ICommitReader, IQueryHandle
from . import query_builder
from .query_builder import Query
from .row_decoder import decode_commit, decode_file_diff, decode_total, decode_version_count

log = logging.getLogger(__name__)

T = TypeVar("T")


class CommitReader(ICommitReader):
    """
    Concrete ICommitReader over a live query handle.

    Receives the session's handle (injected) and never opens or closes it.
    Every row goes through its entity decoder before it is returned, so
    callers only ever see typed records with native ints.
    """

    def __init__(self, handle: IQueryHandle) -> None:
        self._handle = handle

    async def _rows(self, query: Query, operation: str) -> list[dict[str, Any]]:
        try:
            return await self._handle.query(query.sql, query.params)
        except QueryExecutionError as exc:
            exc.operation = exc.operation or operation
            raise
        except Exception as exc:
            raise QueryExecutionError(str(exc), operation) from exc

    @staticmethod
    def _decode(rows: list[dict[str, Any]], decoder: Callable[[dict[str, Any]], T], operation: str) -> list[T]:
        try:
            return [decoder(row) for row in rows]
        except QueryExecutionError as exc:
            exc.operation = exc.operation or operation
            raise

    async def count(self, criteria: FilterCriteria) -> int:
        rows = await self._rows(query_builder.build(criteria, "count"), "count")
        try:
            total = decode_total(rows)
        except QueryExecutionError as exc:
            exc.operation = exc.operation or "count"
            raise
        log.debug("Count %s → %d", criteria, total)
        return total

    async def fetch_page(self, criteria: FilterCriteria, page: int) -> list[Commit]:
        rows = await self._rows(query_builder.build(criteria, "page", page), "page")
        return self._decode(rows, decode_commit, "page")

    async def fetch_file_diffs(self, commit_id: str) -> list[FileDiff]:
        rows = await self._rows(query_builder.build_file_diffs_query(commit_id), "expand")
        return self._decode(rows, decode_file_diff, "expand")

    async def fetch_version_counts(self) -> list[VersionCount]:
        rows = await self._rows(query_builder.build_version_counts_query(), "aggregate")
        log.debug("Fetched %d version/patch-type groups", len(rows))
        return self._decode(rows, decode_version_count, "aggregate")
