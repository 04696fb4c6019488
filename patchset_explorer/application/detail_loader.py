from __future__ import annotations
import asyncio
import logging

from ..domain.entities import FileDiff
from ..domain.interfaces import ICommitReader

log = logging.getLogger(__name__)


class LazyDetailLoader:
    """
    On-demand file changes per commit, fetched at most once per commit.

    The first expand(id) issues the query; concurrent callers for the same
    id share that in-flight future, and later callers read the cache. A
    failed fetch is not cached, so the next expansion asks again.

    Expand/collapse state (per commit and per file) is local bookkeeping
    and never triggers a query on its own.
    """

    def __init__(self, reader: ICommitReader) -> None:
        self._reader = reader
        self._cache:     dict[str, tuple[FileDiff, ...]] = {}
        self._in_flight: dict[str, asyncio.Future] = {}
        self._expanded:  set[str] = set()
        self._expanded_files: dict[str, set[int | str]] = {}

    def peek(self, commit_id: str) -> tuple[FileDiff, ...] | None:
        """Cached rows for `commit_id`, or None while not loaded yet."""
        return self._cache.get(commit_id)

    def is_pending(self, commit_id: str) -> bool:
        return commit_id in self._in_flight

    async def expand(self, commit_id: str) -> tuple[FileDiff, ...]:
        cached = self._cache.get(commit_id)
        if cached is not None:
            return cached

        future = self._in_flight.get(commit_id)
        if future is None:
            future = asyncio.ensure_future(self._load(commit_id))
            self._in_flight[commit_id] = future
        return await asyncio.shield(future)

    async def _load(self, commit_id: str) -> tuple[FileDiff, ...]:
        try:
            rows = tuple(await self._reader.fetch_file_diffs(commit_id))
        except Exception as exc:
            log.error("Loading file changes of %s failed: %s", commit_id, exc)
            raise
        finally:
            self._in_flight.pop(commit_id, None)

        self._cache[commit_id] = rows
        self._expanded_files[commit_id] = set()
        log.debug("Loaded %d file changes for %s", len(rows), commit_id)
        return rows

    # Commit-level expand/collapse

    def is_expanded(self, commit_id: str) -> bool:
        return commit_id in self._expanded

    async def toggle(self, commit_id: str) -> bool:
        """
        Flip the expanded state of a commit. Expanding loads its file
        changes first (once). Returns the new state.
        """
        if commit_id in self._expanded:
            self._expanded.discard(commit_id)
            return False
        await self.expand(commit_id)
        self._expanded.add(commit_id)
        return True

    # File-level expand/collapse

    def is_file_expanded(self, commit_id: str, file_key: int | str) -> bool:
        return file_key in self._expanded_files.get(commit_id, ())

    def toggle_file(self, commit_id: str, file_key: int | str) -> bool:
        files = self._expanded_files.setdefault(commit_id, set())
        if file_key in files:
            files.discard(file_key)
            return False
        files.add(file_key)
        return True
