"""
Domain Layer - Interfaces (Abstract Contracts)
-----------------------------------------------
Abstract definitions of what the infrastructure must provide. The domain
layer defines the shape; the infrastructure layer implements it.

  IDatasetFetcher  - fetches a dataset blob by logical file name
  IQueryEngine     - the embedded engine: start, connect, terminate
  IQueryHandle     - the single live connection every query goes through
  ICommitReader    - typed reads over the two tables (count, page,
                     file diffs, grouped version counts)

The application layer depends on these, never on DuckDB or httpx directly,
so tests can hand in fakes for any of them.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Sequence

from .entities import Commit, FileDiff, FilterCriteria, VersionCount


class IDatasetFetcher(ABC):
    """
    Byte-fetch capability for the immutable dataset files.
    """

    @abstractmethod
    async def fetch(self, logical_name: str) -> bytes:
        """
        Return the whole content of `logical_name`.

        Raises:
            DatasetLoadError - on any non-success status, carrying the
                               file name and the status
        """
        ...


class IQueryHandle(ABC):
    """
    A live query connection. Read concurrently by every operation stream;
    never reassigned except when the session opens or closes.
    """

    @abstractmethod
    async def register_table(self, name: str, data: bytes) -> int:
        """Load a columnar blob as table `name`. Returns its row count."""
        ...

    @abstractmethod
    async def query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run one statement; rows come back with engine-native field types."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class IQueryEngine(ABC):
    """
    Contract for the embedded query engine's lifecycle.
    """

    @abstractmethod
    async def start(self) -> None:
        """Bring the engine up. Must be called before `connect`."""
        ...

    @abstractmethod
    async def connect(self) -> IQueryHandle:
        ...

    @abstractmethod
    async def terminate(self) -> None:
        """Shut the engine down and release everything it holds."""
        ...


class ICommitReader(ABC):
    """
    Typed read access to the corpus. Every number it returns is a native int.
    """

    @abstractmethod
    async def count(self, criteria: FilterCriteria) -> int:
        ...

    @abstractmethod
    async def fetch_page(self, criteria: FilterCriteria, page: int) -> list[Commit]:
        ...

    @abstractmethod
    async def fetch_file_diffs(self, commit_id: str) -> list[FileDiff]:
        ...

    @abstractmethod
    async def fetch_version_counts(self) -> list[VersionCount]:
        ...
