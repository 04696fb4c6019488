from __future__ import annotations

import asyncio
import logging
import os
import re
import threading
from dataclasses import dataclass
from typing import Any, Sequence

import duckdb
import pyarrow as pa
import pyarrow.parquet as pq

from ..domain.errors import QueryExecutionError
from ..domain.interfaces import IQueryEngine, IQueryHandle

log = logging.getLogger(__name__)

MAX_THREADS = 8
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class Backend:
    """DuckDB configuration chosen for the host."""
    database: str
    threads:  int

    def config(self) -> dict[str, Any]:
        return {"threads": self.threads}


def select_backend(threads: int | None = None) -> Backend:
    """
    Pick an in-memory DuckDB backend sized to the host. An explicit thread
    count wins; otherwise use the CPU count, capped at MAX_THREADS.
    """
    if threads is None:
        threads = min(os.cpu_count() or 1, MAX_THREADS)
    if threads < 1:
        raise ValueError(f"threads must be >= 1, got {threads}")
    return Backend(database=":memory:", threads=threads)


class DuckDBHandle(IQueryHandle):
    """
    Concrete IQueryHandle over one DuckDB connection.

    Each query runs on a worker thread through its own cursor (a child
    connection to the same database), so concurrent operation streams never
    share a cursor.
    """

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    async def register_table(self, name: str, data: bytes) -> int:
        return await asyncio.to_thread(self._register_table, name, data)

    def _register_table(self, name: str, data: bytes) -> int:
        if not _IDENTIFIER.match(name):
            raise ValueError(f"invalid table name: {name!r}")
        try:
            table = pq.read_table(pa.BufferReader(data))
        except pa.ArrowException as exc:
            raise QueryExecutionError(f"{name}: not a readable Parquet file: {exc}", "register") from exc

        view = f"__{name}_arrow"
        with self._lock:
            try:
                self._conn.register(view, table)
                try:
                    self._conn.execute(f"CREATE TABLE {name} AS SELECT * FROM {view}")
                finally:
                    self._conn.unregister(view)
            except duckdb.Error as exc:
                raise QueryExecutionError(f"{name}: {exc}", "register") from exc

        log.debug("Registered table %s (%d rows, %d columns)", name, table.num_rows, table.num_columns)
        return table.num_rows

    async def query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._run, sql, tuple(params))

    def _run(self, sql: str, params: tuple[Any, ...]) -> list[dict[str, Any]]:
        try:
            with self._lock:
                cursor = self._conn.cursor()
        except duckdb.Error as exc:
            raise QueryExecutionError(str(exc)) from exc

        try:
            cursor.execute(sql, list(params) if params else None)
            if cursor.description is None:
                return []
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        except duckdb.Error as exc:
            log.debug("Query failed: %.120s | %s", sql, exc)
            raise QueryExecutionError(str(exc)) from exc
        finally:
            cursor.close()

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)


class DuckDBEngine(IQueryEngine):
    """
    Concrete IQueryEngine: an in-memory DuckDB database.

    The backend is injected (see select_backend) so callers decide how the
    engine is sized.
    """

    def __init__(self, backend: Backend | None = None) -> None:
        self._backend = backend or select_backend()
        self._db: duckdb.DuckDBPyConnection | None = None

    @property
    def backend(self) -> Backend:
        return self._backend

    async def start(self) -> None:
        if self._db is not None:
            return
        self._db = await asyncio.to_thread(
            duckdb.connect,
            database = self._backend.database,
            config   = self._backend.config(),
        )
        log.debug("DuckDB started | database=%s | threads=%d", self._backend.database, self._backend.threads)

    async def connect(self) -> DuckDBHandle:
        if self._db is None:
            raise RuntimeError("engine is not started")
        return DuckDBHandle(self._db.cursor())

    async def terminate(self) -> None:
        if self._db is None:
            return
        db, self._db = self._db, None
        await asyncio.to_thread(db.close)
