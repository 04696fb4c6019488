"""Shared fixtures: a small Ext4-like corpus written to Parquet in memory."""

from datetime import date, timedelta

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from patchset_explorer.application.explorer_service import ExplorerService
from patchset_explorer.application.session import DatasetSession
from patchset_explorer.domain.errors import DatasetLoadError
from patchset_explorer.domain.interfaces import IDatasetFetcher
from patchset_explorer.infrastructure.duckdb_engine import DuckDBEngine, select_backend

AUTHORS    = ["Theodore Ts'o", "Jan Kara", "Andreas Dilger"]
VERSIONS   = ["2.6.19", "2.6.20", "2.6.9", "3.10", "3.9", "4.0", "5", "5.0.0"]
COMPONENTS = ["extent", "balloc", "inode", "dir", "super"]
PATCHES    = ["bug", "feature", "performance", "maintenance", "reliability"]
FILE_POOL  = ["fs/ext4/extents.c", "fs/ext4/inode.c", "fs/ext4/super.c", "fs/ext4/namei.c"]

CORPUS_SIZE = 23

COMMITS_SCHEMA = pa.schema([
    ("commit_id", pa.string()),
    ("author", pa.string()),
    ("date", pa.string()),
    ("message", pa.string()),
    ("files_changed", pa.int64()),
    ("insertions", pa.int64()),
    ("deletions", pa.int64()),
    ("version", pa.string()),
    ("component", pa.string()),
    ("patch_type", pa.string()),
    ("tags", pa.string()),
])

DIFFS_SCHEMA = pa.schema([
    ("id", pa.int64()),
    ("commit_id", pa.string()),
    ("file_path", pa.string()),
    ("insertions", pa.int64()),
    ("deletions", pa.int64()),
    ("diff_content", pa.string()),
])


def commit_id_for(i: int) -> str:
    return f"{i:02d}" + format(i * 7919 + 0xABCDEF, "038x")


def build_commit_rows() -> list[dict]:
    start = date(2006, 10, 1)
    rows = []
    for i in range(CORPUS_SIZE):
        rows.append({
            "commit_id":     commit_id_for(i),
            "author":        AUTHORS[i % len(AUTHORS)],
            "date":          (start + timedelta(days=45 * i)).isoformat(),
            "message":       f"ext4: change number {i}\n\nSigned-off-by: {AUTHORS[i % len(AUTHORS)]}",
            "files_changed": i % 4 + 1,
            "insertions":    10 * i + 3,
            "deletions":     i,
            "version":       VERSIONS[i % len(VERSIONS)],
            "component":     COMPONENTS[i % len(COMPONENTS)],
            "patch_type":    PATCHES[(i // 2) % len(PATCHES)],
            "tags":          f"kernel, {COMPONENTS[i % len(COMPONENTS)]}, ",
        })

    # quote, percent and underscore in one message
    rows[3]["message"] = "ext4: don't crash on a 100% full_fs"
    # same day as row 6; load order decides
    rows[7]["date"] = rows[6]["date"]
    # outside the statistics categories
    rows[22]["patch_type"] = None
    return rows


def build_diff_rows(commits: list[dict]) -> list[dict]:
    rows = []

    def add(commit_id: str, path: str, ins: int, dels: int) -> None:
        rows.append({
            "id":           len(rows) + 1,
            "commit_id":    commit_id,
            "file_path":    path,
            "insertions":   ins,
            "deletions":    dels,
            "diff_content": f"--- a/{path}\n+++ b/{path}\n@@ -1 +1 @@\n-old\n+new\n",
        })

    for i, commit in enumerate(commits):
        # reversed so ORDER BY file_path has work to do
        for n, path in enumerate(reversed(FILE_POOL[: i % 4 + 1])):
            add(commit["commit_id"], path, n + 1, n)

    add(commits[4]["commit_id"], "fs/ext4/balloc.c", 5, 1)
    add(commits[4]["commit_id"], "fs/ext4/mballoc.c", 7, 2)
    add(commits[9]["commit_id"], "fs/ext4/balloc.c", 1, 1)
    add(commits[9]["commit_id"], "fs/ext4/balloc.c", 2, 0)
    add(commits[12]["commit_id"], "fs/ext3/balloc.c", 3, 3)
    return rows


def parquet_bytes(rows: list[dict], schema: pa.Schema) -> bytes:
    table = pa.Table.from_pylist(rows, schema=schema)
    sink = pa.BufferOutputStream()
    pq.write_table(table, sink)
    return sink.getvalue().to_pybytes()


class InMemoryDatasetFetcher(IDatasetFetcher):
    """Serves dataset blobs from a dict and records every request."""

    def __init__(self, blobs: dict[str, bytes], statuses: dict[str, int] | None = None) -> None:
        self.blobs    = blobs
        self.statuses = statuses or {}
        self.requests: list[str] = []

    async def fetch(self, logical_name: str) -> bytes:
        self.requests.append(logical_name)
        if logical_name in self.statuses:
            raise DatasetLoadError(logical_name, self.statuses[logical_name])
        if logical_name not in self.blobs:
            raise DatasetLoadError(logical_name, 404)
        return self.blobs[logical_name]


@pytest.fixture
def commit_rows():
    return build_commit_rows()


@pytest.fixture
def diff_rows(commit_rows):
    return build_diff_rows(commit_rows)


@pytest.fixture
def blobs(commit_rows, diff_rows):
    return {
        "ext4-commits.parquet":      parquet_bytes(commit_rows, COMMITS_SCHEMA),
        "ext4-commits-code.parquet": parquet_bytes(diff_rows, DIFFS_SCHEMA),
    }


@pytest.fixture
def fetcher(blobs):
    return InMemoryDatasetFetcher(blobs)


@pytest.fixture
def session(fetcher):
    """Unopened session over a real single-threaded DuckDB engine."""
    return DatasetSession(DuckDBEngine(select_backend(1)), fetcher)


@pytest.fixture
def explorer(session):
    """Unopened explorer service; tests call open_session() themselves."""
    return ExplorerService(session)
