"""
main.py - Dependency Wiring (Composition Root)
-----------------------------------------------
Wires the pieces together and runs one command against the corpus:

  search  - filter commits and print one page of results
  show    - print the file changes of one commit
  stats   - print commits per version and patch type

It reads configuration from the environment (flags override), builds the
concrete fetcher and engine, injects them into the session and the
explorer service, runs the command and tears everything down.

                          main.py  (wires everything)
                             │
               ┌─────────────┼──────────────┐
               ▼             ▼              ▼
        ExplorerService  DatasetSession  IDatasetFetcher
               │             │          (HTTP or local dir)
               ▼             ▼
  PaginationController   DuckDBEngine
  LazyDetailLoader
  CommitReader
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

import httpx

from .application.explorer_service import ExplorerService
from .application.session import DatasetSession
from .domain.entities import COMPONENTS, PATCH_TYPE_ORDER, PATCH_TYPES, Commit, FilterCriteria
from .domain.errors import InvalidCriteriaError
from .domain.interfaces import IDatasetFetcher
from .infrastructure.dataset_fetcher import DEFAULT_TIMEOUT, HttpDatasetFetcher, LocalDatasetFetcher
from .infrastructure.duckdb_engine import DuckDBEngine, select_backend

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_DATA_URL = "./data"


def _read_env() -> dict:
    threads = os.environ.get("PATCHSET_DUCKDB_THREADS")
    timeout = os.environ.get("PATCHSET_HTTP_TIMEOUT")
    try:
        return {
            "data_url": os.environ.get("PATCHSET_DATA_URL", DEFAULT_DATA_URL),
            "threads":  int(threads) if threads else None,
            "timeout":  float(timeout) if timeout else DEFAULT_TIMEOUT,
        }
    except ValueError as exc:
        log.error("Invalid environment configuration: %s", exc)
        sys.exit(2)


def _is_http(location: str) -> bool:
    return location.startswith(("http://", "https://"))


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------

def parse_tags(tags: str | None) -> list[str]:
    """Comma-separated labels, trimmed, empties dropped, order kept."""
    if not tags:
        return []
    return [t.strip() for t in tags.split(",") if t.strip()]


def first_line(message: str | None, max_length: int = 100) -> str:
    line = (message or "").split("\n")[0]
    if len(line) <= max_length:
        return line
    return line[:max_length] + "..."


def _print_commit(commit: Commit) -> None:
    labels = [label for label in (commit.component, commit.patch_type) if label] + parse_tags(commit.tags)
    print(f"{commit.commit_id[:8]}  {commit.date or '':<10}  {commit.version or '':<8}  {first_line(commit.message)}")
    print(f"          {commit.author or ''} | {commit.files_changed} "
          f"{'file' if commit.files_changed == 1 else 'files'} | +{commit.insertions} -{commit.deletions}"
          f"{' | ' + ', '.join(labels) if labels else ''}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def _search(service: ExplorerService, args: argparse.Namespace) -> int:
    try:
        criteria = FilterCriteria(
            keyword    = args.keyword,
            start_date = args.start_date,
            end_date   = args.end_date,
            version    = args.version,
            component  = args.component,
            patch_type = args.patch_type,
            file_name  = args.file_name,
        )
    except InvalidCriteriaError as exc:
        log.error("%s", exc)
        return 2

    snapshot = await service.search(criteria)
    if snapshot.error is None and args.page != 1:
        snapshot = await service.go_to(args.page)
        if snapshot.page != args.page and snapshot.error is None:
            log.warning("Page %d is out of range (1..%d)", args.page, snapshot.total_pages)

    if snapshot.error is not None:
        log.error("%s failed: %s", snapshot.error.operation, snapshot.error.message)
        return 1

    print(f"Search Results ({snapshot.total:,}) | page {snapshot.page}/{max(snapshot.total_pages, 1)}")
    for commit in snapshot.rows:
        _print_commit(commit)
    if not snapshot.rows:
        print("No commits found")
    return 0


async def _show(service: ExplorerService, args: argparse.Namespace) -> int:
    result = await service.expand(args.commit_id)
    if result.error is not None:
        log.error("%s failed: %s", result.error.operation, result.error.message)
        return 1

    print(f"File Changes ({len(result.rows)})")
    for diff in result.rows:
        print(f"  {diff.file_path}  +{diff.insertions} -{diff.deletions}")
        if args.diff and diff.diff_content:
            print(diff.diff_content)
    return 0


async def _stats(service: ExplorerService, args: argparse.Namespace) -> int:
    result = await service.aggregate()
    if result.error is not None:
        log.error("%s failed: %s", result.error.operation, result.error.message)
        return 1

    print(f"{'version':<10}" + "".join(f"{c:>13}" for c in PATCH_TYPE_ORDER) + f"{'total':>8}")
    for aggregate in result.aggregates:
        print(f"{aggregate.version:<10}"
              + "".join(f"{aggregate.count(c):>13}" for c in PATCH_TYPE_ORDER)
              + f"{aggregate.total:>8}")
    print(f"{'all':<10}" + "".join(f"{result.totals.get(c, 0):>13,}" for c in PATCH_TYPE_ORDER))
    return 0


COMMANDS = {"search": _search, "show": _show, "stats": _stats}


# ---------------------------------------------------------------------------
# Dependency wiring
# ---------------------------------------------------------------------------

async def build_and_run(args: argparse.Namespace, config: dict) -> int:
    data_url = args.data_url or config["data_url"]
    client   = httpx.AsyncClient() if _is_http(data_url) else None

    fetcher: IDatasetFetcher
    if client is not None:
        fetcher = HttpDatasetFetcher(data_url, client, timeout=config["timeout"])
    else:
        fetcher = LocalDatasetFetcher(data_url)

    engine  = DuckDBEngine(select_backend(args.threads or config["threads"]))
    service = ExplorerService(DatasetSession(engine, fetcher))

    try:
        status = await service.open_session()
        if not status.ready:
            log.error("Error loading database: %s", status.error)
            return 1
        return await COMMANDS[args.command](service, args)
    finally:
        await service.close()
        if client is not None:
            await client.aclose()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog        = "patchset-explorer",
        description = "Browse the Ext4 filesystem patch set",
    )
    parser.add_argument("--data-url", help=f"Dataset location, URL or directory (default: $PATCHSET_DATA_URL or {DEFAULT_DATA_URL})")
    parser.add_argument("--threads", type=int, help="DuckDB worker threads")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Filter commits")
    search.add_argument("--keyword", default="", help="Substring of commit id or message")
    search.add_argument("--start-date", default="", help="YYYY-MM-DD, inclusive")
    search.add_argument("--end-date", default="", help="YYYY-MM-DD, inclusive")
    search.add_argument("--version", default="", help="Substring of the release version")
    search.add_argument("--component", default="", choices=[""] + [c.name for c in COMPONENTS])
    search.add_argument("--patch-type", default="", choices=[""] + list(PATCH_TYPES))
    search.add_argument("--file-name", default="", help="Substring of a touched file path")
    search.add_argument("--page", type=int, default=1)

    show = commands.add_parser("show", help="File changes of one commit")
    show.add_argument("commit_id")
    show.add_argument("--diff", action="store_true", help="Print the diff text too")

    commands.add_parser("stats", help="Commits per version and patch type")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level   = logging.DEBUG if args.verbose else logging.INFO,
        format  = "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt = "%H:%M:%S",
    )

    return asyncio.run(build_and_run(args, _read_env()))


if __name__ == "__main__":
    sys.exit(main())
