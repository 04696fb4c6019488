from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Literal, Sequence

from ..domain.entities import (
    COMMITS_TABLE,
    FILE_DIFFS_TABLE,
    PAGE_SIZE,
    PATCH_TYPE_ORDER,
    FilterCriteria,
)

log = logging.getLogger(__name__)

Mode = Literal["count", "page"]

# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------
# Every user value is bound as a parameter. Substring tests go through
# like_pattern() so `%`, `_` and the escape character itself match literally.

LIKE_ESCAPE = "\\"

# Compare the first ten characters of the date as text. ISO-8601 dates order
# lexicographically, and this holds for VARCHAR, DATE and TIMESTAMP columns.
DATE_EXPR = "substr(CAST(date AS VARCHAR), 1, 10)"

PAGE_ORDER = "ORDER BY date DESC, rowid"


def like_pattern(term: str) -> str:
    """Turn a raw search term into a LIKE pattern matching it as a substring."""
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
            .replace("%", LIKE_ESCAPE + "%")
            .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def _contains(column: str) -> str:
    return f"{column} LIKE ? ESCAPE '{LIKE_ESCAPE}'"


@dataclass(frozen=True)
class Conditions:
    """Ordered conjuncts of a WHERE clause and the parameters they bind."""
    clauses: tuple[str, ...] = ()
    params:  tuple[Any, ...] = ()

    def where(self) -> str:
        if not self.clauses:
            return ""
        return "WHERE " + " AND ".join(self.clauses)


@dataclass(frozen=True)
class Query:
    sql:        str
    params:     tuple[Any, ...] = ()
    conditions: tuple[str, ...] = ()


def build_conditions(criteria: FilterCriteria) -> Conditions:
    """
    Translate criteria into conjuncts. Each set field contributes exactly
    one conjunct, always in the same order, so equivalent criteria give
    byte-identical predicates.
    """
    clauses: list[str] = []
    params:  list[Any] = []

    if criteria.keyword:
        pattern = like_pattern(criteria.keyword)
        clauses.append(f"({_contains('commit_id')} OR {_contains('message')})")
        params.extend([pattern, pattern])

    if criteria.start_date:
        clauses.append(f"{DATE_EXPR} >= ?")
        params.append(criteria.start_date)

    if criteria.end_date:
        clauses.append(f"{DATE_EXPR} <= ?")
        params.append(criteria.end_date)

    if criteria.version:
        clauses.append(_contains("version"))
        params.append(like_pattern(criteria.version))

    if criteria.component:
        clauses.append("component = ?")
        params.append(criteria.component)

    if criteria.patch_type:
        clauses.append("patch_type = ?")
        params.append(criteria.patch_type)

    # Existence sub-query: a commit touching several matching files still
    # appears once.
    if criteria.file_name:
        clauses.append(
            f"commit_id IN (SELECT DISTINCT commit_id FROM {FILE_DIFFS_TABLE} "
            f"WHERE {_contains('file_path')})"
        )
        params.append(like_pattern(criteria.file_name))

    return Conditions(tuple(clauses), tuple(params))


def offset_for(page: int, page_size: int = PAGE_SIZE) -> int:
    return (page - 1) * page_size


def build(criteria: FilterCriteria, mode: Mode, page: int | None = None) -> Query:
    """
    Build the count query or the page query for `criteria`.

    Both modes share one Conditions value; only the trailing clauses
    differ (nothing for `count`, ordering/limit/offset for `page`).
    """
    conditions = build_conditions(criteria)
    where      = conditions.where()

    if mode == "count":
        sql = f"SELECT COUNT(*) AS total FROM {COMMITS_TABLE} {where}".rstrip()
        return Query(sql, conditions.params, conditions.clauses)

    if mode == "page":
        page = 1 if page is None else page
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise ValueError(f"page must be a positive integer, got {page!r}")
        parts = [f"SELECT * FROM {COMMITS_TABLE}"]
        if where:
            parts.append(where)
        parts.append(PAGE_ORDER)
        parts.append(f"LIMIT {PAGE_SIZE} OFFSET {offset_for(page)}")
        return Query(" ".join(parts), conditions.params, conditions.clauses)

    raise ValueError(f"unknown query mode: {mode!r}")


def build_file_diffs_query(commit_id: str) -> Query:
    return Query(
        f"SELECT * FROM {FILE_DIFFS_TABLE} WHERE commit_id = ? ORDER BY file_path",
        (commit_id,),
        ("commit_id = ?",),
    )


def build_version_counts_query(categories: Sequence[str] = PATCH_TYPE_ORDER) -> Query:
    """Grouped (version, patch_type, count) rows for the statistics series."""
    if not categories:
        raise ValueError("at least one category is required")
    placeholders = ", ".join("?" for _ in categories)
    clauses = (
        "version IS NOT NULL",
        "patch_type IS NOT NULL",
        f"patch_type IN ({placeholders})",
    )
    sql = (
        f"SELECT version, patch_type, COUNT(*) AS commit_count "
        f"FROM {COMMITS_TABLE} "
        f"WHERE {' AND '.join(clauses)} "
        f"GROUP BY version, patch_type "
        f"ORDER BY version"
    )
    log.debug("Version counts query over %d categories", len(categories))
    return Query(sql, tuple(categories), clauses)
