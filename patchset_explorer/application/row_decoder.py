from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from numbers import Integral
from typing import Any, Iterable, Mapping

from ..domain.entities import Commit, FileDiff, VersionCount
from ..domain.errors import RowSchemaError

# Counting fields per table. Everything else passes through untouched.
COMMIT_INT_FIELDS    = ("files_changed", "insertions", "deletions")
FILE_DIFF_INT_FIELDS = ("id", "insertions", "deletions")
COUNT_INT_FIELDS     = ("total", "commit_count")


# ---------------------------------------------------------------------------
# Numeric normalisation
# ---------------------------------------------------------------------------

def to_native_int(value: Any) -> Any:
    """
    Convert an engine wide-integer value (Arrow scalar, numpy integer,
    integral Decimal, int subclass) into a plain Python int. Values that are
    not integers are returned unchanged; a non-integral Decimal is rejected.
    """
    if value is None or type(value) is int:
        return value
    if isinstance(value, bool):
        return value
    if hasattr(value, "as_py"):
        return to_native_int(value.as_py())
    if isinstance(value, Decimal):
        if value != value.to_integral_value():
            raise RowSchemaError(f"expected an integral value, got {value}")
        return int(value)
    if isinstance(value, Integral):
        return int(value)
    return value


def normalize_row(row: Mapping[str, Any], int_fields: Iterable[str]) -> dict[str, Any]:
    """Copy `row`, converting every present counting field to a native int."""
    out = dict(row)
    for name in int_fields:
        if name in out:
            out[name] = to_native_int(out[name])
    return out


# ---------------------------------------------------------------------------
# Record decoders (one boundary function per entity)
# ---------------------------------------------------------------------------

def _require(row: Mapping[str, Any], names: Iterable[str], entity: str) -> None:
    missing = [n for n in names if n not in row]
    if missing:
        raise RowSchemaError(f"{entity} row is missing columns: {', '.join(missing)}")


def _int(row: Mapping[str, Any], name: str, entity: str) -> int:
    value = row[name]
    if type(value) is not int:
        raise RowSchemaError(
            f"{entity}.{name} must be an integer, got {type(value).__name__}"
        )
    return value


def _text(row: Mapping[str, Any], name: str, entity: str) -> str | None:
    value = row[name]
    if value is None or isinstance(value, str):
        return value
    raise RowSchemaError(f"{entity}.{name} must be text, got {type(value).__name__}")


def _iso_date(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise RowSchemaError(f"Commit.date must be a date, got {type(value).__name__}")


def decode_commit(raw: Mapping[str, Any]) -> Commit:
    row = normalize_row(raw, COMMIT_INT_FIELDS)
    _require(row, (
        "commit_id", "author", "date", "message", "files_changed",
        "insertions", "deletions", "version", "component", "patch_type", "tags",
    ), "Commit")

    commit_id = _text(row, "commit_id", "Commit")
    if not commit_id:
        raise RowSchemaError("Commit.commit_id must not be empty")

    return Commit(
        commit_id     = commit_id,
        author        = _text(row, "author", "Commit"),
        date          = _iso_date(row["date"]),
        message       = _text(row, "message", "Commit"),
        files_changed = _int(row, "files_changed", "Commit"),
        insertions    = _int(row, "insertions", "Commit"),
        deletions     = _int(row, "deletions", "Commit"),
        version       = _text(row, "version", "Commit"),
        component     = _text(row, "component", "Commit"),
        patch_type    = _text(row, "patch_type", "Commit"),
        tags          = _text(row, "tags", "Commit"),
    )


def decode_file_diff(raw: Mapping[str, Any]) -> FileDiff:
    row = normalize_row(raw, FILE_DIFF_INT_FIELDS)
    _require(row, ("commit_id", "file_path", "insertions", "deletions", "diff_content"), "FileDiff")

    file_id = row.get("id")
    if file_id is not None and type(file_id) is not int:
        raise RowSchemaError(f"FileDiff.id must be an integer, got {type(file_id).__name__}")

    return FileDiff(
        commit_id    = _text(row, "commit_id", "FileDiff") or "",
        file_path    = _text(row, "file_path", "FileDiff") or "",
        insertions   = _int(row, "insertions", "FileDiff"),
        deletions    = _int(row, "deletions", "FileDiff"),
        diff_content = _text(row, "diff_content", "FileDiff"),
        id           = file_id,
    )


def decode_version_count(raw: Mapping[str, Any]) -> VersionCount:
    row = normalize_row(raw, COUNT_INT_FIELDS)
    _require(row, ("version", "patch_type", "commit_count"), "VersionCount")

    version    = _text(row, "version", "VersionCount")
    patch_type = _text(row, "patch_type", "VersionCount")
    if version is None or patch_type is None:
        raise RowSchemaError("VersionCount.version and patch_type must not be null")

    return VersionCount(
        version    = version,
        patch_type = patch_type,
        count      = _int(row, "commit_count", "VersionCount"),
    )


def decode_total(rows: list[Mapping[str, Any]]) -> int:
    """The scalar of a `SELECT COUNT(*) AS total` query."""
    if len(rows) != 1:
        raise RowSchemaError(f"count query returned {len(rows)} rows, expected 1")
    row = normalize_row(rows[0], COUNT_INT_FIELDS)
    _require(row, ("total",), "Count")
    return _int(row, "total", "Count")
