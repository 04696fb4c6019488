from __future__ import annotations
from dataclasses import dataclass, field, fields
from datetime import date

from .errors import InvalidCriteriaError

PAGE_SIZE = 10

COMMITS_TABLE      = "commits"
FILE_DIFFS_TABLE   = "commit_file_diffs"

# logical file name → table it is loaded into
DATASET_FILES = {
    "ext4-commits.parquet":      COMMITS_TABLE,
    "ext4-commits-code.parquet": FILE_DIFFS_TABLE,
}


@dataclass(frozen=True)
class Component:
    name:        str
    description: str


COMPONENTS = (
    Component("balloc", "Data-block allocation and deallocation"),
    Component("dir",    "Directory management"),
    Component("extent", "Contiguous-blocks mapping"),
    Component("file",   "File read/write operations"),
    Component("inode",  "Inode-metadata management"),
    Component("trans",  "Journaling or transactional support"),
    Component("super",  "Superblock metadata management"),
    Component("tree",   "Generic tree-structure procedures"),
    Component("other",  "Other miscellaneous operations"),
)

PATCH_TYPES = ("feature", "bug", "performance", "maintenance", "reliability")

# category order of the statistics series
PATCH_TYPE_ORDER = ("performance", "feature", "bug", "maintenance", "reliability")


@dataclass(frozen=True)
class Commit:
    """
    Immutable record of one row of the `commits` table.

    `date` is kept as an ISO-8601 string so that it orders the same way
    the query layer compares it. `tags` is the raw comma-separated label
    string; splitting it is a presentation concern.
    """
    commit_id:     str
    author:        str | None
    date:          str | None
    message:       str | None
    files_changed: int
    insertions:    int
    deletions:     int
    version:       str | None
    component:     str | None
    patch_type:    str | None
    tags:          str | None


@dataclass(frozen=True)
class FileDiff:
    """One file touched by a commit, from the `commit_file_diffs` table."""
    commit_id:    str
    file_path:    str
    insertions:   int
    deletions:    int
    diff_content: str | None
    id:           int | None = None

    @property
    def key(self) -> int | str:
        """Identity used for per-file expand/collapse state."""
        return self.id if self.id is not None else self.file_path


@dataclass(frozen=True)
class FilterCriteria:
    """
    Value object describing one search. Every field is optional; an empty
    field means "no constraint". Text fields are trimmed so that criteria
    differing only in surrounding whitespace compare equal and build the
    same query.
    """
    keyword:    str = ""
    start_date: str = ""
    end_date:   str = ""
    version:    str = ""
    component:  str = ""
    patch_type: str = ""
    file_name:  str = ""

    def __post_init__(self) -> None:
        for f in fields(self):
            name  = f.name
            value = getattr(self, name)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise InvalidCriteriaError(f"{name} must be a string, got {type(value).__name__}")
            object.__setattr__(self, name, value.strip())

        for name in ("start_date", "end_date"):
            value = getattr(self, name)
            if not value:
                continue
            try:
                parsed = date.fromisoformat(value)
            except ValueError as exc:
                raise InvalidCriteriaError(f"{name} is not an ISO-8601 date: {value!r}") from exc
            object.__setattr__(self, name, parsed.isoformat())

    def is_empty(self) -> bool:
        return self == FilterCriteria()


@dataclass(frozen=True)
class VersionCount:
    """One grouped row: how many commits of `patch_type` landed in `version`."""
    version:    str
    patch_type: str
    count:      int


@dataclass(frozen=True)
class VersionAggregate:
    """Per-version category vector of the statistics series."""
    version: str
    counts:  dict[str, int] = field(default_factory=dict)
    total:   int = 0

    def count(self, patch_type: str) -> int:
        return self.counts.get(patch_type, 0)


@dataclass(frozen=True)
class OperationFailure:
    """A per-operation failure handed to the presentation layer."""
    operation: str
    message:   str


@dataclass(frozen=True)
class PageSnapshot:
    """
    What the presentation layer sees after every search/navigate/clear.
    """
    rows:        tuple[Commit, ...]
    total:       int
    page:        int
    total_pages: int
    busy:        bool
    criteria:    FilterCriteria = field(default_factory=FilterCriteria)
    error:       OperationFailure | None = None


@dataclass(frozen=True)
class DetailResult:
    """File changes of one commit, or the failure that prevented loading them."""
    commit_id: str
    rows:      tuple[FileDiff, ...] = ()
    error:     OperationFailure | None = None


@dataclass(frozen=True)
class StatisticsResult:
    aggregates: tuple[VersionAggregate, ...] = ()
    totals:     dict[str, int] = field(default_factory=dict)
    error:      OperationFailure | None = None


@dataclass(frozen=True)
class SessionStatus:
    """Three-state readiness signal: loading, ready, or failed with an error."""
    ready:   bool
    loading: bool
    error:   str | None = None
