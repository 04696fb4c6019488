from __future__ import annotations
import functools
import re
from typing import Iterable, Sequence

from ..domain.entities import PATCH_TYPE_ORDER, VersionAggregate, VersionCount

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _component(part: str) -> int:
    # Leading digits count ("19-rc1" is 19); anything else is 0.
    match = _LEADING_INT.match(part)
    return int(match.group(1)) if match else 0


def parse_version(version: str) -> tuple[int, int, int]:
    """Major, minor and patch of a dotted version; missing parts are 0."""
    parts = [_component(p) for p in version.split(".")[:3]]
    parts += [0] * (3 - len(parts))
    return parts[0], parts[1], parts[2]


def compare_versions(a: str, b: str) -> int:
    """Negative, zero or positive as `a` orders before, with or after `b`."""
    va, vb = parse_version(a), parse_version(b)
    return (va > vb) - (va < vb)


def reduce_version_counts(
    rows: Iterable[VersionCount],
    categories: Sequence[str] = PATCH_TYPE_ORDER,
) -> list[VersionAggregate]:
    """
    Fold (version, patch_type, count) rows into one aggregate per distinct
    version string, with a count for every category (0 when unseen) and the
    sum as total. Versions are ordered with compare_versions; versions that
    compare equal keep their input order.
    """
    counts: dict[str, dict[str, int]] = {}

    for row in rows:
        if row.patch_type not in categories:
            continue
        per_version = counts.setdefault(row.version, {c: 0 for c in categories})
        per_version[row.patch_type] += row.count

    aggregates = [
        VersionAggregate(version=version, counts=per_version, total=sum(per_version.values()))
        for version, per_version in counts.items()
    ]
    return sorted(aggregates, key=functools.cmp_to_key(lambda x, y: compare_versions(x.version, y.version)))


def category_totals(
    aggregates: Iterable[VersionAggregate],
    categories: Sequence[str] = PATCH_TYPE_ORDER,
) -> dict[str, int]:
    """Sum of every category across all versions."""
    totals = {c: 0 for c in categories}
    for aggregate in aggregates:
        for c in categories:
            totals[c] += aggregate.count(c)
    return totals
