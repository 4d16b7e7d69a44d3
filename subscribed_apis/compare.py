from collections import Counter
from typing import Any, Dict, Iterable, List

from .models import ApplicationApis


def _freeze(obj: Any):
    """Hashable form of nested dicts/lists so they can be counted"""
    if isinstance(obj, dict):
        return tuple(sorted((k, _freeze(v)) for k, v in obj.items()))
    if isinstance(obj, (list, tuple)):
        return tuple(_freeze(v) for v in obj)
    return obj


def _rows_by_id(rows: Iterable[ApplicationApis]) -> Dict[Any, List[ApplicationApis]]:
    by_id: Dict[Any, List[ApplicationApis]] = {}
    for row in rows:
        by_id.setdefault(_freeze(row.id), []).append(row)
    return by_id


def _same_row(row1: ApplicationApis, row2: ApplicationApis) -> bool:
    # The order of matched subscriptions is not fixed, so apis compare as multisets
    return (row1.name == row2.name
            and Counter(_freeze(a) for a in row1.apis) == Counter(_freeze(a) for a in row2.apis))


def compare_reports(left: Iterable[ApplicationApis], right: Iterable[ApplicationApis]) -> List[Any]:
    """Return the application ids whose rows differ between two reports.

    Rows are matched by id; an id present in only one report, or present a
    different number of times, counts as a difference.
    """
    left_by_id = _rows_by_id(left)
    right_by_id = _rows_by_id(right)

    differing = []
    for key in list(left_by_id) + [k for k in right_by_id if k not in left_by_id]:
        rows1 = left_by_id.get(key, [])
        rows2 = right_by_id.get(key, [])
        if len(rows1) != len(rows2) or not all(_same_row(r1, r2) for r1, r2 in zip(rows1, rows2)):
            differing.append((rows1 or rows2)[0].id)
    return differing
