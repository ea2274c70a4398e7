"""Sorting — tri-state column sort and order merging helpers.

Text columns compare case- and accent-insensitively: the primary key is
the NFKD-decomposed, combining-mark-stripped casefold, then the casefold,
then the raw string. So "apple" sorts before "Banana" and "école" sits
next to "ecole" with a deterministic tie-break.
"""

import unicodedata
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Sequence

ASC = "asc"
DESC = "desc"

TEXT_SORT_COLUMNS = ("route", "trip", "location")
SORTABLE_COLUMNS = ("route", "code", "location", "trip", "kilometer", "order")


@dataclass(frozen=True)
class SortState:
    column: str
    direction: str = ASC

    def __post_init__(self):
        if self.column not in SORTABLE_COLUMNS:
            raise ValueError(f"Column '{self.column}' is not sortable")
        if self.direction not in (ASC, DESC):
            raise ValueError(f"Invalid sort direction '{self.direction}'")


def available_sort_columns(is_filtered: bool) -> tuple[str, ...]:
    """The order ("no") column is only offered while a filter is active."""
    if is_filtered:
        return SORTABLE_COLUMNS
    return tuple(c for c in SORTABLE_COLUMNS if c != "order")


def toggle_sort(current: Optional[SortState], column: str) -> Optional[SortState]:
    """None -> asc -> desc -> None. A different column restarts at asc."""
    if current is None or current.column != column:
        return SortState(column, ASC)
    if current.direction == ASC:
        return SortState(column, DESC)
    return None


def text_key(value: Any) -> tuple[str, str, str]:
    raw = "" if value is None else str(value)
    folded = raw.casefold()
    stripped = "".join(
        ch for ch in unicodedata.normalize("NFKD", folded) if not unicodedata.combining(ch)
    )
    return stripped, folded, raw


def code_key(value: Any) -> tuple:
    raw = ("" if value is None else str(value)).strip()
    try:
        return 0, int(raw), text_key(raw)
    except ValueError:
        return 1, 0, text_key(raw)


def number_key(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number or number in (float("inf"), float("-inf")):
        return 0.0
    return number


def _row_of(item):
    return getattr(item, "row", item)


def sort_key(column: str) -> Callable[[Any], Any]:
    """Key function for a sortable column. Accepts rows or annotated rows."""
    if column in TEXT_SORT_COLUMNS:
        return lambda item: text_key(getattr(_row_of(item), column))
    if column == "code":
        return lambda item: code_key(_row_of(item).code)
    if column == "kilometer":
        return lambda item: number_key(getattr(item, "kilometer", None))
    if column == "order":
        return lambda item: _row_of(item).no
    raise ValueError(f"Column '{column}' is not sortable")


def sort_rows(rows: Iterable, state: Optional[SortState]) -> list:
    """Stable sort. ``None`` keeps the incoming (persisted) order."""
    rows = list(rows)
    if state is None:
        return rows
    return sorted(rows, key=sort_key(state.column), reverse=state.direction == DESC)


def merge_subsequence(full_ids: Sequence[str], reordered_subset: Sequence[str]) -> list[str]:
    """Write a reordered subset back into the slots its members hold in ``full_ids``."""
    subset = list(reordered_subset)
    members = set(subset)
    if len(members) != len(subset):
        raise ValueError("Reordered subset contains duplicate ids")
    missing = members.difference(full_ids)
    if missing:
        raise ValueError(f"Ids not in the full sequence: {', '.join(sorted(missing))}")

    replacements = iter(subset)
    return [next(replacements) if item_id in members else item_id for item_id in full_ids]


def move_item(ids: Sequence[str], source_index: int, dest_index: int) -> list[str]:
    """Result of a drag from ``source_index`` to ``dest_index``."""
    result = list(ids)
    if not 0 <= source_index < len(result):
        raise IndexError(f"Source index {source_index} out of range")
    dest_index = max(0, min(dest_index, len(result) - 1))
    item = result.pop(source_index)
    result.insert(dest_index, item)
    return result
