"""View Composer — derives the rendered grid from rows, columns and view state.

The composer always renders rows in persisted ``sortOrder``. Sorting is a
durable reorder performed through the mutation coordinator, so the sort
state carried here only drives the header indicator and the list of
sortable columns.

Distances come in two modes. Without filters every row shows its direct
distance from the depot. With any filter active the rows are walked in
display order and each shows the running route length from the depot.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .columns import default_order
from .distance import coordinates_of, haversine
from .pagination import PageControls, clamp_page, page_controls, page_slice, total_pages
from .records import DEFAULT_DEPOT_LOCATION, GridColumn, GridRow
from .sorting import SortState, available_sort_columns, text_key

UNKNOWN_DISTANCE = "—"
DEPOT_DISPLAY_NO = "∞"
CURRENCY_TOTAL_KEYS = ("tngRoute", "destination", "tollPrice")

_AMOUNT_RE = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?")


@dataclass
class ViewState:
    search_term: str = ""
    route_filter: set[str] = field(default_factory=set)
    trip_filter: set[str] = field(default_factory=set)
    sort: Optional[SortState] = None
    visible_columns: Optional[list[str]] = None
    column_order: Optional[list[str]] = None
    page: int = 1
    page_size: int = 16

    @property
    def is_filtered(self) -> bool:
        return bool(self.search_term.strip() or self.route_filter or self.trip_filter)


@dataclass
class AnnotatedRow:
    row: GridRow
    kilometer: str = UNKNOWN_DISTANCE
    distance_km: Optional[float] = None
    segment_distance: float = 0.0
    display_no: str = ""

    @property
    def id(self) -> str:
        return self.row.id

    def to_dict(self) -> dict:
        data = self.row.to_dict()
        data["kilometer"] = self.kilometer
        data["segmentDistance"] = self.segment_distance
        data["displayNo"] = self.display_no
        return data


@dataclass
class RowStatistics:
    row_count: int
    total_quantity: int
    image_count: int

    def to_dict(self) -> dict:
        return {
            "rowCount": self.row_count,
            "totalQuantity": self.total_quantity,
            "imageCount": self.image_count,
        }


@dataclass
class GridView:
    columns: list[GridColumn]
    rows: list[AnnotatedRow]
    filtered_rows: list[AnnotatedRow]
    totals: dict[str, Optional[str]]
    controls: PageControls
    statistics: RowStatistics
    route_options: list[str]
    trip_options: list[str]
    is_filtered: bool
    sort: Optional[SortState]
    sortable_columns: tuple[str, ...]

    @property
    def total_rows(self) -> int:
        return len(self.filtered_rows)

    def to_dict(self) -> dict:
        return {
            "columns": [c.to_dict() for c in self.columns],
            "rows": [r.to_dict() for r in self.rows],
            "totalRows": self.total_rows,
            "totals": dict(self.totals),
            "pagination": self.controls.to_dict(),
            "statistics": self.statistics.to_dict(),
            "routeOptions": list(self.route_options),
            "tripOptions": list(self.trip_options),
            "isFiltered": self.is_filtered,
            "sort": (
                {"column": self.sort.column, "direction": self.sort.direction}
                if self.sort else None
            ),
            "sortableColumns": list(self.sortable_columns),
        }


# --- Columns ---

def project_columns(
    columns: Sequence[GridColumn],
    order: Optional[Iterable[str]],
    visible: Optional[Iterable[str]],
) -> list[GridColumn]:
    """Ordered, visibility-filtered columns. Never returns an empty list
    while any column exists."""
    by_id = {c.id: c for c in columns}
    if order is None:
        ordered = default_order(columns)
    else:
        ordered = [by_id[cid] for cid in dict.fromkeys(order) if cid in by_id]

    if visible is None:
        projected = ordered
    else:
        shown = set(visible)
        projected = [c for c in ordered if c.id in shown]

    if not projected:
        return default_order(columns)
    return projected


# --- Rows ---

def matches_search(row: GridRow, term: str) -> bool:
    """Case-insensitive substring match of the raw term; blank terms match all."""
    if not term.strip():
        return True
    needle = term.casefold()
    return any(needle in value.casefold() for value in row.search_text())


def filter_rows(
    rows: Iterable[GridRow],
    search_term: str = "",
    route_filter: Optional[Iterable[str]] = None,
    trip_filter: Optional[Iterable[str]] = None,
) -> list[GridRow]:
    """Search (any field) AND route inclusion AND trip exclusion."""
    routes = set(route_filter or ())
    trips = set(trip_filter or ())
    return [
        row for row in rows
        if matches_search(row, search_term)
        and (not routes or row.route in routes)
        and (not trips or row.trip not in trips)
    ]


def find_depot(rows: Iterable[GridRow], depot_location: str = DEFAULT_DEPOT_LOCATION) -> Optional[GridRow]:
    for row in rows:
        if row.is_depot(depot_location):
            return row
    return None


def pin_depot(
    filtered: list[GridRow],
    depot: Optional[GridRow],
    search_term: str,
) -> list[GridRow]:
    """Move the depot to the front of a filtered result.

    Only the search predicate decides whether the depot is shown; route and
    trip filters never hide it.
    """
    if depot is None:
        return filtered
    rest = [row for row in filtered if row.id != depot.id]
    if matches_search(depot, search_term):
        return [depot] + rest
    return rest


def annotate_distances(
    rows: Sequence[GridRow],
    depot: Optional[GridRow],
    filtered: bool,
    depot_location: str = DEFAULT_DEPOT_LOCATION,
) -> list[AnnotatedRow]:
    """Every depot occurrence shows 0.00 and restarts the running total."""
    depot_coords = coordinates_of(depot) if depot is not None else None
    annotated: list[AnnotatedRow] = []

    previous = depot_coords
    cumulative = 0.0
    for row in rows:
        if depot is not None and row.is_depot(depot_location):
            cumulative = 0.0
            previous = depot_coords
            annotated.append(AnnotatedRow(row=row, kilometer="0.00", distance_km=0.0))
            continue

        coords = coordinates_of(row)
        if depot_coords is None or coords is None:
            annotated.append(AnnotatedRow(row=row))
            continue

        if filtered:
            segment = haversine(previous[0], previous[1], coords[0], coords[1])
            cumulative += segment
            previous = coords
            distance = cumulative
        else:
            segment = haversine(depot_coords[0], depot_coords[1], coords[0], coords[1])
            distance = segment
        annotated.append(AnnotatedRow(
            row=row,
            kilometer=f"{distance:.2f}",
            distance_km=distance,
            segment_distance=segment,
        ))
    return annotated


def assign_display_numbers(rows: Iterable[AnnotatedRow], depot_location: str = DEFAULT_DEPOT_LOCATION) -> None:
    """Depot shows the infinity sign, every other row its 1-based position."""
    sequence = 0
    for item in rows:
        if item.row.is_depot(depot_location):
            item.display_no = DEPOT_DISPLAY_NO
        else:
            sequence += 1
            item.display_no = str(sequence)


# --- Footer and statistics ---

def parse_amount(value) -> float:
    """Leading numeric part of a money string; anything unparsable is 0."""
    if value is None:
        return 0.0
    text = str(value).strip().replace(",", "")
    if text[:2].upper() == "RM":
        text = text[2:].strip()
    match = _AMOUNT_RE.match(text)
    return float(match.group(0)) if match else 0.0


def format_currency(amount: float) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}RM{abs(amount):,.2f}"


def column_totals(columns: Iterable[GridColumn], rows: Sequence[GridRow]) -> dict[str, Optional[str]]:
    totals: dict[str, Optional[str]] = {}
    for column in columns:
        if column.data_key == "no":
            totals[column.id] = f"{sum(row.no or 0 for row in rows):,}"
        elif column.type == "currency" and column.data_key in CURRENCY_TOTAL_KEYS:
            amount = sum(parse_amount(row.value(column.data_key)) for row in rows)
            totals[column.id] = format_currency(amount)
        else:
            totals[column.id] = None
    return totals


def row_statistics(rows: Sequence[GridRow]) -> RowStatistics:
    return RowStatistics(
        row_count=len(rows),
        total_quantity=sum(row.no or 0 for row in rows),
        image_count=sum(len(row.images) for row in rows),
    )


def _distinct(values: Iterable[str]) -> list[str]:
    return sorted({v for v in values if v}, key=text_key)


# --- Composition ---

def compose(
    rows: Iterable[GridRow],
    columns: Sequence[GridColumn],
    state: ViewState,
    depot_location: str = DEFAULT_DEPOT_LOCATION,
) -> GridView:
    """Derive the full grid view for one render pass."""
    ordered = sorted(rows, key=lambda r: r.sort_order)
    is_filtered = state.is_filtered

    filtered = filter_rows(ordered, state.search_term, state.route_filter, state.trip_filter)
    depot = find_depot(ordered, depot_location)
    if is_filtered:
        filtered = pin_depot(filtered, depot, state.search_term)

    annotated = annotate_distances(filtered, depot, is_filtered, depot_location)
    assign_display_numbers(annotated, depot_location)

    pages = total_pages(len(annotated), state.page_size)
    page = clamp_page(state.page, pages)
    visible_columns = project_columns(columns, state.column_order, state.visible_columns)
    filtered_rows = [item.row for item in annotated]

    return GridView(
        columns=visible_columns,
        rows=page_slice(annotated, page, state.page_size),
        filtered_rows=annotated,
        totals=column_totals(visible_columns, filtered_rows),
        controls=page_controls(page, pages),
        statistics=row_statistics(filtered_rows),
        route_options=_distinct(row.route for row in ordered),
        trip_options=_distinct(row.trip for row in ordered),
        is_filtered=is_filtered,
        sort=state.sort,
        sortable_columns=available_sort_columns(is_filtered),
    )
