"""Column Registry — core-column protection and default layout."""

from typing import Iterable, Optional

from ..utils.logging import get_logger
from .errors import ProtectedMutationError
from .records import GridColumn

logger = get_logger("engine.columns")

# Data keys the store refuses to delete, whatever the client claims
CORE_DATA_KEYS = frozenset({
    "id", "no", "route", "code", "location", "delivery", "trip",
    "alt1", "alt2", "info", "tngSite", "tngRoute", "images",
})

ROUTE_OPTIONS = ["SL 1", "SL 2", "SL 3", "KL 3", "KL 4", "KL 6", "KL 7"]
TRIP_OPTIONS = ["Daily", "Weekday", "Alt 1", "Alt 2"]

DEFAULT_COLUMNS: list[dict] = [
    {"name": "ID", "dataKey": "id", "type": "text", "isEditable": "false", "options": []},
    {"name": "Route", "dataKey": "route", "type": "select", "isEditable": "true", "options": ROUTE_OPTIONS},
    {"name": "Code", "dataKey": "code", "type": "text", "isEditable": "true", "options": []},
    {"name": "Location", "dataKey": "location", "type": "text", "isEditable": "true", "options": []},
    {"name": "Delivery", "dataKey": "delivery", "type": "text", "isEditable": "true", "options": []},
    {"name": "Trip", "dataKey": "trip", "type": "select", "isEditable": "true", "options": TRIP_OPTIONS},
    {"name": "A1", "dataKey": "alt1", "type": "text", "isEditable": "true", "options": []},
    {"name": "A2", "dataKey": "alt2", "type": "text", "isEditable": "true", "options": []},
    {"name": "Info", "dataKey": "info", "type": "text", "isEditable": "true", "options": []},
    {"name": "Images", "dataKey": "images", "type": "images", "isEditable": "false", "options": []},
]
for _index, _column in enumerate(DEFAULT_COLUMNS):
    _column["id"] = f"col-{_column['dataKey']}"
    _column["sortOrder"] = _index


def default_order(columns: Iterable[GridColumn]) -> list[GridColumn]:
    """Columns sorted by persisted sortOrder ascending (stable)."""
    return sorted(columns, key=lambda c: c.sort_order)


def default_visible_ids(columns: Iterable[GridColumn]) -> list[str]:
    """Every column starts visible, core columns included."""
    return [c.id for c in default_order(columns)]


class ColumnRegistry:
    """Answers which columns are protected and what the default layout is.

    Core identity is the column id. When no explicit id set is given, the
    protected ids are derived from the columns whose dataKey is a core key.
    """

    def __init__(self, columns: Iterable[GridColumn], core_ids: Optional[Iterable[str]] = None):
        self._columns = list(columns)
        if core_ids is None:
            core_ids = [c.id for c in self._columns if c.data_key in CORE_DATA_KEYS]
        self._core_ids = frozenset(core_ids)

    @property
    def columns(self) -> list[GridColumn]:
        return list(self._columns)

    @property
    def core_ids(self) -> frozenset[str]:
        return self._core_ids

    def is_core_column(self, column: GridColumn) -> bool:
        return column.id in self._core_ids

    def can_hide(self, column: GridColumn, current_visible_count: int, is_visible: bool = True) -> bool:
        if self.is_core_column(column) and is_visible and current_visible_count <= 1:
            return False
        return True

    def default_order(self) -> list[GridColumn]:
        return default_order(self._columns)

    def default_visible_ids(self) -> list[str]:
        return default_visible_ids(self._columns)

    def toggle_visibility(self, visible_ids: Iterable[str], column: GridColumn) -> list[str]:
        """Show a hidden column or hide a visible one.

        Hiding is refused when it would leave no visible column.
        """
        known = {c.id for c in self._columns}
        visible = [cid for cid in visible_ids if cid in known]

        if column.id not in visible:
            return visible + [column.id]

        if not self.can_hide(column, len(visible), is_visible=True) or len(visible) <= 1:
            logger.info("column_hide_rejected", column_id=column.id, visible=len(visible))
            raise ProtectedMutationError(
                f"Cannot hide '{column.name}': at least one column must remain visible"
            )
        return [cid for cid in visible if cid != column.id]
