"""Data Grid session — ephemeral view state over cached collections.

One DataGrid corresponds to one open grid page: search, filters, sort and
the paginator live here and are discarded with it. Rows and columns are
fetched through a TTLCache that every successful mutation clears.
"""

from typing import Iterable, Optional

from ..auth.edit_session import EditSession, StaticSecretChecker
from ..utils.cache import TTLCache
from ..utils.logging import get_logger
from .columns import ColumnRegistry
from .composer import GridView, ViewState, compose
from .errors import GridError
from .layout import LayoutPreferences, LayoutState, LocalLayoutCache
from .mutations import ConfirmFn, MutationCoordinator, MutationResult
from .notifications import Notifier
from .pagination import PAGE_SIZE_OPTIONS, Paginator
from .records import DEFAULT_DEPOT_LOCATION, GridColumn, GridRow
from .sorting import SortState, available_sort_columns, merge_subsequence, move_item
from .sorting import toggle_sort as next_sort_state

logger = get_logger("engine.grid")

_ROWS_KEY = "rows"
_COLUMNS_KEY = "columns"


class DataGrid:
    """Interactive grid over a row store."""

    def __init__(
        self,
        store,
        coordinator: MutationCoordinator,
        layout: LayoutPreferences,
        edit_session: EditSession,
        depot_location: str = DEFAULT_DEPOT_LOCATION,
        page_size: int = PAGE_SIZE_OPTIONS[0],
        page_size_options: Iterable[int] = PAGE_SIZE_OPTIONS,
        cache_ttl: float = 300.0,
    ):
        self._store = store
        self._coordinator = coordinator
        self._layout = layout
        self._edit_session = edit_session
        self._depot_location = depot_location
        self._cache = TTLCache(default_ttl=cache_ttl, max_entries=8)
        self._paginator = Paginator(page_size, tuple(page_size_options))

        self._search_term = ""
        self._route_filter: set[str] = set()
        self._trip_filter: set[str] = set()
        self._sort: Optional[SortState] = None

        coordinator.set_on_invalidate(self.invalidate)

    # --- Accessors ---

    @property
    def coordinator(self) -> MutationCoordinator:
        return self._coordinator

    @property
    def notifier(self) -> Notifier:
        return self._coordinator.notifier

    @property
    def edit_session(self) -> EditSession:
        return self._edit_session

    @property
    def paginator(self) -> Paginator:
        return self._paginator

    @property
    def sort(self) -> Optional[SortState]:
        return self._sort

    @property
    def layout_state(self) -> Optional[LayoutState]:
        return self._layout.state

    @property
    def view_state(self) -> ViewState:
        layout = self._layout.state
        return ViewState(
            search_term=self._search_term,
            route_filter=set(self._route_filter),
            trip_filter=set(self._trip_filter),
            sort=self._sort,
            visible_columns=list(layout.column_visibility) if layout else None,
            column_order=list(layout.column_order) if layout else None,
            page=self._paginator.page,
            page_size=self._paginator.page_size,
        )

    # --- Collections ---

    async def rows(self) -> list[GridRow]:
        return await self._cache.get_or_compute(_ROWS_KEY, self._store.list_rows)

    async def columns(self) -> list[GridColumn]:
        return await self._cache.get_or_compute(_COLUMNS_KEY, self._store.list_columns)

    def invalidate(self) -> None:
        """Drop both collections; the next read refetches them wholesale."""
        self._cache.clear()

    async def load(self) -> GridView:
        """Fetch collections and the user's layout, then compose the first view."""
        columns = await self.columns()
        await self._layout.load(columns)
        logger.info("grid_loaded", user_id=self._layout.user_id, columns=len(columns))
        return await self.view()

    async def refresh(self) -> GridView:
        self.invalidate()
        return await self.load()

    async def view(self) -> GridView:
        rows = await self.rows()
        columns = await self.columns()
        self._layout.reconcile(columns)
        result = compose(rows, columns, self.view_state, self._depot_location)
        self._paginator.sync_row_count(result.total_rows)
        if self._paginator.page != result.controls.page:
            result = compose(rows, columns, self.view_state, self._depot_location)
        return result

    # --- Search and filters ---

    def set_search(self, term: str) -> None:
        self._search_term = term or ""

    def set_route_filter(self, routes: Iterable[str]) -> None:
        self._route_filter = {r for r in routes if r}

    def toggle_route_filter(self, route: str) -> None:
        self._route_filter ^= {route}

    def set_trip_filter(self, trips: Iterable[str]) -> None:
        self._trip_filter = {t for t in trips if t}

    def toggle_trip_filter(self, trip: str) -> None:
        self._trip_filter ^= {trip}

    def clear_filters(self) -> None:
        self._search_term = ""
        self._route_filter = set()
        self._trip_filter = set()
        if self._sort is not None and self._sort.column == "order":
            self._sort = None

    # --- Sorting and pagination ---

    async def toggle_sort(self, column: str) -> MutationResult:
        """Advance the tri-state sort; an asc/desc state is persisted as the row order."""
        state = self.view_state
        if column not in available_sort_columns(state.is_filtered):
            self.notifier.error("Cannot sort", f"Column '{column}' is not sortable here")
            return MutationResult(ok=False)

        previous = self._sort
        self._sort = next_sort_state(previous, column)
        if self._sort is None:
            return MutationResult(ok=True)

        current = await self.view()
        full_ids = [r.id for r in sorted(await self.rows(), key=lambda r: r.sort_order)]
        result = await self._coordinator.apply_sort(current.filtered_rows, full_ids, self._sort)
        if not result.ok:
            # The header must not advertise an order that was never stored
            self._sort = previous
        return result

    def set_page_size(self, page_size: int) -> None:
        self._paginator.set_page_size(page_size)

    def go_to_page(self, page: int) -> int:
        return self._paginator.go_to(page)

    # --- Edit mode ---

    def enter_edit_mode(self, secret: str) -> bool:
        if self._edit_session.request_edit(secret):
            self.notifier.success("Edit mode enabled")
            return True
        self.notifier.error("Incorrect password")
        return False

    def exit_edit_mode(self) -> None:
        self._edit_session.exit_edit()

    # --- Row gestures and edits ---

    async def move_row(self, source_index: int, dest_index: int) -> MutationResult:
        """Drag within the current page, persisted as one full reorder."""
        current = await self.view()
        view_ids = [item.id for item in current.rows]
        full_ids = [r.id for r in sorted(await self.rows(), key=lambda r: r.sort_order)]
        return await self._coordinator.move_row(view_ids, full_ids, source_index, dest_index)

    async def update_cell(self, row_id: str, data_key: str, value) -> MutationResult:
        current = next((r for r in await self.rows() if r.id == row_id), None)
        return await self._coordinator.update_row(row_id, {data_key: value}, current=current)

    async def add_row(self, data: Optional[dict] = None, position: Optional[int] = None) -> MutationResult:
        return await self._coordinator.create_row(data, position)

    async def add_column(self, name: Optional[str] = None, column_type: str = "text") -> MutationResult:
        return await self._coordinator.create_column(
            name=name, column_type=column_type, existing=await self.columns()
        )

    # --- Column layout ---

    async def customize_columns(self, visible_ids: Iterable[str], order: Iterable[str]) -> bool:
        try:
            await self._layout.apply(visible_ids, order, await self.columns())
        except GridError as e:
            self.notifier.error("Failed to save layout", e.message)
            return False
        return True

    async def toggle_column(self, column_id: str) -> bool:
        columns = await self.columns()
        column = next((c for c in columns if c.id == column_id), None)
        if column is None:
            self.notifier.error("Column not found", column_id)
            return False

        registry = ColumnRegistry(columns)
        state = self._layout.reconcile(columns) or await self._layout.load(columns)
        try:
            visible = registry.toggle_visibility(state.column_visibility, column)
        except GridError as e:
            self.notifier.error("Cannot hide column", e.message)
            return False
        return await self.customize_columns(visible, state.column_order)

    async def reset_columns(self) -> bool:
        try:
            await self._layout.reset(await self.columns())
        except GridError as e:
            self.notifier.error("Failed to reset layout", e.message)
            return False
        return True

    async def move_column(self, source_index: int, dest_index: int) -> MutationResult:
        """Drag among the visible headers; persists the shared column order and the user's layout."""
        current = await self.view()
        visible_ids = [c.id for c in current.columns]
        state = self._layout.state or await self._layout.load(await self.columns())
        try:
            moved = move_item(visible_ids, source_index, dest_index)
            order = merge_subsequence(state.column_order, moved)
        except (IndexError, ValueError) as e:
            self.notifier.error("Cannot move column", str(e))
            return MutationResult(ok=False)

        result = await self._coordinator.reorder_columns(order)
        if result.ok:
            await self.customize_columns(state.column_visibility, order)
        return result

    async def save_footer(self, creator_name: Optional[str], creator_url: Optional[str]) -> bool:
        try:
            await self._layout.save_footer(creator_name, creator_url)
        except GridError as e:
            self.notifier.error("Failed to save footer", e.message)
            return False
        return True


def build_grid(
    store,
    user_id: str,
    edit_secret: str,
    confirm: Optional[ConfirmFn] = None,
    layout_cache_path: Optional[str] = None,
    depot_location: str = DEFAULT_DEPOT_LOCATION,
    page_size: int = PAGE_SIZE_OPTIONS[0],
    page_size_options: Iterable[int] = PAGE_SIZE_OPTIONS,
    cache_ttl: float = 300.0,
    notifier: Optional[Notifier] = None,
) -> DataGrid:
    """Wire a DataGrid with its edit session, coordinator and layout preferences."""
    edit_session = EditSession(StaticSecretChecker(edit_secret))
    coordinator = MutationCoordinator(
        store,
        edit_session=edit_session,
        notifier=notifier,
        confirm=confirm,
        depot_location=depot_location,
    )
    cache = LocalLayoutCache(layout_cache_path) if layout_cache_path else None
    layout = LayoutPreferences(store, cache, user_id)
    return DataGrid(
        store,
        coordinator,
        layout,
        edit_session,
        depot_location=depot_location,
        page_size=page_size,
        page_size_options=page_size_options,
        cache_ttl=cache_ttl,
    )
