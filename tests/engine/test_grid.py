"""End-to-end tests for a DataGrid session over the SQL row store."""

import pytest
import pytest_asyncio

from routegrid.engine.errors import StoreUnavailableError
from routegrid.engine.grid import build_grid
from routegrid.engine.row_store import SAMPLE_ROWS


@pytest_asyncio.fixture
async def grid(sql_store, tmp_path):
    await sql_store.seed_default_columns()
    await sql_store.seed_sample_rows()
    return build_grid(
        sql_store,
        user_id="driver-1",
        edit_secret="open-sesame",
        confirm=lambda message: True,
        layout_cache_path=str(tmp_path / "layout.json"),
    )


def _locations(view):
    return [item.row.location for item in view.filtered_rows]


class TestLoading:

    @pytest.mark.asyncio
    async def test_first_view(self, grid):
        view = await grid.load()
        assert view.total_rows == len(SAMPLE_ROWS)
        assert view.filtered_rows[0].display_no == "∞"
        assert view.filtered_rows[0].kilometer == "0.00"
        assert len(view.columns) == 10
        assert grid.layout_state.column_order[0] == "col-id"

    @pytest.mark.asyncio
    async def test_search_filters_rows(self, grid):
        await grid.load()
        grid.set_search("Penang")
        view = await grid.view()
        assert "Penang" in _locations(view)
        assert "Selangor" not in _locations(view)
        grid.clear_filters()
        assert (await grid.view()).total_rows == len(SAMPLE_ROWS)

    @pytest.mark.asyncio
    async def test_trip_exclusion_keeps_depot(self, grid):
        await grid.load()
        grid.toggle_trip_filter("Daily")
        view = await grid.view()
        assert _locations(view)[0] == "QL kitchen"
        assert "Kuala Lumpur" not in _locations(view)


class TestEditing:

    @pytest.mark.asyncio
    async def test_edits_need_edit_mode(self, grid):
        view = await grid.load()
        row_id = view.filtered_rows[1].id

        result = await grid.update_cell(row_id, "delivery", "Tomorrow")
        assert not result.ok

        assert not grid.enter_edit_mode("wrong")
        assert grid.notifier.last.title == "Incorrect password"
        assert grid.enter_edit_mode("open-sesame")

        result = await grid.update_cell(row_id, "delivery", "Tomorrow")
        assert result.ok
        view = await grid.view()
        assert view.filtered_rows[1].row.delivery == "Tomorrow"

    @pytest.mark.asyncio
    async def test_add_columns_get_unique_keys(self, grid):
        await grid.load()
        grid.enter_edit_mode("open-sesame")
        first = await grid.add_column()
        second = await grid.add_column()
        assert first.value.data_key == "newColumn"
        assert second.value.data_key == "newColumn2"

    @pytest.mark.asyncio
    async def test_added_column_is_shown_in_session(self, grid):
        await grid.load()
        grid.enter_edit_mode("open-sesame")
        result = await grid.add_column(name="Extra")
        assert result.ok

        view = await grid.view()
        assert result.value.id in [c.id for c in view.columns]
        assert grid.layout_state.column_order[-1] == result.value.id
        # A drag still sees the new header
        assert (await grid.move_column(len(view.columns) - 1, 0)).ok

    @pytest.mark.asyncio
    async def test_add_row_at_position(self, grid):
        await grid.load()
        grid.enter_edit_mode("open-sesame")
        result = await grid.add_row({"location": "Melaka"}, position=2)
        assert result.ok
        view = await grid.view()
        assert _locations(view)[1] == "Melaka"


class TestOrdering:

    @pytest.mark.asyncio
    async def test_sort_persists_with_depot_first(self, grid):
        await grid.load()
        result = await grid.toggle_sort("location")
        assert result.ok
        view = await grid.view()
        assert _locations(view) == [
            "QL kitchen", "Johor Bahru", "Kota Kinabalu", "Kuala Lumpur", "Penang", "Selangor",
        ]
        assert [item.row.sort_order for item in view.filtered_rows] == list(range(len(SAMPLE_ROWS)))

    @pytest.mark.asyncio
    @pytest.mark.asyncio
    async def test_failed_sort_keeps_previous_indicator(self, grid, sql_store, monkeypatch):
        await grid.load()

        async def unavailable(row_ids):
            raise StoreUnavailableError("backend down")

        monkeypatch.setattr(sql_store, "reorder_rows", unavailable)
        result = await grid.toggle_sort("location")

        assert not result.ok
        assert grid.sort is None
        assert grid.notifier.last.title == "Failed to reorder rows"

    @pytest.mark.asyncio
    async def test_order_sort_needs_a_filter(self, grid):
        await grid.load()
        result = await grid.toggle_sort("order")
        assert not result.ok
        assert grid.sort is None

    @pytest.mark.asyncio
    async def test_drag_row(self, grid):
        await grid.load()
        result = await grid.move_row(0, 1)
        assert result.ok
        view = await grid.view()
        assert _locations(view)[:2] == ["Kuala Lumpur", "QL kitchen"]


class TestColumnLayout:

    @pytest.mark.asyncio
    async def test_hide_column(self, grid):
        await grid.load()
        assert await grid.toggle_column("col-trip")
        view = await grid.view()
        assert "col-trip" not in [c.id for c in view.columns]

    @pytest.mark.asyncio
    async def test_last_visible_column_cannot_be_hidden(self, grid):
        await grid.load()
        columns = await grid.columns()
        assert await grid.customize_columns([columns[0].id], [c.id for c in columns])
        assert not await grid.toggle_column(columns[0].id)
        assert len((await grid.view()).columns) == 1

    @pytest.mark.asyncio
    async def test_layout_survives_new_session(self, grid, sql_store):
        await grid.load()
        await grid.toggle_column("col-alt2")

        other = build_grid(sql_store, user_id="driver-1", edit_secret="open-sesame")
        view = await other.load()
        assert "col-alt2" not in [c.id for c in view.columns]

    @pytest.mark.asyncio
    async def test_reset_columns(self, grid):
        await grid.load()
        await grid.toggle_column("col-alt2")
        assert await grid.reset_columns()
        assert len((await grid.view()).columns) == 10

    @pytest.mark.asyncio
    async def test_drag_column(self, grid, sql_store):
        await grid.load()
        result = await grid.move_column(0, 9)
        assert result.ok
        view = await grid.view()
        assert view.columns[-1].id == "col-id"
        assert (await sql_store.list_columns())[-1].id == "col-id"
