"""Tests for the MutationCoordinator — gating, confirmation, pending state, notifications."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from routegrid.auth.edit_session import EditSession, StaticSecretChecker
from routegrid.engine.errors import NotFoundError, StoreUnavailableError
from routegrid.engine.mutations import MutationCoordinator, unique_data_key
from routegrid.engine.records import GridColumn, GridRow
from routegrid.engine.sorting import SortState


def _session(editing=True):
    session = EditSession(StaticSecretChecker("pw"))
    if editing:
        session.request_edit("pw")
    return session


def _coordinator(store=None, editing=True, confirm=lambda message: True):
    store = store or AsyncMock()
    invalidate = MagicMock()
    coordinator = MutationCoordinator(
        store, _session(editing), confirm=confirm, on_invalidate=invalidate
    )
    return coordinator, store, invalidate


class TestGating:

    @pytest.mark.asyncio
    async def test_edit_requires_edit_mode(self):
        coordinator, store, invalidate = _coordinator(editing=False)
        result = await coordinator.update_row("r1", {"location": "X"})
        assert not result.ok
        store.update_row.assert_not_called()
        invalidate.assert_not_called()
        assert coordinator.notifier.last.title == "Cannot update row"
        assert coordinator.notifier.last.variant == "destructive"

    @pytest.mark.asyncio
    async def test_reorder_is_not_gated(self):
        coordinator, store, invalidate = _coordinator(editing=False)
        result = await coordinator.reorder_rows(["b", "a"])
        assert result.ok
        store.reorder_rows.assert_awaited_once_with(["b", "a"])
        invalidate.assert_called_once()

    @pytest.mark.asyncio
    async def test_depot_number_is_read_only(self):
        coordinator, store, _ = _coordinator()
        depot = GridRow(id="d", location="QL kitchen")
        result = await coordinator.update_row("d", {"no": 4}, current=depot)
        assert not result.ok
        store.update_row.assert_not_called()

    @pytest.mark.asyncio
    async def test_depot_other_fields_editable(self):
        coordinator, store, _ = _coordinator()
        depot = GridRow(id="d", location="QL kitchen")
        result = await coordinator.update_row("d", {"delivery": "Back gate"}, current=depot)
        assert result.ok
        store.update_row.assert_awaited_once_with("d", {"delivery": "Back gate"})


class TestDeletes:

    @pytest.mark.asyncio
    async def test_core_column_delete_rejected(self):
        store = AsyncMock()
        store.get_column.return_value = GridColumn(id="col-route", name="Route", data_key="route")
        coordinator, store, invalidate = _coordinator(store)

        result = await coordinator.delete_column("col-route")

        assert not result.ok
        store.delete_column.assert_not_called()
        invalidate.assert_not_called()

    @pytest.mark.asyncio
    async def test_column_delete_declined(self):
        coordinator, store, _ = _coordinator(confirm=lambda message: False)
        column = GridColumn(id="c9", name="Notes", data_key="notes")
        result = await coordinator.delete_column(column)
        assert result.declined
        store.delete_column.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_without_confirm_callback_is_declined(self):
        coordinator, store, _ = _coordinator(confirm=None)
        result = await coordinator.delete_row("r1")
        assert result.declined
        store.delete_row.assert_not_called()

    @pytest.mark.asyncio
    async def test_async_confirm_accepted(self):
        confirm = AsyncMock(return_value=True)
        coordinator, store, invalidate = _coordinator(confirm=confirm)
        result = await coordinator.delete_row("r1")
        assert result.ok
        confirm.assert_awaited_once()
        store.delete_row.assert_awaited_once_with("r1")
        invalidate.assert_called_once()
        assert coordinator.notifier.last.title == "Row deleted"

    @pytest.mark.asyncio
    async def test_delete_gated_before_confirm(self):
        confirm = MagicMock(return_value=True)
        coordinator, store, _ = _coordinator(editing=False, confirm=confirm)
        result = await coordinator.delete_row("r1")
        assert not result.ok
        confirm.assert_not_called()


class TestFailures:

    @pytest.mark.asyncio
    async def test_store_failure_notifies_once(self):
        store = AsyncMock()
        store.update_row.side_effect = StoreUnavailableError("backend down")
        coordinator, store, invalidate = _coordinator(store)

        result = await coordinator.update_row("r1", {"location": "X"})

        assert not result.ok
        assert isinstance(result.error, StoreUnavailableError)
        errors = [n for n in coordinator.notifier.history if n.variant == "destructive"]
        assert [n.title for n in errors] == ["Failed to update row"]
        invalidate.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_found_invalidates(self):
        store = AsyncMock()
        store.update_row.side_effect = NotFoundError("Row not found")
        coordinator, store, invalidate = _coordinator(store)
        await coordinator.update_row("gone", {"location": "X"})
        invalidate.assert_called_once()

    @pytest.mark.asyncio
    async def test_pending_while_in_flight(self):
        store = AsyncMock()
        coordinator, store, _ = _coordinator(store)
        seen = []

        async def record(row_id, updates):
            seen.append(coordinator.is_pending("update_row", row_id))
            return GridRow(id=row_id)

        store.update_row.side_effect = record
        await coordinator.update_row("r1", {"location": "X"})

        assert seen == [True]
        assert not coordinator.is_pending("update_row", "r1")
        assert coordinator.pending == frozenset()

    @pytest.mark.asyncio
    async def test_pending_cleared_after_failure(self):
        store = AsyncMock()
        store.delete_image.side_effect = StoreUnavailableError("down")
        coordinator, store, _ = _coordinator(store)
        await coordinator.delete_image("r1", 0)
        assert coordinator.pending == frozenset()


class TestRows:

    @pytest.mark.asyncio
    async def test_create_row_appends_by_default(self):
        store = AsyncMock()
        store.create_row.return_value = GridRow(id="n")
        coordinator, store, _ = _coordinator(store)
        result = await coordinator.create_row({"location": "New"})
        assert result.value.id == "n"
        store.reorder_rows.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_row_at_position(self):
        store = AsyncMock()
        store.create_row.return_value = GridRow(id="n")
        store.list_rows.return_value = [GridRow(id="a"), GridRow(id="b"), GridRow(id="n")]
        store.get_row.return_value = GridRow(id="n", sort_order=1)
        coordinator, store, _ = _coordinator(store)

        result = await coordinator.create_row({"location": "New"}, position=2)

        assert result.ok
        store.reorder_rows.assert_awaited_once_with(["a", "n", "b"])
        assert result.value.sort_order == 1

    @pytest.mark.asyncio
    async def test_failed_placement_reports_move_and_invalidates(self):
        store = AsyncMock()
        store.create_row.return_value = GridRow(id="n")
        store.list_rows.return_value = [GridRow(id="a"), GridRow(id="n")]
        store.reorder_rows.side_effect = StoreUnavailableError("backend down")
        coordinator, store, invalidate = _coordinator(store)

        result = await coordinator.create_row({"location": "New"}, position=1)

        assert not result.ok
        assert result.value.id == "n"
        assert isinstance(result.error, StoreUnavailableError)
        titles = [n.title for n in coordinator.notifier.history]
        assert titles == ["Row added", "Failed to move row"]
        # The created row must show up on the next fetch
        invalidate.assert_called_once()
        assert coordinator.pending == frozenset()

    @pytest.mark.asyncio
    async def test_move_row_merges_into_full_order(self):
        coordinator, store, _ = _coordinator(editing=False)
        result = await coordinator.move_row(["b", "d"], ["a", "b", "c", "d"], 1, 0)
        assert result.ok
        store.reorder_rows.assert_awaited_once_with(["a", "d", "c", "b"])

    @pytest.mark.asyncio
    async def test_move_row_same_index_is_noop(self):
        coordinator, store, _ = _coordinator()
        await coordinator.move_row(["a"], ["a"], 0, 0)
        store.reorder_rows.assert_not_called()

    @pytest.mark.asyncio
    async def test_apply_sort_keeps_depot_first(self):
        coordinator, store, _ = _coordinator(editing=False)
        rows = [
            GridRow(id="d", location="QL kitchen"),
            GridRow(id="z", location="Zeta"),
            GridRow(id="a", location="alpha"),
        ]
        result = await coordinator.apply_sort(rows, ["d", "h", "z", "a"], SortState("location"))
        assert result.ok
        store.reorder_rows.assert_awaited_once_with(["d", "h", "a", "z"])

    @pytest.mark.asyncio
    async def test_cleared_sort_persists_nothing(self):
        coordinator, store, _ = _coordinator()
        result = await coordinator.apply_sort([GridRow(id="a")], ["a"], None)
        assert result.ok
        store.reorder_rows.assert_not_called()


class TestImagesAndColumns:

    @pytest.mark.asyncio
    async def test_blank_image_url_rejected(self):
        coordinator, store, _ = _coordinator()
        result = await coordinator.add_image("r1", "   ")
        assert not result.ok
        store.add_image.assert_not_called()

    @pytest.mark.asyncio
    async def test_clear_images(self):
        coordinator, store, _ = _coordinator()
        result = await coordinator.delete_image("r1")
        assert result.ok
        store.delete_image.assert_awaited_once_with("r1", None)
        assert coordinator.notifier.last.title == "Images cleared"

    def test_unique_data_key(self):
        assert unique_data_key([]) == "newColumn"
        assert unique_data_key(["newColumn"]) == "newColumn2"
        assert unique_data_key(["newColumn", "newColumn2"]) == "newColumn3"

    @pytest.mark.asyncio
    async def test_create_column_generates_free_key(self):
        coordinator, store, _ = _coordinator()
        existing = [GridColumn(id="c1", name="New Column", data_key="newColumn")]
        await coordinator.create_column(existing=existing)
        payload = store.create_column.await_args.args[0]
        assert payload["dataKey"] == "newColumn2"
        assert payload["name"] == "New Column 2"
        assert payload["isEditable"] == "true"

    @pytest.mark.asyncio
    async def test_create_column_requires_edit_mode(self):
        coordinator, store, _ = _coordinator(editing=False)
        result = await coordinator.create_column(name="Notes", data_key="notes", existing=[])
        assert not result.ok
        store.create_column.assert_not_called()

    @pytest.mark.asyncio
    async def test_move_column(self):
        coordinator, store, _ = _coordinator()
        await coordinator.move_column(["a", "b", "c"], 2, 0)
        store.reorder_columns.assert_awaited_once_with(["c", "a", "b"])
