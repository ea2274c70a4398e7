"""Tests for the Column Registry — core protection and default layout."""

import pytest

from routegrid.engine.columns import (
    CORE_DATA_KEYS,
    DEFAULT_COLUMNS,
    ColumnRegistry,
    default_order,
    default_visible_ids,
)
from routegrid.engine.errors import ProtectedMutationError
from routegrid.engine.records import GridColumn


def _columns():
    return [
        GridColumn(id="col-route", name="Route", data_key="route", sort_order=1),
        GridColumn(id="col-id", name="ID", data_key="id", sort_order=0),
        GridColumn(id="col-extra", name="Notes", data_key="notes", sort_order=2),
    ]


class TestDefaults:

    def test_default_columns_cover_core_keys(self):
        keys = {c["dataKey"] for c in DEFAULT_COLUMNS}
        assert keys <= CORE_DATA_KEYS
        assert [c["sortOrder"] for c in DEFAULT_COLUMNS] == list(range(len(DEFAULT_COLUMNS)))

    def test_default_column_ids_are_stable(self):
        assert DEFAULT_COLUMNS[1]["id"] == "col-route"

    def test_default_order_sorts_by_sort_order(self):
        assert [c.id for c in default_order(_columns())] == ["col-id", "col-route", "col-extra"]

    def test_default_order_is_stable_for_ties(self):
        cols = [
            GridColumn(id="b", name="B", data_key="b", sort_order=0),
            GridColumn(id="a", name="A", data_key="a", sort_order=0),
        ]
        assert [c.id for c in default_order(cols)] == ["b", "a"]

    def test_all_columns_visible_by_default(self):
        assert default_visible_ids(_columns()) == ["col-id", "col-route", "col-extra"]


class TestCoreIdentity:

    def test_core_ids_derived_from_data_keys(self):
        registry = ColumnRegistry(_columns())
        assert registry.core_ids == {"col-id", "col-route"}

    def test_explicit_core_ids_win(self):
        cols = _columns()
        registry = ColumnRegistry(cols, core_ids=["col-extra"])
        assert registry.is_core_column(cols[2])
        assert not registry.is_core_column(cols[0])


class TestCanHide:

    def test_core_last_visible_cannot_hide(self):
        cols = _columns()
        registry = ColumnRegistry(cols)
        assert registry.can_hide(cols[0], current_visible_count=1) is False

    def test_core_with_others_visible_can_hide(self):
        cols = _columns()
        registry = ColumnRegistry(cols)
        assert registry.can_hide(cols[0], current_visible_count=2) is True

    def test_non_core_always_hideable(self):
        cols = _columns()
        registry = ColumnRegistry(cols)
        assert registry.can_hide(cols[2], current_visible_count=1) is True

    def test_hidden_core_column_check(self):
        cols = _columns()
        registry = ColumnRegistry(cols)
        assert registry.can_hide(cols[0], current_visible_count=1, is_visible=False) is True


class TestToggleVisibility:

    def test_hide_then_show(self):
        cols = _columns()
        registry = ColumnRegistry(cols)
        visible = registry.toggle_visibility(["col-id", "col-route", "col-extra"], cols[2])
        assert visible == ["col-id", "col-route"]
        visible = registry.toggle_visibility(visible, cols[2])
        assert visible == ["col-id", "col-route", "col-extra"]

    def test_last_visible_core_column_rejected(self):
        cols = _columns()
        registry = ColumnRegistry(cols)
        with pytest.raises(ProtectedMutationError):
            registry.toggle_visibility(["col-route"], cols[0])

    def test_last_visible_non_core_column_rejected(self):
        cols = _columns()
        registry = ColumnRegistry(cols)
        with pytest.raises(ProtectedMutationError):
            registry.toggle_visibility(["col-extra"], cols[2])

    def test_stale_ids_are_dropped(self):
        cols = _columns()
        registry = ColumnRegistry(cols)
        visible = registry.toggle_visibility(["gone", "col-id", "col-extra"], cols[2])
        assert visible == ["col-id"]

    def test_visible_count_never_reaches_zero(self):
        cols = _columns()
        registry = ColumnRegistry(cols)
        visible = [c.id for c in cols]
        for _ in range(3):
            for column in cols:
                try:
                    visible = registry.toggle_visibility(visible, column)
                except ProtectedMutationError:
                    pass
                assert len(visible) >= 1
