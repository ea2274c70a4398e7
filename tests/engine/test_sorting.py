"""Tests for sorting — tri-state toggle, comparators and order merging."""

import pytest

from routegrid.engine.composer import AnnotatedRow
from routegrid.engine.records import GridRow
from routegrid.engine.sorting import (
    ASC,
    DESC,
    SortState,
    available_sort_columns,
    merge_subsequence,
    move_item,
    sort_rows,
    toggle_sort,
)


def _rows(field, values):
    return [GridRow(id=f"r{i}", **{field: v}) for i, v in enumerate(values)]


class TestToggleSort:

    def test_three_clicks_return_to_none(self):
        state = toggle_sort(None, "code")
        assert state == SortState("code", ASC)
        state = toggle_sort(state, "code")
        assert state == SortState("code", DESC)
        assert toggle_sort(state, "code") is None

    def test_other_column_restarts_at_ascending(self):
        state = SortState("code", DESC)
        assert toggle_sort(state, "route") == SortState("route", ASC)

    def test_unknown_column_rejected(self):
        with pytest.raises(ValueError):
            SortState("images")

    def test_order_column_only_when_filtered(self):
        assert "order" not in available_sort_columns(False)
        assert "order" in available_sort_columns(True)

    def test_asc_and_desc_are_opposite_orderings(self):
        rows = _rows("location", ["Penang", "Johor", "Melaka"])
        asc = [r.location for r in sort_rows(rows, SortState("location", ASC))]
        desc = [r.location for r in sort_rows(rows, SortState("location", DESC))]
        assert asc == list(reversed(desc))


class TestComparators:

    def test_code_sorts_integers_numerically(self):
        rows = _rows("code", ["10", "2", "9"])
        result = sort_rows(rows, SortState("code", ASC))
        assert [r.code for r in result] == ["2", "9", "10"]

    def test_integer_codes_before_text_codes(self):
        rows = _rows("code", ["B1", "10", "A2", "3"])
        result = sort_rows(rows, SortState("code", ASC))
        assert [r.code for r in result] == ["3", "10", "A2", "B1"]

    def test_location_is_case_insensitive(self):
        rows = _rows("location", ["Banana", "apple"])
        result = sort_rows(rows, SortState("location", ASC))
        assert [r.location for r in result] == ["apple", "Banana"]

    def test_accents_fold_next_to_plain_letters(self):
        rows = _rows("location", ["Fjord", "Éclair", "Dune"])
        result = sort_rows(rows, SortState("location", ASC))
        assert [r.location for r in result] == ["Dune", "Éclair", "Fjord"]

    def test_kilometer_non_numeric_is_zero(self):
        items = [
            AnnotatedRow(row=GridRow(id="a"), kilometer="12.50"),
            AnnotatedRow(row=GridRow(id="b"), kilometer="—"),
            AnnotatedRow(row=GridRow(id="c"), kilometer="3.00"),
        ]
        result = sort_rows(items, SortState("kilometer", ASC))
        assert [i.id for i in result] == ["b", "c", "a"]

    def test_order_uses_no_field(self):
        rows = [GridRow(id="a", no=3), GridRow(id="b", no=1), GridRow(id="c", no=2)]
        result = sort_rows(rows, SortState("order", DESC))
        assert [r.id for r in result] == ["a", "c", "b"]

    def test_sort_is_stable(self):
        rows = _rows("trip", ["Daily", "daily", "Weekday", "Daily"])
        result = sort_rows(rows, SortState("trip", ASC))
        daily = [r.id for r in result if r.trip.lower() == "daily"]
        assert daily == ["r0", "r3", "r1"]

    def test_no_state_keeps_order(self):
        rows = _rows("code", ["3", "1"])
        assert sort_rows(rows, None) == rows


class TestMergeAndMove:

    def test_merge_subsequence_refills_member_slots(self):
        full = ["a", "b", "c", "d", "e"]
        assert merge_subsequence(full, ["d", "b"]) == ["a", "d", "c", "b", "e"]

    def test_merge_full_sequence_is_replacement(self):
        assert merge_subsequence(["a", "b"], ["b", "a"]) == ["b", "a"]

    def test_merge_rejects_unknown_ids(self):
        with pytest.raises(ValueError):
            merge_subsequence(["a"], ["z"])

    def test_merge_rejects_duplicates(self):
        with pytest.raises(ValueError):
            merge_subsequence(["a", "b"], ["a", "a"])

    def test_move_item_forward_and_back(self):
        assert move_item(["a", "b", "c", "d"], 0, 2) == ["b", "c", "a", "d"]
        assert move_item(["a", "b", "c", "d"], 3, 0) == ["d", "a", "b", "c"]

    def test_move_item_clamps_destination(self):
        assert move_item(["a", "b", "c"], 0, 10) == ["b", "c", "a"]

    def test_move_item_bad_source(self):
        with pytest.raises(IndexError):
            move_item(["a"], 4, 0)
