"""
Unit tests - Snapshot và phát hiện thay đổi theo field.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from ledger_integrity.domain.change_detector import diff
from ledger_integrity.domain.snapshots import (
    ListValue,
    MapValue,
    NumberValue,
    TextValue,
    ValueKind,
    snapshot_from_plain,
    snapshot_of,
    snapshot_to_tagged,
)
from ledger_integrity.domain.value_objects import DocumentStatus


class TestSnapshotOf:

    def test_scalar_kinds(self):
        assert snapshot_of("abc").kind == ValueKind.STRING
        assert snapshot_of(Decimal("1.5")).kind == ValueKind.NUMBER
        assert snapshot_of(3).kind == ValueKind.NUMBER
        assert snapshot_of(True).kind == ValueKind.BOOLEAN
        assert snapshot_of(date(2025, 1, 1)).kind == ValueKind.DATE
        assert snapshot_of(DocumentStatus.POSTED) == TextValue("POSTED")

    def test_none_means_absent(self):
        assert snapshot_of(None) is None
        assert snapshot_of({"a": None, "b": 1}).keys() == ["b"]

    def test_map_keys_are_sorted(self):
        snap = snapshot_of({"z": 1, "a": "x"})
        assert isinstance(snap, MapValue)
        assert snap.keys() == ["a", "z"]

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            snapshot_of(object())

    def test_tagged_form_reads_back(self):
        snap = snapshot_of({
            "amount": Decimal("1000"),
            "at": datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc),
            "lines": [{"account_code": "1111"}],
            "posted": False,
        })
        assert snapshot_from_plain(snapshot_to_tagged(snap)) == snap


class TestCanonicalEquality:

    def test_number_scale_is_ignored(self):
        assert NumberValue(Decimal("100")).canonical() == NumberValue(Decimal("100.0000")).canonical()

    def test_number_differs_from_text(self):
        assert snapshot_of(100).canonical() != snapshot_of("100").canonical()

    def test_datetime_compared_in_utc(self):
        local = datetime(2025, 1, 1, 15, 0, tzinfo=timezone(timedelta(hours=7)))
        utc = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)
        assert snapshot_of(local).canonical() == snapshot_of(utc).canonical()


class TestDiff:

    def test_identical_snapshots_have_no_changes(self):
        snap = {"description": "Thu tiền", "total_debit": Decimal("100")}
        assert diff(snap, dict(snap)) == []

    def test_equal_numbers_with_different_scale(self):
        assert diff({"amount": Decimal("100")}, {"amount": Decimal("100.00")}) == []

    def test_changed_field(self):
        changes = diff({"status": "DRAFT"}, {"status": "POSTED"})
        assert len(changes) == 1
        change = changes[0]
        assert (change.field, change.old_value, change.new_value) == ("status", "DRAFT", "POSTED")
        assert change.value_kind == ValueKind.STRING

    def test_added_and_removed_fields(self):
        changes = diff({"a": 1, "reason": "cũ"}, {"a": 1, "b": date(2025, 3, 1)})
        assert [(c.field, c.old_value, c.new_value) for c in changes] == [
            ("b", None, "2025-03-01"),
            ("reason", "cũ", None),
        ]
        assert changes[0].value_kind == ValueKind.DATE
        assert changes[1].value_kind == ValueKind.STRING

    def test_changes_sorted_by_field(self):
        changes = diff({"b": 1, "a": 1, "c": 1}, {"b": 2, "a": 2, "c": 2})
        assert [c.field for c in changes] == ["a", "b", "c"]

    def test_nested_list_compared_as_whole(self):
        before = {"lines": [{"account_code": "1111", "debit_amount": Decimal("100")}]}
        after = {"lines": [{"account_code": "1111", "debit_amount": Decimal("200")}]}
        changes = diff(before, after)
        assert [c.field for c in changes] == ["lines"]
        assert changes[0].value_kind == ValueKind.ARRAY
        assert changes[0].new_value == [{"account_code": "1111", "debit_amount": "200"}]

    def test_diff_is_deterministic(self):
        before = {"x": 1, "y": "a", "z": [1, 2]}
        after = {"x": 2, "y": "b", "z": [2, 1]}
        assert diff(before, after) == diff(before, after)

    def test_reverse_diff_swaps_values(self):
        before = {"x": 1, "y": "a", "gone": True}
        after = {"x": 2, "y": "a", "new": "v"}
        forward = {c.field: (c.old_value, c.new_value) for c in diff(before, after)}
        backward = {c.field: (c.new_value, c.old_value) for c in diff(after, before)}
        assert forward == backward

    def test_missing_snapshot_treated_as_empty(self):
        assert [c.field for c in diff(None, {"a": "1"})] == ["a"]
        assert diff(None, None) == []

    def test_scalar_snapshot_rejected(self):
        with pytest.raises(TypeError):
            diff("abc", {"a": 1})

    def test_accepts_snapshot_values(self):
        before = MapValue((("items", ListValue((TextValue("a"),))),))
        after = MapValue((("items", ListValue((TextValue("b"),))),))
        assert diff(before, after)[0].old_value == ["a"]
