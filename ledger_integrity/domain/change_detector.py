"""
Change Detector - So sánh snapshot trước/sau, sinh danh sách thay đổi theo field.
"""

from dataclasses import dataclass
from typing import Any

from .snapshots import MapValue, SnapshotValue, ValueKind, snapshot_of


@dataclass(frozen=True, slots=True)
class FieldChange:
    field: str
    old_value: Any
    new_value: Any
    value_kind: ValueKind

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "value_kind": self.value_kind.value,
        }


def _as_map(value: Any) -> MapValue:
    snap = snapshot_of(value)
    if snap is None:
        return MapValue(())
    if not isinstance(snap, MapValue):
        raise TypeError("Snapshot phải là một bản ghi (field -> giá trị)")
    return snap


def diff(before: Any, after: Any) -> list[FieldChange]:
    """Danh sách field thay đổi, sắp theo tên field.

    Chỉ sinh FieldChange khi giá trị chuẩn hóa khác nhau. Loại giá trị lấy
    theo giá trị mới, nếu field bị xóa thì theo giá trị cũ.
    """
    old_map = _as_map(before)
    new_map = _as_map(after)
    old_fields = dict(old_map.fields)
    new_fields = dict(new_map.fields)

    changes: list[FieldChange] = []
    for key in sorted(set(old_fields) | set(new_fields)):
        old: SnapshotValue | None = old_fields.get(key)
        new: SnapshotValue | None = new_fields.get(key)
        old_canonical = old.canonical() if old is not None else None
        new_canonical = new.canonical() if new is not None else None
        if old_canonical == new_canonical:
            continue
        # key comes from the union, so at least one side is present here
        kind = new.kind if new is not None else old.kind
        changes.append(FieldChange(
            field=key,
            old_value=old.to_plain() if old is not None else None,
            new_value=new.to_plain() if new is not None else None,
            value_kind=kind,
        ))
    return changes
