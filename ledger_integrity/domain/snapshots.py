"""
Snapshot values - Biểu diễn dữ liệu trước/sau thay đổi dưới dạng biến thể có gắn nhãn.

Mỗi giá trị thuộc đúng một loại (chuỗi, số, ngày, logic, danh sách, bản ghi)
nên có thể chuẩn hóa và so sánh mà không cần biết trước lược đồ của thực thể.
"""

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

NUMBER_PRECISION = Decimal("0.0001")


class ValueKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


class SnapshotValue:
    """Base of the tagged variant. Subclasses are frozen dataclasses."""

    kind: ValueKind

    def canonical(self) -> Any:
        raise NotImplementedError

    def to_plain(self) -> Any:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class TextValue(SnapshotValue):
    value: str
    kind = ValueKind.STRING

    def canonical(self) -> Any:
        return ("s", self.value)

    def to_plain(self) -> Any:
        return self.value


@dataclass(frozen=True, slots=True)
class NumberValue(SnapshotValue):
    value: Decimal
    kind = ValueKind.NUMBER

    def canonical(self) -> Any:
        return ("n", str(self.value.quantize(NUMBER_PRECISION).normalize()))

    def to_plain(self) -> Any:
        return str(self.value)


@dataclass(frozen=True, slots=True)
class BoolValue(SnapshotValue):
    value: bool
    kind = ValueKind.BOOLEAN

    def canonical(self) -> Any:
        return ("b", self.value)

    def to_plain(self) -> Any:
        return self.value


@dataclass(frozen=True, slots=True)
class DateValue(SnapshotValue):
    value: date | datetime
    kind = ValueKind.DATE

    def canonical(self) -> Any:
        return ("d", _iso(self.value))

    def to_plain(self) -> Any:
        return _iso(self.value)


@dataclass(frozen=True, slots=True)
class ListValue(SnapshotValue):
    items: tuple[SnapshotValue, ...]
    kind = ValueKind.ARRAY

    def canonical(self) -> Any:
        return ("l", tuple(item.canonical() for item in self.items))

    def to_plain(self) -> Any:
        return [item.to_plain() for item in self.items]


@dataclass(frozen=True, slots=True)
class MapValue(SnapshotValue):
    fields: tuple[tuple[str, SnapshotValue], ...]
    kind = ValueKind.OBJECT

    def canonical(self) -> Any:
        return ("m", tuple((key, value.canonical()) for key, value in self.fields))

    def to_plain(self) -> Any:
        return {key: value.to_plain() for key, value in self.fields}

    def get(self, key: str) -> SnapshotValue | None:
        for name, value in self.fields:
            if name == key:
                return value
        return None

    def keys(self) -> list[str]:
        return [name for name, _ in self.fields]


def _iso(value: date | datetime) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    return value.isoformat()


def snapshot_of(obj: Any) -> SnapshotValue | None:
    """Chuyển giá trị Python sang SnapshotValue; None nghĩa là vắng mặt."""
    if obj is None:
        return None
    if isinstance(obj, SnapshotValue):
        return obj
    if isinstance(obj, bool):
        return BoolValue(obj)
    if isinstance(obj, Enum):
        return snapshot_of(obj.value)
    if isinstance(obj, (int, Decimal)):
        return NumberValue(Decimal(obj))
    if isinstance(obj, float):
        return NumberValue(Decimal(str(obj)))
    if isinstance(obj, (datetime, date)):
        return DateValue(obj)
    if isinstance(obj, str):
        return TextValue(obj)
    if isinstance(obj, UUID):
        return TextValue(str(obj))
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return snapshot_of({f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)})
    if isinstance(obj, Mapping):
        fields = []
        for key in sorted(obj, key=str):
            value = snapshot_of(obj[key])
            if value is not None:
                fields.append((str(key), value))
        return MapValue(tuple(fields))
    if isinstance(obj, (list, tuple)):
        items = []
        for item in obj:
            value = snapshot_of(item)
            items.append(value if value is not None else TextValue(""))
        return ListValue(tuple(items))
    raise TypeError(f"Không hỗ trợ kiểu dữ liệu trong snapshot: {type(obj).__name__}")


def snapshot_from_plain(data: Any) -> SnapshotValue | None:
    """Đọc lại snapshot đã lưu dạng JSON (giữ nguyên loại đã gắn nhãn)."""
    if data is None:
        return None
    tag = data["t"]
    raw = data["v"]
    if tag == ValueKind.STRING.value:
        return TextValue(raw)
    if tag == ValueKind.NUMBER.value:
        return NumberValue(Decimal(raw))
    if tag == ValueKind.BOOLEAN.value:
        return BoolValue(bool(raw))
    if tag == ValueKind.DATE.value:
        if "T" in raw:
            return DateValue(datetime.fromisoformat(raw))
        return DateValue(date.fromisoformat(raw))
    if tag == ValueKind.ARRAY.value:
        return ListValue(tuple(snapshot_from_plain(item) for item in raw))
    if tag == ValueKind.OBJECT.value:
        return MapValue(tuple((key, snapshot_from_plain(value)) for key, value in raw))
    raise ValueError(f"Nhãn snapshot không hợp lệ: {tag}")


def snapshot_to_tagged(value: SnapshotValue | None) -> Any:
    """Dạng JSON có gắn nhãn, đọc lại bằng snapshot_from_plain."""
    if value is None:
        return None
    if isinstance(value, ListValue):
        return {"t": value.kind.value, "v": [snapshot_to_tagged(item) for item in value.items]}
    if isinstance(value, MapValue):
        return {"t": value.kind.value, "v": [[key, snapshot_to_tagged(item)] for key, item in value.fields]}
    return {"t": value.kind.value, "v": value.to_plain()}
