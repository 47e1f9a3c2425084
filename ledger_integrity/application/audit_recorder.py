"""
Audit Recorder - Ghi và tra cứu nhật ký kiểm toán.

Mỗi bản ghi chụp lại trạng thái trước/sau, danh sách field thay đổi, người
thực hiện và lý do. Bản ghi không bao giờ bị sửa hay xóa; sai sót được đính
chính bằng một bản ghi mới trỏ về bản ghi gốc.
"""

import logging
import math
import uuid
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime

from ledger_integrity.domain.change_detector import diff
from ledger_integrity.domain.entities import ActorContext, AuditRecord, as_utc, utcnow
from ledger_integrity.domain.exceptions import AuditRecordNotFoundError, ReasonRequiredError
from ledger_integrity.domain.services import IAuditLogRepository
from ledger_integrity.domain.snapshots import DateValue, MapValue, SnapshotValue, TextValue, snapshot_of
from ledger_integrity.domain.value_objects import (
    ACTIONS_REQUIRING_REASON,
    AccountingPeriod,
    AuditAction,
    AuditEntityType,
)

logger = logging.getLogger(__name__)

AuditListener = Callable[[AuditRecord], None]

_NAME_FIELDS = ("document_number", "period", "code", "name")
_DATE_FIELDS = ("document_date", "entry_date")


def _within_period(related: str | None, period: str) -> bool:
    """Kỳ của bản ghi nằm trọn trong kỳ lọc: tháng 01 thuộc cả 2025-Q1 và 2025."""
    if not related:
        return False
    if related == period:
        return True
    try:
        inner = AccountingPeriod.parse(related)
    except ValueError:
        return False
    outer = AccountingPeriod.parse(period)
    return outer.contains(inner.start_date) and outer.contains(inner.end_date)


def ensure_reason(action: AuditAction | str, reason: str | None) -> None:
    """Hành động thuộc nhóm bắt buộc lý do mà lý do rỗng hoặc toàn khoảng trắng thì từ chối."""
    action = AuditAction(action)
    if action in ACTIONS_REQUIRING_REASON and not (reason or "").strip():
        raise ReasonRequiredError(action.value)


@dataclass(frozen=True)
class AuditLogFilter:
    entity_type: str | None = None
    entity_id: str | None = None
    action: AuditAction | None = None
    actor_id: str | None = None
    from_time: datetime | None = None
    to_time: datetime | None = None
    period: str | None = None
    search: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "from_time", as_utc(self.from_time))
        object.__setattr__(self, "to_time", as_utc(self.to_time))
        if self.period:
            object.__setattr__(self, "period", str(AccountingPeriod.parse(self.period)))

    def matches(self, record: AuditRecord) -> bool:
        if self.entity_type and record.entity_type != self.entity_type:
            return False
        if self.entity_id and record.entity_id != self.entity_id:
            return False
        if self.action and record.action != self.action:
            return False
        if self.actor_id and record.actor_id != self.actor_id:
            return False
        if self.from_time and record.timestamp < self.from_time:
            return False
        if self.to_time and record.timestamp > self.to_time:
            return False
        if self.period and not _within_period(record.related_period, self.period):
            return False
        if self.search:
            needle = self.search.lower()
            haystack = (record.reason, record.entity_name, record.actor_name)
            if not any(needle in text.lower() for text in haystack if text):
                return False
        return True


@dataclass(frozen=True)
class AuditLogSummary:
    total: int = 0
    by_action: dict[str, int] = field(default_factory=dict)
    by_entity_type: dict[str, int] = field(default_factory=dict)
    unique_actors: int = 0


@dataclass(frozen=True)
class AuditLogPage:
    records: list[AuditRecord]
    summary: AuditLogSummary
    total_items: int
    total_pages: int
    page: int
    page_size: int


def _field(snapshot: SnapshotValue | None, name: str) -> SnapshotValue | None:
    if isinstance(snapshot, MapValue):
        return snapshot.get(name)
    return None


def _derive_entity_name(before: SnapshotValue | None, after: SnapshotValue | None) -> str | None:
    for snapshot in (after, before):
        for name in _NAME_FIELDS:
            value = _field(snapshot, name)
            if isinstance(value, TextValue) and value.value:
                return value.value
    return None


def _derive_period(before: SnapshotValue | None, after: SnapshotValue | None) -> str | None:
    for snapshot in (after, before):
        value = _field(snapshot, "period")
        if isinstance(value, TextValue) and value.value:
            return value.value
        for name in _DATE_FIELDS:
            value = _field(snapshot, name)
            if isinstance(value, DateValue):
                day = value.value.date() if isinstance(value.value, datetime) else value.value
                return str(AccountingPeriod.month_of(day))
            if isinstance(value, TextValue):
                try:
                    return str(AccountingPeriod.month_of(date.fromisoformat(value.value[:10])))
                except ValueError:
                    continue
    return None


class AuditRecorder:
    """Ghi nhật ký audit; mọi thao tác ghi đi qua repository chỉ-ghi-thêm."""

    def __init__(
        self,
        repository: IAuditLogRepository,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.repository = repository
        self._clock = clock
        self._id_factory = id_factory
        self._listeners: list[AuditListener] = []

    ensure_reason = staticmethod(ensure_reason)

    def record(
        self,
        entity_type: AuditEntityType | str,
        entity_id: str,
        action: AuditAction | str,
        before,
        after,
        actor: ActorContext,
        reason: str | None = None,
        entity_name: str | None = None,
        related_period: str | None = None,
        corrects_record_id: str | None = None,
    ) -> AuditRecord:
        action = AuditAction(action)
        ensure_reason(action, reason)
        before_snap = snapshot_of(before)
        after_snap = snapshot_of(after)
        changes = None
        if before_snap is not None and after_snap is not None:
            changes = tuple(diff(before_snap, after_snap))

        record = AuditRecord(
            id=self._id_factory(),
            entity_type=AuditEntityType(entity_type).value,
            entity_id=str(entity_id),
            action=action,
            actor_id=actor.actor_id,
            actor_name=actor.actor_name,
            actor_role=actor.role,
            timestamp=as_utc(self._clock()),
            entity_name=entity_name or _derive_entity_name(before_snap, after_snap),
            before=before_snap,
            after=after_snap,
            changes=changes,
            reason=reason.strip() if reason else None,
            related_period=related_period or _derive_period(before_snap, after_snap),
            corrects_record_id=corrects_record_id,
        )
        stored = self.repository.append(record)
        logger.info(
            "audit %s %s/%s by %s (seq=%s)",
            stored.action.value, stored.entity_type, stored.entity_id, stored.actor_id, stored.sequence,
        )
        self._notify(stored)
        return stored

    def record_correction(
        self,
        original_id: str,
        actor: ActorContext,
        reason: str,
        corrected_after=None,
    ) -> AuditRecord:
        """Đính chính một bản ghi: tạo bản ghi mới trỏ về bản gốc, bản gốc giữ nguyên."""
        if not (reason or "").strip():
            raise ReasonRequiredError("CORRECTION", "Đính chính nhật ký bắt buộc phải có lý do")
        original = self.get(original_id)
        return self.record(
            entity_type=original.entity_type,
            entity_id=original.entity_id,
            action=AuditAction.CREATE,
            before=None,
            after=corrected_after if corrected_after is not None else original.after,
            actor=actor,
            reason=reason,
            entity_name=original.entity_name,
            related_period=original.related_period,
            corrects_record_id=original.id,
        )

    def get(self, record_id: str) -> AuditRecord:
        record = self.repository.get(record_id)
        if record is None:
            raise AuditRecordNotFoundError(record_id)
        return record

    def history(self, entity_type: AuditEntityType | str, entity_id: str) -> list[AuditRecord]:
        records = self.repository.history(AuditEntityType(entity_type).value, str(entity_id))
        return sorted(records, key=lambda r: r.entity_sequence)

    def query(
        self,
        filters: AuditLogFilter | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> AuditLogPage:
        if page_size <= 0:
            raise ValueError("page_size phải lớn hơn 0")
        page = max(page, 1)
        filters = filters or AuditLogFilter()
        matched = [r for r in self.repository.list_all() if filters.matches(r)]
        matched.sort(key=lambda r: (r.timestamp, r.sequence), reverse=True)

        summary = AuditLogSummary(
            total=len(matched),
            by_action=dict(sorted(Counter(r.action.value for r in matched).items())),
            by_entity_type=dict(sorted(Counter(r.entity_type for r in matched).items())),
            unique_actors=len({r.actor_id for r in matched}),
        )
        start = (page - 1) * page_size
        return AuditLogPage(
            records=matched[start:start + page_size],
            summary=summary,
            total_items=len(matched),
            total_pages=math.ceil(len(matched) / page_size) if matched else 0,
            page=page,
            page_size=page_size,
        )

    def subscribe(self, listener: AuditListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, record: AuditRecord) -> None:
        for listener in list(self._listeners):
            try:
                listener(record)
            except Exception:
                logger.exception("audit listener failed for record %s", record.id)
