"""
Domain Entities - Chứng từ, bản ghi audit và khóa kỳ.
Áp dụng nghiệp vụ kế toán theo Thông tư 99/2025/TT-BTC.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from .change_detector import FieldChange
from .snapshots import SnapshotValue
from .validation import summarize_lines
from .value_objects import (
    AccountingPeriod,
    AuditAction,
    DocumentStatus,
    DocumentType,
    EmployeeLine,
    LedgerLine,
    PeriodStatus,
    VatFigures,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Thời điểm không múi giờ được hiểu là UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True, slots=True)
class ActorContext:
    """Người thực hiện thao tác, do phía gọi cung cấp (tin cậy)."""
    actor_id: str
    actor_name: str
    role: str


@dataclass(frozen=True, slots=True)
class StatusStamp:
    action: str
    from_status: DocumentStatus
    to_status: DocumentStatus
    actor_id: str
    at: datetime
    reason: str | None = None


@dataclass(frozen=True)
class LedgerDocument:
    """
    Entity - Chứng từ kế toán tổng quát (phiếu, bảng lương, báo cáo BH, tờ khai).
    Sở hữu riêng các dòng bút toán; mọi thay đổi tạo bản mới qua replace().
    """
    document_type: DocumentType
    document_number: str
    document_date: date
    description: str
    created_by: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    lines: tuple[LedgerLine, ...] = ()
    status: DocumentStatus = DocumentStatus.DRAFT
    employees: tuple[EmployeeLine, ...] = ()
    vat: VatFigures | None = None
    status_history: tuple[StatusStamp, ...] = ()
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    updated_by: str | None = None
    version: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))
        object.__setattr__(self, "employees", tuple(self.employees))
        object.__setattr__(self, "status_history", tuple(self.status_history))

    @property
    def period(self) -> str:
        return str(AccountingPeriod.month_of(self.document_date))

    @property
    def total_debit(self) -> Decimal:
        return summarize_lines(self.lines)[0]

    @property
    def total_credit(self) -> Decimal:
        return summarize_lines(self.lines)[1]

    def _last_reason(self, action: AuditAction) -> str | None:
        for stamp in reversed(self.status_history):
            if stamp.action == action.value:
                return stamp.reason
        return None

    @property
    def cancel_reason(self) -> str | None:
        return self._last_reason(AuditAction.CANCEL)

    @property
    def reject_reason(self) -> str | None:
        return self._last_reason(AuditAction.REJECT)

    @property
    def adjust_reason(self) -> str | None:
        return self._last_reason(AuditAction.ADJUST)

    def with_status(
        self,
        action: str,
        to_status: DocumentStatus,
        actor_id: str,
        reason: str | None = None,
        at: datetime | None = None,
    ) -> "LedgerDocument":
        now = at or utcnow()
        stamp = StatusStamp(
            action=action,
            from_status=self.status,
            to_status=to_status,
            actor_id=actor_id,
            at=now,
            reason=reason,
        )
        return replace(
            self,
            status=to_status,
            status_history=self.status_history + (stamp,),
            updated_at=now,
            updated_by=actor_id,
            version=self.version + 1,
        )

    def audit_snapshot(self) -> dict[str, Any]:
        """Các field có thể thay đổi, dùng làm snapshot trước/sau cho audit."""
        return {
            "document_number": self.document_number,
            "document_type": self.document_type,
            "document_date": self.document_date,
            "period": self.period,
            "description": self.description,
            "status": self.status,
            "lines": [
                {
                    "account_code": line.account_code,
                    "debit_amount": line.debit_amount,
                    "credit_amount": line.credit_amount,
                    "description": line.description,
                    "partner_code": line.partner_code,
                    "department_code": line.department_code,
                    "project_code": line.project_code,
                }
                for line in self.lines
            ],
            "total_debit": self.total_debit,
            "total_credit": self.total_credit,
            "employees": list(self.employees),
            "vat": self.vat,
            "cancel_reason": self.cancel_reason,
            "reject_reason": self.reject_reason,
            "adjust_reason": self.adjust_reason,
        }


@dataclass(frozen=True, slots=True)
class DocumentDraft:
    """Dữ liệu khởi tạo chứng từ nháp."""
    document_date: date
    description: str
    lines: tuple[LedgerLine, ...] = ()
    document_number: str | None = None
    employees: tuple[EmployeeLine, ...] = ()
    vat: VatFigures | None = None


@dataclass(frozen=True, slots=True)
class DocumentPatch:
    """Bản vá khi sửa chứng từ nháp; None nghĩa là giữ nguyên."""
    document_date: date | None = None
    description: str | None = None
    lines: tuple[LedgerLine, ...] | None = None
    employees: tuple[EmployeeLine, ...] | None = None
    vat: VatFigures | None = None

    def apply(self, document: LedgerDocument, actor_id: str, at: datetime | None = None) -> LedgerDocument:
        changes: dict[str, Any] = {}
        if self.document_date is not None:
            changes["document_date"] = self.document_date
        if self.description is not None:
            changes["description"] = self.description
        if self.lines is not None:
            changes["lines"] = tuple(self.lines)
        if self.employees is not None:
            changes["employees"] = tuple(self.employees)
        if self.vat is not None:
            changes["vat"] = self.vat
        return replace(
            document,
            **changes,
            updated_at=at or utcnow(),
            updated_by=actor_id,
            version=document.version + 1,
        )


@dataclass(frozen=True, slots=True)
class AuditRecord:
    """
    Bản ghi dấu vết kiểm toán - chỉ ghi thêm, không sửa, không xóa.
    Tham chiếu thực thể bằng id (không sở hữu).
    """
    id: str
    entity_type: str
    entity_id: str
    action: AuditAction
    actor_id: str
    actor_name: str
    actor_role: str
    timestamp: datetime
    entity_name: str | None = None
    before: SnapshotValue | None = None
    after: SnapshotValue | None = None
    changes: tuple[FieldChange, ...] | None = None
    reason: str | None = None
    related_period: str | None = None
    corrects_record_id: str | None = None
    sequence: int = 0
    entity_sequence: int = 0


@dataclass(frozen=True)
class PeriodLock:
    """Thông tin khóa kỳ kế toán."""
    period: str
    status: PeriodStatus = PeriodStatus.OPEN
    locked_at: datetime | None = None
    locked_by: str | None = None
    locked_by_name: str | None = None
    unlocked_at: datetime | None = None
    unlocked_by: str | None = None
    unlock_reason: str | None = None
    version: int = 1

    @property
    def is_locked(self) -> bool:
        return self.status in (PeriodStatus.LOCKED, PeriodStatus.CLOSED)

    def audit_snapshot(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "status": self.status,
            "locked_at": self.locked_at,
            "locked_by": self.locked_by,
            "unlocked_at": self.unlocked_at,
            "unlocked_by": self.unlocked_by,
            "unlock_reason": self.unlock_reason,
        }
