"""
API DTOs - Data Transfer Objects for API requests/responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ledger_integrity.application.audit_recorder import AuditLogPage
from ledger_integrity.application.period_lock_service import PeriodChecklist
from ledger_integrity.domain.aggregation import LedgerSummary
from ledger_integrity.domain.entities import AuditRecord, LedgerDocument, PeriodLock
from ledger_integrity.domain.snapshots import SnapshotValue
from ledger_integrity.domain.validation import ValidationError, summarize_lines
from ledger_integrity.domain.value_objects import (
    AuditAction,
    DocumentStatus,
    DocumentType,
    EmployeeLine,
    LedgerLine,
    PeriodStatus,
    VatFigures,
)


class LedgerLineDTO(BaseModel):
    """DTO - Dòng bút toán."""
    account_code: str = Field(..., description="Mã tài khoản")
    debit_amount: Decimal = Field(Decimal("0"), ge=0, description="Số tiền Nợ")
    credit_amount: Decimal = Field(Decimal("0"), ge=0, description="Số tiền Có")
    description: str = Field("", description="Diễn giải")
    partner_code: str | None = Field(None, description="Mã đối tượng (KH, NCC, NV)")
    department_code: str | None = Field(None, description="Mã bộ phận")
    project_code: str | None = Field(None, description="Mã công trình/dự án")

    model_config = ConfigDict(from_attributes=True)

    def to_domain(self) -> LedgerLine:
        return LedgerLine(**self.model_dump())


class EmployeeLineDTO(BaseModel):
    """DTO - Dòng nhân viên trên bảng lương / báo cáo BHXH."""
    employee_code: str
    employee_name: str
    insurance_salary: Decimal = Field(..., ge=0, description="Lương đóng BHXH")
    gross_salary: Decimal = Field(Decimal("0"), ge=0, description="Tổng thu nhập")
    dependents: int = Field(0, ge=0, description="Số người phụ thuộc")

    model_config = ConfigDict(from_attributes=True)

    def to_domain(self) -> EmployeeLine:
        return EmployeeLine(**self.model_dump())


class VatFiguresDTO(BaseModel):
    """DTO - Chỉ tiêu tờ khai 01/GTGT."""
    output_vat: Decimal = Field(Decimal("0"), ge=0, description="[27] Thuế GTGT đầu ra")
    deductible_input_vat: Decimal = Field(Decimal("0"), ge=0, description="[30] Thuế GTGT đầu vào được khấu trừ")
    increase_adjustment: Decimal = Field(Decimal("0"), ge=0, description="[31] Điều chỉnh tăng")
    decrease_adjustment: Decimal = Field(Decimal("0"), ge=0, description="[32] Điều chỉnh giảm")
    carry_forward_from_previous: Decimal = Field(Decimal("0"), ge=0, description="[33] Kỳ trước chuyển sang")

    model_config = ConfigDict(from_attributes=True)

    def to_domain(self) -> VatFigures:
        return VatFigures(**self.model_dump())


class ValidateLinesRequestDTO(BaseModel):
    lines: list[LedgerLineDTO] = Field(default_factory=list)


class ValidationErrorDTO(BaseModel):
    code: str
    message: str
    line_index: int | None = None
    imbalance: Decimal | None = None

    @classmethod
    def from_domain(cls, error: ValidationError) -> "ValidationErrorDTO":
        return cls(**error.to_dict())


class BalanceCheckResultDTO(BaseModel):
    """DTO - Kết quả kiểm tra cân đối."""
    is_valid: bool
    total_debit: Decimal
    total_credit: Decimal
    difference: Decimal
    errors: list[ValidationErrorDTO] = []

    @classmethod
    def build(cls, lines: list[LedgerLine], errors: list[ValidationError]) -> "BalanceCheckResultDTO":
        debit, credit = summarize_lines(lines)
        return cls(
            is_valid=not errors,
            total_debit=debit,
            total_credit=credit,
            difference=debit - credit,
            errors=[ValidationErrorDTO.from_domain(e) for e in errors],
        )


class DocumentCreateDTO(BaseModel):
    """DTO - Tạo chứng từ nháp."""
    document_type: DocumentType = Field(..., description="Loại chứng từ")
    document_date: date = Field(..., description="Ngày chứng từ")
    description: str = Field(..., max_length=500, description="Nội dung kinh tế")
    document_number: str | None = Field(None, description="Số chứng từ (tự sinh nếu bỏ trống)")
    lines: list[LedgerLineDTO] = Field(default_factory=list, description="Các dòng bút toán")
    employees: list[EmployeeLineDTO] = Field(default_factory=list)
    vat: VatFiguresDTO | None = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "document_type": "VOUCHER",
            "document_date": "2025-01-15",
            "description": "Thu tiền bán hàng Công ty ABC",
            "lines": [
                {"account_code": "1111", "debit_amount": 11000000, "description": "Thu tiền mặt"},
                {"account_code": "5111", "credit_amount": 10000000, "description": "Doanh thu bán hàng"},
                {"account_code": "33311", "credit_amount": 1000000, "description": "Thuế GTGT đầu ra"},
            ],
        }
    })


class DocumentUpdateDTO(BaseModel):
    """DTO - Sửa chứng từ nháp; field bỏ trống giữ nguyên."""
    document_date: date | None = None
    description: str | None = Field(None, max_length=500)
    lines: list[LedgerLineDTO] | None = None
    employees: list[EmployeeLineDTO] | None = None
    vat: VatFiguresDTO | None = None
    expected_version: int | None = Field(None, ge=1, description="Phiên bản đang xem")


class TransitionRequestDTO(BaseModel):
    """DTO - Yêu cầu chuyển trạng thái."""
    action: str = Field(..., description="POST, SUBMIT, APPROVE, PAY, ACCEPT, REJECT, CANCEL, ADJUST")
    reason: str | None = Field(None, description="Bắt buộc với ADJUST, CANCEL, REJECT")
    expected_version: int | None = Field(None, ge=1)


class StatusStampDTO(BaseModel):
    action: str
    from_status: DocumentStatus
    to_status: DocumentStatus
    actor_id: str
    at: datetime
    reason: str | None = None

    model_config = ConfigDict(from_attributes=True)


class DocumentResponseDTO(BaseModel):
    """DTO - Phản hồi chứng từ."""
    id: str
    document_type: DocumentType
    document_number: str
    document_date: date
    period: str
    description: str
    status: DocumentStatus
    lines: list[LedgerLineDTO]
    employees: list[EmployeeLineDTO]
    vat: VatFiguresDTO | None
    total_debit: Decimal
    total_credit: Decimal
    status_history: list[StatusStampDTO]
    cancel_reason: str | None
    reject_reason: str | None
    adjust_reason: str | None
    created_by: str
    created_at: datetime
    updated_by: str | None
    updated_at: datetime
    version: int

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_domain(cls, document: LedgerDocument) -> "DocumentResponseDTO":
        return cls.model_validate(document)


def _plain(value: SnapshotValue | None) -> Any:
    return value.to_plain() if value is not None else None


class FieldChangeDTO(BaseModel):
    field: str
    old_value: Any = None
    new_value: Any = None
    value_kind: str


class AuditRecordResponseDTO(BaseModel):
    """DTO - Audit log."""
    id: str
    sequence: int
    entity_type: str
    entity_id: str
    entity_name: str | None
    action: AuditAction
    actor_id: str
    actor_name: str
    actor_role: str
    timestamp: datetime
    reason: str | None
    related_period: str | None
    corrects_record_id: str | None
    before: Any = None
    after: Any = None
    changes: list[FieldChangeDTO] | None = None

    @classmethod
    def from_domain(cls, record: AuditRecord) -> "AuditRecordResponseDTO":
        return cls(
            id=record.id,
            sequence=record.sequence,
            entity_type=record.entity_type,
            entity_id=record.entity_id,
            entity_name=record.entity_name,
            action=record.action,
            actor_id=record.actor_id,
            actor_name=record.actor_name,
            actor_role=record.actor_role,
            timestamp=record.timestamp,
            reason=record.reason,
            related_period=record.related_period,
            corrects_record_id=record.corrects_record_id,
            before=_plain(record.before),
            after=_plain(record.after),
            changes=(
                [FieldChangeDTO(**c.to_dict()) for c in record.changes]
                if record.changes is not None else None
            ),
        )


class AuditLogSummaryDTO(BaseModel):
    total: int
    by_action: dict[str, int]
    by_entity_type: dict[str, int]
    unique_actors: int


class AuditLogPageDTO(BaseModel):
    records: list[AuditRecordResponseDTO]
    summary: AuditLogSummaryDTO
    total_items: int
    total_pages: int
    page: int
    page_size: int

    @classmethod
    def from_domain(cls, page: AuditLogPage) -> "AuditLogPageDTO":
        return cls(
            records=[AuditRecordResponseDTO.from_domain(r) for r in page.records],
            summary=AuditLogSummaryDTO(
                total=page.summary.total,
                by_action=page.summary.by_action,
                by_entity_type=page.summary.by_entity_type,
                unique_actors=page.summary.unique_actors,
            ),
            total_items=page.total_items,
            total_pages=page.total_pages,
            page=page.page,
            page_size=page.page_size,
        )


class ReasonRequestDTO(BaseModel):
    """DTO - Lý do (mở khóa kỳ, đính chính nhật ký)."""
    reason: str = Field(..., description="Lý do")


class PeriodLockResponseDTO(BaseModel):
    """DTO - Trạng thái khóa kỳ."""
    period: str
    status: PeriodStatus
    is_locked: bool
    locked_at: datetime | None = None
    locked_by: str | None = None
    locked_by_name: str | None = None
    unlocked_at: datetime | None = None
    unlocked_by: str | None = None
    unlock_reason: str | None = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_domain(cls, lock: PeriodLock) -> "PeriodLockResponseDTO":
        return cls.model_validate(lock)


class LockCheckDTO(BaseModel):
    id: str
    name: str
    severity: str
    passed: bool
    details: str = ""

    model_config = ConfigDict(from_attributes=True)


class PeriodChecklistDTO(BaseModel):
    period: str
    can_lock: bool
    checks: list[LockCheckDTO]
    missing_checks: list[str]

    @classmethod
    def from_domain(cls, checklist: PeriodChecklist) -> "PeriodChecklistDTO":
        return cls(
            period=checklist.period,
            can_lock=checklist.can_lock,
            checks=[LockCheckDTO.model_validate(c) for c in checklist.checks],
            missing_checks=checklist.missing_checks,
        )


class LedgerSummaryDTO(BaseModel):
    """DTO - Số liệu tổng hợp theo kỳ."""
    period: str | None
    document_type: DocumentType | None
    document_count: int
    posted_count: int
    counts_by_status: dict[str, int]
    total_debit: Decimal
    total_credit: Decimal
    difference: Decimal
    is_balanced: bool
    insurance: dict[str, Decimal]
    payroll: dict[str, Decimal]
    vat: dict[str, Decimal]

    @classmethod
    def from_domain(cls, summary: LedgerSummary) -> "LedgerSummaryDTO":
        insurance = summary.insurance
        return cls(
            period=summary.scope.period,
            document_type=summary.scope.document_type,
            document_count=summary.document_count,
            posted_count=summary.posted_count,
            counts_by_status=summary.counts_by_status,
            total_debit=summary.total_debit,
            total_credit=summary.total_credit,
            difference=summary.difference,
            is_balanced=summary.is_balanced,
            insurance={
                "total_employee": insurance.total_employee,
                "total_company": insurance.total_company,
                "grand_total": insurance.grand_total,
                **insurance.by_type,
            },
            payroll={
                "gross_salary": summary.payroll.gross_salary,
                "insurance_deduction": summary.payroll.insurance_deduction,
                "taxable_income": summary.payroll.taxable_income,
                "pit": summary.payroll.pit,
                "net_salary": summary.payroll.net_salary,
            },
            vat={
                "output_vat": summary.vat.output_vat,
                "total_deductible": summary.vat.total_deductible,
                "vat_payable": summary.vat.vat_payable,
                "carry_forward": summary.vat.carry_forward,
            },
        )
