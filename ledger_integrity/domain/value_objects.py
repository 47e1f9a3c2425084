"""
Domain Layer - Value objects cho sổ cái và dấu vết kiểm toán.
Áp dụng nghiệp vụ kế toán theo Thông tư 99/2025/TT-BTC.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

ZERO = Decimal("0")
VND_UNIT = Decimal("1")


def round_vnd(amount: Decimal) -> Decimal:
    """Làm tròn về đồng, nửa đơn vị làm tròn ra xa số 0."""
    return Decimal(amount).quantize(VND_UNIT, rounding=ROUND_HALF_UP)


class DocumentType(str, Enum):
    """Loại chứng từ/báo cáo được kiểm soát."""
    VOUCHER = "VOUCHER"                    # Phiếu thu/chi, chứng từ khác
    PAYROLL = "PAYROLL"                    # Bảng lương
    INSURANCE_REPORT = "INSURANCE_REPORT"  # Báo cáo đóng BHXH
    VAT_DECLARATION = "VAT_DECLARATION"    # Tờ khai 01/GTGT


class DocumentStatus(str, Enum):
    DRAFT = "DRAFT"          # Nháp
    POSTED = "POSTED"        # Đã ghi sổ
    SUBMITTED = "SUBMITTED"  # Đã nộp
    APPROVED = "APPROVED"    # Đã duyệt
    PAID = "PAID"            # Đã chi/đã đóng
    ACCEPTED = "ACCEPTED"    # Đã chấp nhận
    REJECTED = "REJECTED"    # Bị từ chối
    CANCELLED = "CANCELLED"  # Đã hủy


class AuditAction(str, Enum):
    """Hành động được ghi log. Không có DELETE: dữ liệu kế toán không được xóa."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    POST = "POST"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    PAY = "PAY"
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    ADJUST = "ADJUST"
    LOCK = "LOCK"
    UNLOCK = "UNLOCK"


ACTIONS_REQUIRING_REASON: frozenset[AuditAction] = frozenset({
    AuditAction.ADJUST,
    AuditAction.UNLOCK,
    AuditAction.CANCEL,
    AuditAction.REJECT,
})


class AuditEntityType(str, Enum):
    VOUCHER = "VOUCHER"
    PAYROLL = "PAYROLL"
    INSURANCE_REPORT = "INSURANCE_REPORT"
    VAT_DECLARATION = "VAT_DECLARATION"
    PERIOD_LOCK = "PERIOD_LOCK"
    AUDIT_LOG = "AUDIT_LOG"


class PeriodType(str, Enum):
    MONTH = "MONTH"
    QUARTER = "QUARTER"
    YEAR = "YEAR"


class PeriodStatus(str, Enum):
    OPEN = "OPEN"      # Đang mở
    LOCKED = "LOCKED"  # Đã khóa
    CLOSED = "CLOSED"  # Đã chốt sổ


_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_QUARTER_RE = re.compile(r"^(\d{4})-Q([1-4])$")
_YEAR_RE = re.compile(r"^(\d{4})$")


@dataclass(frozen=True, slots=True)
class AccountingPeriod:
    """Kỳ kế toán: YYYY-MM (tháng), YYYY-Qn (quý) hoặc YYYY (năm)."""
    year: int
    month: int | None = None
    quarter: int | None = None

    def __post_init__(self) -> None:
        if self.month is not None and self.quarter is not None:
            raise ValueError("Kỳ kế toán không thể vừa là tháng vừa là quý")
        if self.month is not None and not 1 <= self.month <= 12:
            raise ValueError(f"Tháng không hợp lệ: {self.month}")
        if self.quarter is not None and not 1 <= self.quarter <= 4:
            raise ValueError(f"Quý không hợp lệ: {self.quarter}")

    @classmethod
    def parse(cls, value: str) -> "AccountingPeriod":
        text = value.strip() if value else ""
        if m := _MONTH_RE.match(text):
            return cls(year=int(m.group(1)), month=int(m.group(2)))
        if m := _QUARTER_RE.match(text):
            return cls(year=int(m.group(1)), quarter=int(m.group(2)))
        if m := _YEAR_RE.match(text):
            return cls(year=int(m.group(1)))
        raise ValueError(f"Định dạng kỳ kế toán không hợp lệ: {value!r}")

    @classmethod
    def month_of(cls, day: date) -> "AccountingPeriod":
        return cls(year=day.year, month=day.month)

    @property
    def period_type(self) -> PeriodType:
        if self.month is not None:
            return PeriodType.MONTH
        if self.quarter is not None:
            return PeriodType.QUARTER
        return PeriodType.YEAR

    @property
    def start_date(self) -> date:
        if self.month is not None:
            return date(self.year, self.month, 1)
        if self.quarter is not None:
            return date(self.year, (self.quarter - 1) * 3 + 1, 1)
        return date(self.year, 1, 1)

    @property
    def end_date(self) -> date:
        if self.month is not None:
            last_month = self.month
        elif self.quarter is not None:
            last_month = self.quarter * 3
        else:
            last_month = 12
        return date(self.year, last_month, calendar.monthrange(self.year, last_month)[1])

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def is_first_of_year(self) -> bool:
        return self.month in (None, 1) and self.quarter in (None, 1)

    def previous(self) -> "AccountingPeriod":
        if self.month is not None:
            if self.month == 1:
                return AccountingPeriod(self.year - 1, month=12)
            return AccountingPeriod(self.year, month=self.month - 1)
        if self.quarter is not None:
            if self.quarter == 1:
                return AccountingPeriod(self.year - 1, quarter=4)
            return AccountingPeriod(self.year, quarter=self.quarter - 1)
        return AccountingPeriod(self.year - 1)

    def next(self) -> "AccountingPeriod":
        if self.month is not None:
            if self.month == 12:
                return AccountingPeriod(self.year + 1, month=1)
            return AccountingPeriod(self.year, month=self.month + 1)
        if self.quarter is not None:
            if self.quarter == 4:
                return AccountingPeriod(self.year + 1, quarter=1)
            return AccountingPeriod(self.year, quarter=self.quarter + 1)
        return AccountingPeriod(self.year + 1)

    def covering_periods(self) -> list["AccountingPeriod"]:
        """Các kỳ bao trùm một tháng: chính tháng đó, quý và năm chứa nó."""
        if self.month is None:
            raise ValueError("Chỉ áp dụng cho kỳ tháng")
        return [
            self,
            AccountingPeriod(self.year, quarter=(self.month - 1) // 3 + 1),
            AccountingPeriod(self.year),
        ]

    @property
    def label(self) -> str:
        if self.month is not None:
            return f"Tháng {self.month}/{self.year}"
        if self.quarter is not None:
            return f"Quý {self.quarter}/{self.year}"
        return f"Năm {self.year}"

    def __str__(self) -> str:
        if self.month is not None:
            return f"{self.year}-{self.month:02d}"
        if self.quarter is not None:
            return f"{self.year}-Q{self.quarter}"
        return str(self.year)


@dataclass(frozen=True, slots=True)
class LedgerLine:
    """Dòng bút toán: một tài khoản với số tiền Nợ hoặc Có."""
    account_code: str
    debit_amount: Decimal = ZERO
    credit_amount: Decimal = ZERO
    description: str = ""
    partner_code: str | None = None     # Mã đối tượng (KH, NCC, NV)
    department_code: str | None = None
    project_code: str | None = None

    def __post_init__(self) -> None:
        debit = Decimal(self.debit_amount or 0)
        credit = Decimal(self.credit_amount or 0)
        if debit < 0 or credit < 0:
            raise ValueError("Số tiền Nợ/Có không được âm")
        object.__setattr__(self, "debit_amount", debit)
        object.__setattr__(self, "credit_amount", credit)

    @classmethod
    def debit(cls, account_code: str, amount: Decimal | int, description: str = "", **tags: str) -> "LedgerLine":
        return cls(account_code=account_code, debit_amount=Decimal(amount), description=description, **tags)

    @classmethod
    def credit(cls, account_code: str, amount: Decimal | int, description: str = "", **tags: str) -> "LedgerLine":
        return cls(account_code=account_code, credit_amount=Decimal(amount), description=description, **tags)


@dataclass(frozen=True, slots=True)
class EmployeeLine:
    """Dòng nhân viên cho bảng lương và báo cáo BHXH."""
    employee_code: str
    employee_name: str
    insurance_salary: Decimal
    gross_salary: Decimal = ZERO
    dependents: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "insurance_salary", Decimal(self.insurance_salary))
        object.__setattr__(self, "gross_salary", Decimal(self.gross_salary))
        if self.insurance_salary < 0 or self.gross_salary < 0:
            raise ValueError("Mức lương không được âm")
        if self.dependents < 0:
            raise ValueError("Số người phụ thuộc không được âm")


@dataclass(frozen=True, slots=True)
class VatFigures:
    """Chỉ tiêu tờ khai 01/GTGT dùng cho tính thuế phải nộp."""
    output_vat: Decimal = ZERO                    # [27]
    deductible_input_vat: Decimal = ZERO          # [30]
    increase_adjustment: Decimal = ZERO           # [31]
    decrease_adjustment: Decimal = ZERO           # [32]
    carry_forward_from_previous: Decimal = ZERO   # [33]

    def __post_init__(self) -> None:
        for name in (
            "output_vat",
            "deductible_input_vat",
            "increase_adjustment",
            "decrease_adjustment",
            "carry_forward_from_previous",
        ):
            object.__setattr__(self, name, Decimal(getattr(self, name)))
