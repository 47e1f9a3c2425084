"""
Kiểm tra bút toán kép (Phụ lục III - TT99/2025): Tổng Nợ = Tổng Có.

Mọi vi phạm đều được báo cáo, không dừng ở lỗi đầu tiên, để người dùng
thấy toàn bộ vấn đề của chứng từ.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from .exceptions import LinesInvalidError, UnbalancedError
from .value_objects import ZERO, LedgerLine

DEFAULT_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class ValidationError:
    code: str
    message: str
    line_index: int | None = None
    imbalance: Decimal | None = None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "line_index": self.line_index,
            "imbalance": str(self.imbalance) if self.imbalance is not None else None,
        }


def summarize_lines(lines: Iterable[LedgerLine]) -> tuple[Decimal, Decimal]:
    total_debit = ZERO
    total_credit = ZERO
    for line in lines:
        total_debit += line.debit_amount
        total_credit += line.credit_amount
    return total_debit, total_credit


def validate_lines(
    lines: Sequence[LedgerLine],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> list[ValidationError]:
    errors: list[ValidationError] = []

    if not lines:
        errors.append(ValidationError("EMPTY_LINES", "Chứng từ phải có ít nhất một dòng bút toán"))

    for idx, line in enumerate(lines):
        if not (line.account_code or "").strip():
            errors.append(ValidationError(
                "MISSING_ACCOUNT", f"Dòng {idx + 1}: thiếu mã tài khoản", line_index=idx
            ))

    for idx, line in enumerate(lines):
        if line.debit_amount > 0 and line.credit_amount > 0:
            errors.append(ValidationError(
                "BOTH_SIDES", f"Dòng {idx + 1}: không được ghi cả Nợ và Có", line_index=idx
            ))

    for idx, line in enumerate(lines):
        if line.debit_amount == 0 and line.credit_amount == 0:
            errors.append(ValidationError(
                "NO_AMOUNT", f"Dòng {idx + 1}: chưa có số tiền Nợ hoặc Có", line_index=idx
            ))

    total_debit, total_credit = summarize_lines(lines)
    imbalance = total_debit - total_credit
    if abs(imbalance) > tolerance:
        errors.append(ValidationError(
            "UNBALANCED",
            f"Bút toán không cân đối: Tổng Nợ = {total_debit:,.0f}, "
            f"Tổng Có = {total_credit:,.0f}",
            imbalance=imbalance,
        ))

    return errors


def ensure_postable(lines: Sequence[LedgerLine], tolerance: Decimal = DEFAULT_TOLERANCE) -> None:
    """Raise nếu bộ dòng không ghi sổ được.

    Chỉ lệch cân đối thì raise UnbalancedError; có lỗi cấu trúc thì
    LinesInvalidError mang đầy đủ danh sách lỗi.
    """
    errors = validate_lines(lines, tolerance)
    if not errors:
        return
    if all(e.code == "UNBALANCED" for e in errors):
        total_debit, total_credit = summarize_lines(lines)
        raise UnbalancedError(
            imbalance=errors[0].imbalance,
            total_debit=total_debit,
            total_credit=total_credit,
            errors=errors,
        )
    raise LinesInvalidError(errors)
