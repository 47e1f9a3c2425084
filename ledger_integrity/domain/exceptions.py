"""
Domain exceptions - Lỗi nghiệp vụ có kiểu, mỗi lỗi mang mã máy đọc được.

    LedgerError
    +-- LinesInvalidError
    |   +-- UnbalancedError
    +-- InvalidTransitionError
    +-- ReasonRequiredError
    +-- NotEditableError
    +-- ConcurrentModificationError
    +-- DocumentNotFoundError
    +-- AuditRecordNotFoundError
    +-- PeriodLockedError
    +-- PeriodLockError
    +-- PermissionDeniedError
"""

from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .validation import ValidationError


class LedgerError(Exception):
    code: str = "LEDGER_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.message}


class LinesInvalidError(LedgerError):
    """Các dòng bút toán không hợp lệ; mang toàn bộ danh sách lỗi."""
    code = "INVALID_LINES"

    def __init__(self, errors: "list[ValidationError]", message: str | None = None):
        self.errors = list(errors)
        super().__init__(message or "; ".join(e.message for e in self.errors))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = [e.to_dict() for e in self.errors]
        return data


class UnbalancedError(LinesInvalidError):
    """Tổng Nợ != Tổng Có."""
    code = "UNBALANCED"

    def __init__(
        self,
        imbalance: Decimal,
        total_debit: Decimal,
        total_credit: Decimal,
        errors: "list[ValidationError] | None" = None,
    ):
        self.imbalance = imbalance
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            errors or [],
            f"Bút toán không cân đối: Tổng Nợ = {total_debit:,.0f}, "
            f"Tổng Có = {total_credit:,.0f}, chênh lệch {imbalance:,.0f}",
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["imbalance"] = str(self.imbalance)
        return data


class InvalidTransitionError(LedgerError):
    code = "INVALID_TRANSITION"

    def __init__(self, from_state: str, action: str, document_type: str | None = None):
        self.from_state = from_state
        self.action = action
        self.document_type = document_type
        super().__init__(
            f"Không thể thực hiện {action} từ trạng thái {from_state}"
            + (f" ({document_type})" if document_type else "")
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(from_state=self.from_state, action=self.action)
        return data


class ReasonRequiredError(LedgerError):
    code = "REASON_REQUIRED"

    def __init__(self, action: str, message: str | None = None):
        self.action = action
        super().__init__(message or f'Hành động "{action}" bắt buộc phải có lý do')


class NotEditableError(LedgerError):
    code = "NOT_EDITABLE"

    def __init__(self, document_id: str, status: str):
        self.document_id = document_id
        self.status = status
        super().__init__(f"Chứng từ {document_id} ở trạng thái {status}, không thể sửa")


class ConcurrentModificationError(LedgerError):
    """Xung đột phiên bản; người gọi cần tải lại dữ liệu rồi thử lại."""
    code = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_id: str, expected_version: int, actual_version: int):
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Dữ liệu {entity_id} đã bị thay đổi (phiên bản {actual_version}, "
            f"mong đợi {expected_version})"
        )


class DocumentNotFoundError(LedgerError):
    code = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Không tìm thấy chứng từ {document_id}")


class AuditRecordNotFoundError(LedgerError):
    code = "AUDIT_RECORD_NOT_FOUND"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Không tìm thấy bản ghi audit {record_id}")


class PeriodLockedError(LedgerError):
    code = "PERIOD_LOCKED"

    def __init__(self, period: str, label: str | None = None):
        self.period = period
        super().__init__(
            f"Kỳ kế toán {label or period} đã khóa. Không thể thay đổi số liệu, "
            "vui lòng dùng bút toán điều chỉnh."
        )


class PeriodLockError(LedgerError):
    """Không đáp ứng điều kiện khóa/mở khóa kỳ."""
    code = "PERIOD_LOCK_REJECTED"


class PermissionDeniedError(LedgerError):
    code = "PERMISSION_DENIED"
