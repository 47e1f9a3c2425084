"""
Domain Services - Giao diện kho dữ liệu cho chứng từ, nhật ký audit và khóa kỳ.
Áp dụng nghiệp vụ kế toán theo Thông tư 99/2025/TT-BTC.
"""

from abc import ABC, abstractmethod

from .entities import AuditRecord, LedgerDocument, PeriodLock


class IDocumentRepository(ABC):

    @abstractmethod
    def get(self, document_id: str) -> LedgerDocument | None:
        ...

    @abstractmethod
    def add(self, document: LedgerDocument) -> LedgerDocument:
        ...

    @abstractmethod
    def save(self, document: LedgerDocument, expected_version: int) -> LedgerDocument:
        """
        Ghi đè chứng từ nếu phiên bản đang lưu bằng expected_version.
        Ngược lại ném ConcurrentModificationError, không ghi gì.
        """
        ...

    @abstractmethod
    def revert(self, document: LedgerDocument) -> None:
        """Khôi phục bản trước đó khi ghi audit thất bại."""
        ...

    @abstractmethod
    def list_all(self) -> list[LedgerDocument]:
        ...


class IAuditLogRepository(ABC):
    """Nhật ký audit chỉ ghi thêm. Không có sửa, không có xóa."""

    @abstractmethod
    def append(self, record: AuditRecord) -> AuditRecord:
        """Gán sequence (toàn cục) và entity_sequence (theo thực thể) rồi lưu."""
        ...

    @abstractmethod
    def get(self, record_id: str) -> AuditRecord | None:
        ...

    @abstractmethod
    def list_all(self) -> list[AuditRecord]:
        ...

    @abstractmethod
    def history(self, entity_type: str, entity_id: str) -> list[AuditRecord]:
        ...


class IPeriodLockRepository(ABC):

    @abstractmethod
    def get(self, period: str) -> PeriodLock | None:
        ...

    @abstractmethod
    def save(self, lock: PeriodLock, expected_version: int | None = None) -> PeriodLock:
        ...

    @abstractmethod
    def list_all(self) -> list[PeriodLock]:
        ...
