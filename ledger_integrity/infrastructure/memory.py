"""
In-memory repositories - Kho dữ liệu mặc định, an toàn đa luồng.
"""

import threading
from collections import defaultdict
from dataclasses import replace

from ledger_integrity.domain.entities import AuditRecord, LedgerDocument, PeriodLock
from ledger_integrity.domain.exceptions import ConcurrentModificationError
from ledger_integrity.domain.services import (
    IAuditLogRepository,
    IDocumentRepository,
    IPeriodLockRepository,
)


class InMemoryDocumentRepository(IDocumentRepository):

    def __init__(self):
        self._documents: dict[str, LedgerDocument] = {}
        self._previous: dict[str, LedgerDocument] = {}
        self._lock = threading.Lock()

    def get(self, document_id: str) -> LedgerDocument | None:
        with self._lock:
            return self._documents.get(document_id)

    def add(self, document: LedgerDocument) -> LedgerDocument:
        with self._lock:
            if document.id in self._documents:
                raise ValueError(f"Chứng từ {document.id} đã tồn tại")
            self._documents[document.id] = document
        return document

    def save(self, document: LedgerDocument, expected_version: int) -> LedgerDocument:
        with self._lock:
            current = self._documents.get(document.id)
            actual = current.version if current is not None else 0
            if actual != expected_version:
                raise ConcurrentModificationError(document.id, expected_version, actual)
            if current is not None:
                self._previous[document.id] = current
            self._documents[document.id] = document
        return document

    def revert(self, document: LedgerDocument) -> None:
        with self._lock:
            previous = self._previous.pop(document.id, None)
            if previous is None:
                self._documents.pop(document.id, None)
            else:
                self._documents[document.id] = previous

    def list_all(self) -> list[LedgerDocument]:
        with self._lock:
            return list(self._documents.values())


class InMemoryAuditLogRepository(IAuditLogRepository):
    """
    Sequence toàn cục cấp dưới một khóa ngắn; thứ tự theo thực thể giữ bởi
    khóa riêng của từng thực thể.
    """

    def __init__(self):
        self._records: list[AuditRecord] = []
        self._by_id: dict[str, AuditRecord] = {}
        self._by_entity: dict[tuple[str, str], list[AuditRecord]] = defaultdict(list)
        self._entity_locks: dict[tuple[str, str], threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._store_lock = threading.Lock()
        self._sequence = 0

    def _entity_lock(self, key: tuple[str, str]) -> threading.Lock:
        with self._registry_lock:
            lock = self._entity_locks.get(key)
            if lock is None:
                lock = self._entity_locks[key] = threading.Lock()
            return lock

    def append(self, record: AuditRecord) -> AuditRecord:
        key = (record.entity_type, record.entity_id)
        with self._entity_lock(key):
            with self._store_lock:
                if record.id in self._by_id:
                    raise ValueError(f"Bản ghi audit {record.id} đã tồn tại")
                entity_sequence = len(self._by_entity[key]) + 1
                self._sequence += 1
                stored = replace(record, sequence=self._sequence, entity_sequence=entity_sequence)
                self._records.append(stored)
                self._by_id[stored.id] = stored
                self._by_entity[key].append(stored)
        return stored

    def get(self, record_id: str) -> AuditRecord | None:
        with self._store_lock:
            return self._by_id.get(record_id)

    def list_all(self) -> list[AuditRecord]:
        with self._store_lock:
            return list(self._records)

    def history(self, entity_type: str, entity_id: str) -> list[AuditRecord]:
        with self._store_lock:
            return list(self._by_entity.get((entity_type, entity_id), []))


class InMemoryPeriodLockRepository(IPeriodLockRepository):

    def __init__(self):
        self._locks: dict[str, PeriodLock] = {}
        self._lock = threading.Lock()

    def get(self, period: str) -> PeriodLock | None:
        with self._lock:
            return self._locks.get(period)

    def save(self, lock: PeriodLock, expected_version: int | None = None) -> PeriodLock:
        with self._lock:
            current = self._locks.get(lock.period)
            if expected_version is not None:
                actual = current.version if current is not None else 0
                if actual != expected_version:
                    raise ConcurrentModificationError(lock.period, expected_version, actual)
            self._locks[lock.period] = lock
        return lock

    def list_all(self) -> list[PeriodLock]:
        with self._lock:
            return sorted(self._locks.values(), key=lambda item: item.period)
