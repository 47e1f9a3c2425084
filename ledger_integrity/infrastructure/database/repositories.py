"""
SQL repositories - Lưu chứng từ, nhật ký audit và khóa kỳ qua SQLModel.
"""

import threading
from dataclasses import replace

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, sessionmaker

from ledger_integrity.domain.entities import AuditRecord, LedgerDocument, PeriodLock, as_utc
from ledger_integrity.domain.exceptions import ConcurrentModificationError
from ledger_integrity.domain.services import (
    IAuditLogRepository,
    IDocumentRepository,
    IPeriodLockRepository,
)
from ledger_integrity.domain.value_objects import AuditAction, PeriodStatus

from .codec import (
    dump_changes,
    dump_document,
    dump_snapshot,
    load_changes,
    load_document,
    load_snapshot,
)
from .models import AuditLogRow, LedgerDocumentRow, PeriodLockRow


def _to_document(row: LedgerDocumentRow) -> LedgerDocument:
    return load_document(
        id=row.id,
        document_type=row.document_type,
        document_number=row.document_number,
        document_date=row.document_date,
        status=row.status,
        version=row.version,
        updated_at=row.updated_at,
        payload=row.payload,
    )


def _row_values(document: LedgerDocument) -> dict:
    return {
        "document_type": document.document_type.value,
        "document_number": document.document_number,
        "document_date": document.document_date,
        "status": document.status.value,
        "version": document.version,
        "updated_at": document.updated_at,
        "payload": dump_document(document),
    }


class SqlDocumentRepository(IDocumentRepository):

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._previous: dict[str, LedgerDocument] = {}
        self._lock = threading.Lock()

    def get(self, document_id: str) -> LedgerDocument | None:
        with self._session_factory() as session:
            row = session.get(LedgerDocumentRow, document_id)
            return _to_document(row) if row is not None else None

    def add(self, document: LedgerDocument) -> LedgerDocument:
        with self._session_factory() as session:
            session.add(LedgerDocumentRow(id=document.id, **_row_values(document)))
            session.commit()
        return document

    def save(self, document: LedgerDocument, expected_version: int) -> LedgerDocument:
        with self._session_factory() as session:
            current = session.get(LedgerDocumentRow, document.id)
            if current is None or current.version != expected_version:
                actual = current.version if current is not None else 0
                raise ConcurrentModificationError(document.id, expected_version, actual)
            previous = _to_document(current)
            result = session.execute(
                update(LedgerDocumentRow)
                .where(LedgerDocumentRow.id == document.id, LedgerDocumentRow.version == expected_version)
                .values(**_row_values(document))
            )
            if result.rowcount != 1:
                session.rollback()
                raise ConcurrentModificationError(document.id, expected_version, expected_version + 1)
            session.commit()
        with self._lock:
            self._previous[document.id] = previous
        return document

    def revert(self, document: LedgerDocument) -> None:
        with self._lock:
            previous = self._previous.pop(document.id, None)
        with self._session_factory() as session:
            row = session.get(LedgerDocumentRow, document.id)
            if row is None:
                return
            if previous is None:
                session.delete(row)
            else:
                for key, value in _row_values(previous).items():
                    setattr(row, key, value)
            session.commit()

    def list_all(self) -> list[LedgerDocument]:
        with self._session_factory() as session:
            rows = session.scalars(select(LedgerDocumentRow)).all()
            return [_to_document(row) for row in rows]


def _to_record(row: AuditLogRow) -> AuditRecord:
    return AuditRecord(
        id=row.id,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        action=AuditAction(row.action),
        actor_id=row.actor_id,
        actor_name=row.actor_name,
        actor_role=row.actor_role,
        timestamp=as_utc(row.timestamp),
        entity_name=row.entity_name,
        before=load_snapshot(row.before),
        after=load_snapshot(row.after),
        changes=load_changes(row.changes),
        reason=row.reason,
        related_period=row.related_period,
        corrects_record_id=row.corrects_record_id,
        sequence=row.sequence,
        entity_sequence=row.entity_sequence,
    )


class SqlAuditLogRepository(IAuditLogRepository):
    """Chỉ có INSERT và SELECT; không có UPDATE hay DELETE trên bảng audit_log."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _next_entity_sequence(self, session: Session, record: AuditRecord) -> int:
        count = session.scalar(
            select(func.count()).select_from(AuditLogRow).where(
                AuditLogRow.entity_type == record.entity_type,
                AuditLogRow.entity_id == record.entity_id,
            )
        )
        return (count or 0) + 1

    def append(self, record: AuditRecord) -> AuditRecord:
        with self._session_factory() as session:
            row = AuditLogRow(
                id=record.id,
                entity_type=record.entity_type,
                entity_id=record.entity_id,
                entity_sequence=self._next_entity_sequence(session, record),
                entity_name=record.entity_name,
                action=record.action.value,
                actor_id=record.actor_id,
                actor_name=record.actor_name,
                actor_role=record.actor_role,
                timestamp=record.timestamp,
                reason=record.reason,
                related_period=record.related_period,
                corrects_record_id=record.corrects_record_id,
                before=dump_snapshot(record.before),
                after=dump_snapshot(record.after),
                changes=dump_changes(record.changes),
            )
            session.add(row)
            session.flush()
            stored = replace(record, sequence=row.sequence, entity_sequence=row.entity_sequence)
            session.commit()
        return stored

    def get(self, record_id: str) -> AuditRecord | None:
        with self._session_factory() as session:
            row = session.scalars(select(AuditLogRow).where(AuditLogRow.id == record_id)).first()
            return _to_record(row) if row is not None else None

    def list_all(self) -> list[AuditRecord]:
        with self._session_factory() as session:
            rows = session.scalars(select(AuditLogRow).order_by(AuditLogRow.sequence)).all()
            return [_to_record(row) for row in rows]

    def history(self, entity_type: str, entity_id: str) -> list[AuditRecord]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(AuditLogRow)
                .where(AuditLogRow.entity_type == entity_type, AuditLogRow.entity_id == entity_id)
                .order_by(AuditLogRow.entity_sequence)
            ).all()
            return [_to_record(row) for row in rows]


def _to_lock(row: PeriodLockRow) -> PeriodLock:
    return PeriodLock(
        period=row.period,
        status=PeriodStatus(row.status),
        locked_at=as_utc(row.locked_at),
        locked_by=row.locked_by,
        locked_by_name=row.locked_by_name,
        unlocked_at=as_utc(row.unlocked_at),
        unlocked_by=row.unlocked_by,
        unlock_reason=row.unlock_reason,
        version=row.version,
    )


class SqlPeriodLockRepository(IPeriodLockRepository):

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, period: str) -> PeriodLock | None:
        with self._session_factory() as session:
            row = session.get(PeriodLockRow, period)
            return _to_lock(row) if row is not None else None

    def save(self, lock: PeriodLock, expected_version: int | None = None) -> PeriodLock:
        with self._session_factory() as session:
            row = session.get(PeriodLockRow, lock.period)
            if expected_version is not None:
                actual = row.version if row is not None else 0
                if actual != expected_version:
                    raise ConcurrentModificationError(lock.period, expected_version, actual)
            if row is None:
                row = PeriodLockRow(period=lock.period)
                session.add(row)
            row.status = lock.status.value
            row.locked_at = lock.locked_at
            row.locked_by = lock.locked_by
            row.locked_by_name = lock.locked_by_name
            row.unlocked_at = lock.unlocked_at
            row.unlocked_by = lock.unlocked_by
            row.unlock_reason = lock.unlock_reason
            row.version = lock.version
            session.commit()
        return lock

    def list_all(self) -> list[PeriodLock]:
        with self._session_factory() as session:
            rows = session.scalars(select(PeriodLockRow).order_by(PeriodLockRow.period)).all()
            return [_to_lock(row) for row in rows]
