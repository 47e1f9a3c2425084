"""Infrastructure layer."""

from ledger_integrity.infrastructure.database import SessionLocal, init_db
from ledger_integrity.infrastructure.database.models import AuditLogRow, LedgerDocumentRow, PeriodLockRow
from ledger_integrity.infrastructure.memory import (
    InMemoryAuditLogRepository,
    InMemoryDocumentRepository,
    InMemoryPeriodLockRepository,
)
