"""Application layer - Use cases and DTOs."""

from ledger_integrity.application.audit_recorder import AuditLogFilter, AuditLogPage, AuditRecorder
from ledger_integrity.application.ledger_service import LedgerService
from ledger_integrity.application.period_lock_service import PeriodChecklist, PeriodLockService
