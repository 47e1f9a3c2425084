"""
Period Lock Service - Khóa sổ / mở khóa sổ kế toán theo kỳ.

Khóa kỳ chặn các thao tác ghi số dư của chứng từ thuộc kỳ đó. Mở khóa chỉ
dành cho quản trị viên và bắt buộc ghi lý do.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date, datetime

from ledger_integrity.core.config import StatutoryConfig
from ledger_integrity.core.security import RBACService
from ledger_integrity.domain.aggregation import SummaryScope, summarize
from ledger_integrity.domain.entities import ActorContext, PeriodLock, utcnow
from ledger_integrity.domain.exceptions import (
    PeriodLockError,
    PermissionDeniedError,
    ReasonRequiredError,
)
from ledger_integrity.domain.services import IDocumentRepository, IPeriodLockRepository
from ledger_integrity.domain.value_objects import (
    AccountingPeriod,
    AuditAction,
    AuditEntityType,
    DocumentStatus,
    PeriodStatus,
)

from .audit_recorder import AuditRecorder
from .locking import CommitGate

logger = logging.getLogger(__name__)

REQUIRED = "REQUIRED"
WARNING = "WARNING"


@dataclass(frozen=True)
class LockCheck:
    id: str
    name: str
    severity: str
    passed: bool
    details: str = ""


@dataclass(frozen=True)
class PeriodChecklist:
    period: str
    checks: list[LockCheck] = field(default_factory=list)

    @property
    def can_lock(self) -> bool:
        return all(c.passed for c in self.checks if c.severity == REQUIRED)

    @property
    def missing_checks(self) -> list[str]:
        return [c.name for c in self.checks if c.severity == REQUIRED and not c.passed]


class PeriodLockService:

    def __init__(
        self,
        locks: IPeriodLockRepository,
        documents: IDocumentRepository,
        recorder: AuditRecorder,
        config: StatutoryConfig,
        gate: CommitGate | None = None,
        clock: Callable[[], datetime] = utcnow,
        rbac: RBACService | None = None,
    ):
        self.locks = locks
        self.documents = documents
        self.recorder = recorder
        self.config = config
        self.rbac = rbac or RBACService()
        self._gate = gate or CommitGate()
        self._clock = clock

    def get(self, period: str) -> PeriodLock:
        key = str(AccountingPeriod.parse(period))
        return self.locks.get(key) or PeriodLock(period=key)

    def list_locks(self) -> list[PeriodLock]:
        return self.locks.list_all()

    def is_locked(self, period: str) -> bool:
        lock = self.locks.get(str(AccountingPeriod.parse(period)))
        return lock is not None and lock.is_locked

    def locking_period(self, day: date) -> AccountingPeriod | None:
        """Kỳ đang khóa bao trùm ngày (tháng, quý hoặc năm chứa ngày đó)."""
        for candidate in AccountingPeriod.month_of(day).covering_periods():
            if self.is_locked(str(candidate)):
                return candidate
        return None

    def is_date_locked(self, day: date) -> bool:
        return self.locking_period(day) is not None

    def checklist(self, period: str) -> PeriodChecklist:
        parsed = AccountingPeriod.parse(period)
        key = str(parsed)
        documents = [d for d in self.documents.list_all() if parsed.contains(d.document_date)]
        summary = summarize(documents, SummaryScope(period=key), self.config)

        previous = parsed.previous()
        previous_ok = parsed.is_first_of_year() or self.is_locked(str(previous))
        drafts = sum(1 for d in documents if d.status == DocumentStatus.DRAFT)

        checks = [
            LockCheck(
                id="trial_balance",
                name="Bảng cân đối TK",
                severity=REQUIRED,
                passed=summary.is_balanced,
                details=f"Tổng Nợ {summary.total_debit:,.0f} / Tổng Có {summary.total_credit:,.0f}",
            ),
            LockCheck(
                id="previous_period",
                name="Kỳ trước đã khóa",
                severity=REQUIRED,
                passed=previous_ok,
                details="" if previous_ok else f"{previous.label} chưa khóa",
            ),
            LockCheck(
                id="no_draft_entries",
                name="Không còn chứng từ nháp",
                severity=WARNING,
                passed=drafts == 0,
                details=f"Còn {drafts} chứng từ nháp" if drafts else "",
            ),
        ]
        return PeriodChecklist(period=key, checks=checks)

    def lock_period(self, period: str, actor: ActorContext) -> PeriodLock:
        parsed = AccountingPeriod.parse(period)
        key = str(parsed)
        if not self.rbac.can_lock_period(actor.role):
            logger.warning("lock %s rejected: role %s", key, actor.role)
            raise PermissionDeniedError("Bạn không có quyền khóa sổ kế toán")

        with self._gate.exclusive():
            existing = self.locks.get(key)
            if existing is not None and existing.is_locked:
                raise PeriodLockError(f"Kỳ {parsed.label} đã được khóa")
            checklist = self.checklist(key)
            if not checklist.can_lock:
                raise PeriodLockError(
                    f"Không thể khóa kỳ {parsed.label}. Chưa đáp ứng: {', '.join(checklist.missing_checks)}"
                )

            base = existing or PeriodLock(period=key, version=0)
            locked = replace(
                base,
                status=PeriodStatus.LOCKED,
                locked_at=self._clock(),
                locked_by=actor.actor_id,
                locked_by_name=actor.actor_name,
                version=base.version + 1,
            )
            self._commit(key, existing, locked, AuditAction.LOCK, actor, None)

        logger.info("period %s locked by %s", key, actor.actor_id)
        return locked

    def unlock_period(self, period: str, actor: ActorContext, reason: str | None) -> PeriodLock:
        parsed = AccountingPeriod.parse(period)
        key = str(parsed)
        self.recorder.ensure_reason(AuditAction.UNLOCK, reason)
        if not self.rbac.can_unlock_period(actor.role):
            logger.warning("unlock %s rejected: role %s", key, actor.role)
            raise PermissionDeniedError("Chỉ Admin mới có quyền mở khóa sổ kế toán")
        minimum = self.config.unlock_reason_min_length
        if len(reason.strip()) < minimum:
            raise ReasonRequiredError(
                AuditAction.UNLOCK.value, f"Lý do mở khóa phải có ít nhất {minimum} ký tự"
            )

        with self._gate.exclusive():
            existing = self.locks.get(key)
            if existing is None or not existing.is_locked:
                raise PeriodLockError(f"Kỳ {parsed.label} đang mở, không cần mở khóa")
            unlocked = replace(
                existing,
                status=PeriodStatus.OPEN,
                unlocked_at=self._clock(),
                unlocked_by=actor.actor_id,
                unlock_reason=reason.strip(),
                version=existing.version + 1,
            )
            self._commit(key, existing, unlocked, AuditAction.UNLOCK, actor, reason)

        logger.info("period %s unlocked by %s", key, actor.actor_id)
        return unlocked

    def _commit(
        self,
        key: str,
        existing: PeriodLock | None,
        updated: PeriodLock,
        action: AuditAction,
        actor: ActorContext,
        reason: str | None,
    ) -> None:
        self.locks.save(updated, expected_version=existing.version if existing else 0)
        try:
            self.recorder.record(
                entity_type=AuditEntityType.PERIOD_LOCK,
                entity_id=key,
                action=action,
                before=existing.audit_snapshot() if existing else None,
                after=updated.audit_snapshot(),
                actor=actor,
                reason=reason,
                entity_name=AccountingPeriod.parse(key).label,
                related_period=key,
            )
        except Exception:
            logger.exception("audit append failed, restoring period %s", key)
            restored = existing or PeriodLock(period=key)
            self.locks.save(replace(restored, version=updated.version + 1))
            raise
