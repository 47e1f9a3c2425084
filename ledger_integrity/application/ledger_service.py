"""
Ledger Service - Điểm vào duy nhất cho mọi thao tác ghi trên chứng từ.

Mỗi thao tác đi theo thứ tự: kiểm tra hợp lệ -> chuyển trạng thái -> ghi
audit. Thao tác trên cùng một chứng từ được tuần tự hóa bằng khóa theo id;
người đọc một chứng từ cũng đi qua khóa đó nên không bao giờ thấy chứng từ
mà thiếu bản ghi audit. Commit của các chứng từ khác nhau chạy song song,
chỉ khóa/mở khóa kỳ và các lần đọc toàn cục mới chặn chúng.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import date, datetime

from ledger_integrity.core.config import StatutoryConfig
from ledger_integrity.domain.aggregation import (
    LedgerSummary,
    SummaryScope,
    build_insurance_lines,
    build_payroll_lines,
    build_vat_lines,
    is_overdue,
    summarize,
)
from ledger_integrity.domain.entities import (
    ActorContext,
    AuditRecord,
    DocumentDraft,
    DocumentPatch,
    LedgerDocument,
    utcnow,
)
from ledger_integrity.domain.exceptions import (
    ConcurrentModificationError,
    DocumentNotFoundError,
    NotEditableError,
    PeriodLockedError,
)
from ledger_integrity.domain.services import (
    IAuditLogRepository,
    IDocumentRepository,
    IPeriodLockRepository,
)
from ledger_integrity.domain.state_machine import DEFAULT_MACHINES, DocumentStateMachine
from ledger_integrity.domain.validation import ValidationError, ensure_postable, validate_lines
from ledger_integrity.domain.value_objects import (
    AccountingPeriod,
    AuditAction,
    AuditEntityType,
    DocumentStatus,
    DocumentType,
    EmployeeLine,
    LedgerLine,
    VatFigures,
)
from ledger_integrity.infrastructure.memory import (
    InMemoryAuditLogRepository,
    InMemoryDocumentRepository,
    InMemoryPeriodLockRepository,
)

from .audit_recorder import AuditLogFilter, AuditLogPage, AuditRecorder
from .locking import CommitGate, KeyedLocks
from .period_lock_service import PeriodLockService

logger = logging.getLogger(__name__)

DOCUMENT_PREFIXES = {
    DocumentType.VOUCHER: "CT",
    DocumentType.PAYROLL: "BL",
    DocumentType.INSURANCE_REPORT: "BHXH",
    DocumentType.VAT_DECLARATION: "01GTGT",
}


class LedgerService:
    """
    Facade của engine: validate_lines, create_document, update_document,
    transition, get_document, list_documents, get_summary, query_audit_log,
    document_history, is_period_locked.
    """

    def __init__(
        self,
        documents: IDocumentRepository | None = None,
        audit_log: IAuditLogRepository | None = None,
        period_locks: IPeriodLockRepository | None = None,
        config: StatutoryConfig | None = None,
        machines: dict[DocumentType, DocumentStateMachine] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.documents = documents or InMemoryDocumentRepository()
        self.config = config or StatutoryConfig()
        self.machines = machines or DEFAULT_MACHINES
        self.recorder = AuditRecorder(audit_log or InMemoryAuditLogRepository(), clock=clock)
        self._clock = clock
        self._gate = CommitGate()
        self._document_locks = KeyedLocks()
        self._number_locks = KeyedLocks()
        self.periods = PeriodLockService(
            period_locks or InMemoryPeriodLockRepository(),
            self.documents,
            self.recorder,
            self.config,
            gate=self._gate,
            clock=clock,
        )

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def validate_lines(self, lines: Sequence[LedgerLine]) -> list[ValidationError]:
        return validate_lines(lines, self.config.balance_tolerance)

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    def create_document(
        self,
        document_type: DocumentType | str,
        draft: DocumentDraft,
        actor: ActorContext,
    ) -> LedgerDocument:
        document_type = DocumentType(document_type)
        now = self._clock()
        lines = tuple(draft.lines) or self._generated_lines(document_type, draft.employees, draft.vat)
        month = AccountingPeriod.month_of(draft.document_date)

        with self._gate.shared(), self._number_locks.hold((document_type, str(month))):
            document = LedgerDocument(
                document_type=document_type,
                document_number=draft.document_number or self._next_number(document_type, draft.document_date),
                document_date=draft.document_date,
                description=draft.description,
                created_by=actor.actor_id,
                lines=lines,
                employees=tuple(draft.employees),
                vat=draft.vat,
                created_at=now,
                updated_at=now,
                updated_by=actor.actor_id,
            )
            self.documents.add(document)
            try:
                self._record(None, document, AuditAction.CREATE, actor, None)
            except Exception:
                logger.exception("audit append failed, discarding new document %s", document.id)
                self.documents.revert(document)
                raise

        logger.info("created %s %s (%s) by %s", document_type.value, document.document_number, document.id, actor.actor_id)
        return document

    def update_document(
        self,
        document_id: str,
        patch: DocumentPatch,
        actor: ActorContext,
        expected_version: int | None = None,
    ) -> LedgerDocument:
        with self._document_locks.hold(document_id):
            current = self._require(document_id)
            self._check_version(current, expected_version)
            if not self._machine(current).can_edit(current.status):
                logger.warning("update rejected: %s is %s", document_id, current.status.value)
                raise NotEditableError(document_id, current.status.value)

            updated = patch.apply(current, actor.actor_id, self._clock())
            if patch.lines is None and (patch.employees is not None or patch.vat is not None):
                generated = self._generated_lines(updated.document_type, updated.employees, updated.vat)
                if generated:
                    updated = replace(updated, lines=generated)

            with self._gate.shared():
                self._commit(current, updated, AuditAction.UPDATE, actor, None)

        logger.info("updated %s v%s by %s", document_id, updated.version, actor.actor_id)
        return updated

    def transition(
        self,
        document_id: str,
        action: AuditAction | str,
        actor: ActorContext,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> LedgerDocument:
        try:
            self.recorder.ensure_reason(AuditAction(action), reason)
        except ValueError:
            pass  # unknown action, rejected by the state machine below

        with self._document_locks.hold(document_id):
            current = self._require(document_id)
            self._check_version(current, expected_version)
            rule = self._machine(current).resolve(current.status, action)
            if rule.requires_balance:
                ensure_postable(current.lines, self.config.balance_tolerance)

            with self._gate.shared():
                if rule.affects_balances and not rule.privileged:
                    locked = self.periods.locking_period(current.document_date)
                    if locked is not None:
                        logger.warning(
                            "%s %s rejected: period %s locked", rule.action.value, document_id, locked
                        )
                        raise PeriodLockedError(str(locked), locked.label)
                updated = current.with_status(
                    rule.action.value,
                    rule.to_state,
                    actor.actor_id,
                    reason=reason.strip() if reason else None,
                    at=self._clock(),
                )
                self._commit(current, updated, rule.action, actor, reason)

        logger.info(
            "%s %s: %s -> %s by %s",
            rule.action.value, document_id, current.status.value, updated.status.value, actor.actor_id,
        )
        return updated

    def correct_audit_record(self, record_id: str, actor: ActorContext, reason: str) -> AuditRecord:
        with self._gate.shared():
            return self.recorder.record_correction(record_id, actor, reason)

    def lock_period(self, period: str, actor: ActorContext):
        return self.periods.lock_period(period, actor)

    def unlock_period(self, period: str, actor: ActorContext, reason: str | None):
        return self.periods.unlock_period(period, actor, reason)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get_document(self, document_id: str) -> LedgerDocument:
        with self._document_locks.hold(document_id):
            return self._require(document_id)

    def list_documents(
        self,
        scope: SummaryScope | None = None,
        status: DocumentStatus | None = None,
    ) -> list[LedgerDocument]:
        scope = scope or SummaryScope()
        with self._gate.exclusive():
            snapshot = self.documents.list_all()
        documents = [
            d for d in snapshot
            if scope.matches(d) and (status is None or d.status == status)
        ]
        return sorted(documents, key=lambda d: (d.document_date, d.document_number))

    def get_summary(self, scope: SummaryScope | None = None) -> LedgerSummary:
        with self._gate.exclusive():
            documents = self.documents.list_all()
        return summarize(documents, scope or SummaryScope(), self.config, self.machines)

    def overdue_documents(self, as_of: date) -> list[LedgerDocument]:
        return [
            d for d in self.list_documents()
            if d.document_type != DocumentType.VOUCHER and is_overdue(d, as_of, self.config, self.machines)
        ]

    def query_audit_log(
        self,
        filters: AuditLogFilter | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> AuditLogPage:
        return self.recorder.query(filters, page, page_size)

    def get_audit_record(self, record_id: str) -> AuditRecord:
        return self.recorder.get(record_id)

    def document_history(self, document_id: str) -> list[AuditRecord]:
        with self._document_locks.hold(document_id):
            document = self._require(document_id)
            return self.recorder.history(document.document_type.value, document.id)

    def is_period_locked(self, period: str) -> bool:
        return self.periods.is_locked(period)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _require(self, document_id: str) -> LedgerDocument:
        document = self.documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    def _machine(self, document: LedgerDocument) -> DocumentStateMachine:
        return self.machines[document.document_type]

    @staticmethod
    def _check_version(document: LedgerDocument, expected_version: int | None) -> None:
        if expected_version is not None and expected_version != document.version:
            raise ConcurrentModificationError(document.id, expected_version, document.version)

    def _commit(
        self,
        current: LedgerDocument,
        updated: LedgerDocument,
        action: AuditAction,
        actor: ActorContext,
        reason: str | None,
    ) -> None:
        self.documents.save(updated, expected_version=current.version)
        try:
            self._record(current, updated, action, actor, reason)
        except Exception:
            logger.exception("audit append failed, reverting %s to v%s", current.id, current.version)
            self.documents.revert(updated)
            raise

    def _record(
        self,
        before: LedgerDocument | None,
        after: LedgerDocument,
        action: AuditAction,
        actor: ActorContext,
        reason: str | None,
    ) -> AuditRecord:
        return self.recorder.record(
            entity_type=AuditEntityType(after.document_type.value),
            entity_id=after.id,
            action=action,
            before=before.audit_snapshot() if before is not None else None,
            after=after.audit_snapshot(),
            actor=actor,
            reason=reason,
            entity_name=after.document_number,
            related_period=after.period,
        )

    def _generated_lines(
        self,
        document_type: DocumentType,
        employees: Sequence[EmployeeLine],
        vat: VatFigures | None,
    ) -> tuple[LedgerLine, ...]:
        if document_type == DocumentType.PAYROLL and employees:
            return tuple(build_payroll_lines(employees, self.config))
        if document_type == DocumentType.INSURANCE_REPORT and employees:
            return tuple(build_insurance_lines(employees, self.config))
        if document_type == DocumentType.VAT_DECLARATION and vat is not None:
            return tuple(build_vat_lines(vat))
        return ()

    def _next_number(self, document_type: DocumentType, document_date: date) -> str:
        """CT202501001 cho chứng từ; BL-202501, BHXH-202501, 01GTGT-202501 cho báo cáo."""
        month = AccountingPeriod.month_of(document_date)
        stamp = f"{month.year}{month.month:02d}"
        prefix = DOCUMENT_PREFIXES[document_type]
        sequence = 1 + sum(
            1 for d in self.documents.list_all()
            if d.document_type == document_type and month.contains(d.document_date)
        )
        if document_type == DocumentType.VOUCHER:
            return f"{prefix}{stamp}{sequence:03d}"
        if sequence == 1:
            return f"{prefix}-{stamp}"
        return f"{prefix}-{stamp}-{sequence}"
