"""Domain layer - Pure Python business logic."""

from ledger_integrity.domain.change_detector import FieldChange, diff
from ledger_integrity.domain.entities import (
    ActorContext,
    AuditRecord,
    DocumentDraft,
    DocumentPatch,
    LedgerDocument,
    PeriodLock,
)
from ledger_integrity.domain.exceptions import (
    AuditRecordNotFoundError,
    ConcurrentModificationError,
    DocumentNotFoundError,
    InvalidTransitionError,
    LedgerError,
    LinesInvalidError,
    NotEditableError,
    PeriodLockedError,
    PeriodLockError,
    PermissionDeniedError,
    ReasonRequiredError,
    UnbalancedError,
)
from ledger_integrity.domain.services import (
    IAuditLogRepository,
    IDocumentRepository,
    IPeriodLockRepository,
)
from ledger_integrity.domain.state_machine import DEFAULT_MACHINES, DocumentStateMachine, TransitionRule
from ledger_integrity.domain.validation import ValidationError, validate_lines
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
