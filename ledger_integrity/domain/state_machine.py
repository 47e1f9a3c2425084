"""
Document State Machine - Bảng chuyển trạng thái dùng chung cho mọi loại chứng từ.

Mỗi loại chứng từ khai báo bảng (trạng thái nguồn, hành động) -> quy tắc.
Không có mục nào cho phép đi lùi, ngoại trừ CANCEL/REJECT (bắt buộc lý do).
"""

from collections.abc import Iterable
from dataclasses import dataclass

from .exceptions import InvalidTransitionError
from .value_objects import AuditAction, DocumentStatus, DocumentType


@dataclass(frozen=True, slots=True)
class TransitionRule:
    from_state: DocumentStatus
    action: AuditAction
    to_state: DocumentStatus
    requires_balance: bool = False
    requires_reason: bool = False
    affects_balances: bool = False
    privileged: bool = False


class DocumentStateMachine:

    def __init__(
        self,
        document_type: DocumentType,
        rules: Iterable[TransitionRule],
        posted_states: Iterable[DocumentStatus],
        editable_state: DocumentStatus = DocumentStatus.DRAFT,
    ):
        self.document_type = document_type
        self.editable_state = editable_state
        self.posted_states = frozenset(posted_states)
        self._rules: dict[tuple[DocumentStatus, AuditAction], TransitionRule] = {}
        for rule in rules:
            key = (rule.from_state, rule.action)
            if key in self._rules:
                raise ValueError(f"Trùng quy tắc chuyển trạng thái: {key}")
            self._rules[key] = rule

    @property
    def rules(self) -> list[TransitionRule]:
        return list(self._rules.values())

    @property
    def states(self) -> set[DocumentStatus]:
        states = {self.editable_state}
        for rule in self._rules.values():
            states.add(rule.from_state)
            states.add(rule.to_state)
        return states

    def resolve(self, status: DocumentStatus, action: AuditAction | str) -> TransitionRule:
        try:
            action = AuditAction(action)
        except ValueError:
            raise InvalidTransitionError(status.value, str(action), self.document_type.value) from None
        rule = self._rules.get((status, action))
        if rule is None:
            raise InvalidTransitionError(status.value, action.value, self.document_type.value)
        return rule

    def can_edit(self, status: DocumentStatus) -> bool:
        return status == self.editable_state

    def allowed_actions(self, status: DocumentStatus) -> list[AuditAction]:
        return [action for (state, action) in self._rules if state == status]

    def is_terminal(self, status: DocumentStatus) -> bool:
        return not self.allowed_actions(status)


S = DocumentStatus
A = AuditAction

VOUCHER_MACHINE = DocumentStateMachine(
    DocumentType.VOUCHER,
    [
        TransitionRule(S.DRAFT, A.POST, S.POSTED, requires_balance=True, affects_balances=True),
        TransitionRule(S.DRAFT, A.ADJUST, S.POSTED, requires_balance=True, requires_reason=True,
                       affects_balances=True, privileged=True),
        TransitionRule(S.POSTED, A.CANCEL, S.CANCELLED, requires_reason=True, affects_balances=True),
    ],
    posted_states=[S.POSTED],
)

PAYROLL_MACHINE = DocumentStateMachine(
    DocumentType.PAYROLL,
    [
        TransitionRule(S.DRAFT, A.APPROVE, S.APPROVED, requires_balance=True, affects_balances=True),
        TransitionRule(S.DRAFT, A.ADJUST, S.APPROVED, requires_balance=True, requires_reason=True,
                       affects_balances=True, privileged=True),
        TransitionRule(S.APPROVED, A.PAY, S.PAID, affects_balances=True),
        TransitionRule(S.APPROVED, A.CANCEL, S.CANCELLED, requires_reason=True, affects_balances=True),
    ],
    posted_states=[S.APPROVED, S.PAID],
)

INSURANCE_MACHINE = DocumentStateMachine(
    DocumentType.INSURANCE_REPORT,
    [
        TransitionRule(S.DRAFT, A.SUBMIT, S.SUBMITTED, requires_balance=True, affects_balances=True),
        TransitionRule(S.DRAFT, A.ADJUST, S.SUBMITTED, requires_balance=True, requires_reason=True,
                       affects_balances=True, privileged=True),
        TransitionRule(S.SUBMITTED, A.APPROVE, S.APPROVED),
        TransitionRule(S.APPROVED, A.PAY, S.PAID, affects_balances=True),
    ],
    posted_states=[S.SUBMITTED, S.APPROVED, S.PAID],
)

VAT_DECLARATION_MACHINE = DocumentStateMachine(
    DocumentType.VAT_DECLARATION,
    [
        TransitionRule(S.DRAFT, A.SUBMIT, S.SUBMITTED, requires_balance=True, affects_balances=True),
        TransitionRule(S.DRAFT, A.ADJUST, S.SUBMITTED, requires_balance=True, requires_reason=True,
                       affects_balances=True, privileged=True),
        TransitionRule(S.SUBMITTED, A.ACCEPT, S.ACCEPTED),
        TransitionRule(S.SUBMITTED, A.REJECT, S.REJECTED, requires_reason=True, affects_balances=True),
    ],
    posted_states=[S.SUBMITTED, S.ACCEPTED],
)

DEFAULT_MACHINES: dict[DocumentType, DocumentStateMachine] = {
    machine.document_type: machine
    for machine in (VOUCHER_MACHINE, PAYROLL_MACHINE, INSURANCE_MACHINE, VAT_DECLARATION_MACHINE)
}
