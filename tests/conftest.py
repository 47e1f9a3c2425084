"""
Pytest configuration and fixtures.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from ledger_integrity.application.ledger_service import LedgerService
from ledger_integrity.core.config import StatutoryConfig
from ledger_integrity.core.logging_config import reset_logging
from ledger_integrity.domain.entities import ActorContext, DocumentDraft
from ledger_integrity.domain.value_objects import DocumentType, EmployeeLine, LedgerLine


class StepClock:
    """Đồng hồ giả: mỗi lần gọi tăng 1 giây."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def config() -> StatutoryConfig:
    return StatutoryConfig()


@pytest.fixture
def service(config, clock) -> LedgerService:
    return LedgerService(config=config, clock=clock)


@pytest.fixture
def accountant() -> ActorContext:
    return ActorContext(actor_id="u-ketoan", actor_name="Nguyễn Văn Kế", role="ACCOUNTANT")


@pytest.fixture
def chief_accountant() -> ActorContext:
    return ActorContext(actor_id="u-ktt", actor_name="Trần Thị Trưởng", role="CHIEF_ACCOUNTANT")


@pytest.fixture
def admin() -> ActorContext:
    return ActorContext(actor_id="u-admin", actor_name="Lê Quản Trị", role="ADMIN")


@pytest.fixture
def balanced_lines() -> tuple[LedgerLine, ...]:
    """Bán hàng thu tiền mặt: Nợ 1111 / Có 5111, 33311."""
    return (
        LedgerLine.debit("1111", Decimal("11000000"), "Thu tiền mặt"),
        LedgerLine.credit("5111", Decimal("10000000"), "Doanh thu bán hàng"),
        LedgerLine.credit("33311", Decimal("1000000"), "Thuế GTGT đầu ra"),
    )


@pytest.fixture
def unbalanced_lines() -> tuple[LedgerLine, ...]:
    return (
        LedgerLine.debit("1111", Decimal("1000000")),
        LedgerLine.credit("5111", Decimal("900000")),
    )


@pytest.fixture
def employees() -> tuple[EmployeeLine, ...]:
    return (
        EmployeeLine("NV001", "Phạm Văn A", insurance_salary=Decimal("10000000"),
                     gross_salary=Decimal("20000000"), dependents=1),
        EmployeeLine("NV002", "Hoàng Thị B", insurance_salary=Decimal("60000000"),
                     gross_salary=Decimal("60000000")),
    )


@pytest.fixture
def draft_voucher(service, accountant, balanced_lines):
    return service.create_document(
        DocumentType.VOUCHER,
        DocumentDraft(document_date=date(2025, 1, 15), description="Bán hàng Công ty ABC", lines=balanced_lines),
        accountant,
    )


@pytest.fixture(autouse=True)
def _logging_isolation():
    yield
    reset_logging()
