"""
Aggregation Engine - Tổng hợp số liệu từ chứng từ đã ghi sổ.

Luôn tính lại từ đầu (không cache) để không lệch khi chứng từ bị hủy hoặc
điều chỉnh sau khi đã lập báo cáo. Làm tròn về đồng ở từng tổng con.
"""

import calendar
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from ledger_integrity.core.config import StatutoryConfig

from .entities import LedgerDocument
from .state_machine import DEFAULT_MACHINES, DocumentStateMachine
from .value_objects import (
    ZERO,
    AccountingPeriod,
    DocumentType,
    EmployeeLine,
    LedgerLine,
    VatFigures,
    round_vnd,
)

# TK kế toán lương và bảo hiểm
PAYROLL_ACCOUNTS = {
    "salary_payable": "334",
    "salary_expense": "6421",
    "insurance_expense": "6422",
    "social": "3383",
    "health": "3384",
    "accident": "3385",
    "unemployment": "3386",
    "pit": "3335",
}

VAT_ACCOUNTS = {
    "output": "33311",
    "input": "1331",
}


@dataclass(frozen=True)
class SummaryScope:
    period: str | None = None
    document_type: DocumentType | None = None

    def matches(self, document: LedgerDocument) -> bool:
        if self.document_type is not None and document.document_type != self.document_type:
            return False
        if self.period is not None:
            if not AccountingPeriod.parse(self.period).contains(document.document_date):
                return False
        return True


@dataclass(frozen=True)
class Contribution:
    """Số tiền đóng BH của một người (đã làm tròn từng khoản)."""
    capped_salary: Decimal
    social: Decimal
    health: Decimal
    unemployment: Decimal
    accident: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.social + self.health + self.unemployment + self.accident


@dataclass(frozen=True)
class InsuranceBreakdown:
    employee_count: int = 0
    total_insurance_salary: Decimal = ZERO
    employee_social: Decimal = ZERO
    employee_health: Decimal = ZERO
    employee_unemployment: Decimal = ZERO
    company_social: Decimal = ZERO
    company_health: Decimal = ZERO
    company_unemployment: Decimal = ZERO
    company_accident: Decimal = ZERO

    @property
    def total_employee(self) -> Decimal:
        return self.employee_social + self.employee_health + self.employee_unemployment

    @property
    def total_company(self) -> Decimal:
        return self.company_social + self.company_health + self.company_unemployment + self.company_accident

    @property
    def grand_total(self) -> Decimal:
        return self.total_employee + self.total_company

    @property
    def by_type(self) -> dict[str, Decimal]:
        return {
            "social": self.employee_social + self.company_social,
            "health": self.employee_health + self.company_health,
            "unemployment": self.employee_unemployment + self.company_unemployment,
            "accident": self.company_accident,
        }


@dataclass(frozen=True)
class PayrollFigures:
    gross_salary: Decimal = ZERO
    insurance_deduction: Decimal = ZERO
    taxable_income: Decimal = ZERO
    pit: Decimal = ZERO
    net_salary: Decimal = ZERO


@dataclass(frozen=True)
class VatPosition:
    output_vat: Decimal = ZERO
    total_deductible: Decimal = ZERO
    vat_payable: Decimal = ZERO
    carry_forward: Decimal = ZERO


@dataclass(frozen=True)
class LedgerSummary:
    scope: SummaryScope
    document_count: int
    posted_count: int
    total_debit: Decimal
    total_credit: Decimal
    is_balanced: bool
    counts_by_status: dict[str, int] = field(default_factory=dict)
    insurance: InsuranceBreakdown = field(default_factory=InsuranceBreakdown)
    payroll: PayrollFigures = field(default_factory=PayrollFigures)
    vat: VatPosition = field(default_factory=VatPosition)

    @property
    def difference(self) -> Decimal:
        return self.total_debit - self.total_credit


def _contribution(salary: Decimal, rates, cap: Decimal) -> Contribution:
    capped = min(salary, cap)
    return Contribution(
        capped_salary=capped,
        social=round_vnd(capped * rates.social),
        health=round_vnd(capped * rates.health),
        unemployment=round_vnd(capped * rates.unemployment),
        accident=round_vnd(capped * rates.accident),
    )


def employee_contribution(salary: Decimal, config: StatutoryConfig) -> Contribution:
    """BH người lao động đóng; mức lương bị chặn trần trước khi nhân tỷ lệ."""
    return _contribution(Decimal(salary), config.employee_rates, config.insurance_salary_cap)


def company_contribution(salary: Decimal, config: StatutoryConfig) -> Contribution:
    return _contribution(Decimal(salary), config.company_rates, config.insurance_salary_cap)


def personal_income_tax(amount: Decimal, config: StatutoryConfig) -> Decimal:
    """Thuế TNCN theo biểu lũy tiến từng phần."""
    if amount <= 0:
        return ZERO
    tax = ZERO
    for bracket in config.pit_brackets:
        if amount <= bracket.lower:
            break
        upper = bracket.upper if bracket.upper is not None else amount
        portion = min(amount, upper) - bracket.lower
        tax += portion * bracket.rate
    return round_vnd(tax)


def taxable_income(employee: EmployeeLine, insurance_deduction: Decimal, config: StatutoryConfig) -> Decimal:
    deductions = config.personal_deduction + config.dependent_deduction * employee.dependents
    return max(ZERO, employee.gross_salary - insurance_deduction - deductions)


def summarize_insurance(employees: Iterable[EmployeeLine], config: StatutoryConfig) -> InsuranceBreakdown:
    rows = list(employees)
    employee_parts = [employee_contribution(e.insurance_salary, config) for e in rows]
    company_parts = [company_contribution(e.insurance_salary, config) for e in rows]
    return InsuranceBreakdown(
        employee_count=len(rows),
        total_insurance_salary=sum((e.insurance_salary for e in rows), ZERO),
        employee_social=sum((c.social for c in employee_parts), ZERO),
        employee_health=sum((c.health for c in employee_parts), ZERO),
        employee_unemployment=sum((c.unemployment for c in employee_parts), ZERO),
        company_social=sum((c.social for c in company_parts), ZERO),
        company_health=sum((c.health for c in company_parts), ZERO),
        company_unemployment=sum((c.unemployment for c in company_parts), ZERO),
        company_accident=sum((c.accident for c in company_parts), ZERO),
    )


def summarize_payroll(employees: Iterable[EmployeeLine], config: StatutoryConfig) -> PayrollFigures:
    gross = insurance = taxable = pit = net = ZERO
    for employee in employees:
        deduction = employee_contribution(employee.insurance_salary, config).total
        income = taxable_income(employee, deduction, config)
        tax = personal_income_tax(income, config)
        gross += round_vnd(employee.gross_salary)
        insurance += deduction
        taxable += round_vnd(income)
        pit += tax
        net += round_vnd(employee.gross_salary - deduction - tax)
    return PayrollFigures(
        gross_salary=gross,
        insurance_deduction=insurance,
        taxable_income=taxable,
        pit=pit,
        net_salary=net,
    )


def vat_position(figures: VatFigures) -> VatPosition:
    """Chỉ tiêu [34] thuế được khấu trừ, [35] phải nộp, [36] chuyển kỳ sau."""
    deductible = round_vnd(
        figures.deductible_input_vat
        + figures.increase_adjustment
        - figures.decrease_adjustment
        + figures.carry_forward_from_previous
    )
    output = round_vnd(figures.output_vat)
    return VatPosition(
        output_vat=output,
        total_deductible=deductible,
        vat_payable=max(ZERO, output - deductible),
        carry_forward=max(ZERO, deductible - output),
    )


def _merge_vat(positions: Iterable[VatPosition]) -> VatPosition:
    output = deductible = payable = carry = ZERO
    for p in positions:
        output += p.output_vat
        deductible += p.total_deductible
        payable += p.vat_payable
        carry += p.carry_forward
    return VatPosition(output, deductible, payable, carry)


def _merge_insurance(parts: Iterable[InsuranceBreakdown]) -> InsuranceBreakdown:
    totals = Counter()
    count = 0
    for part in parts:
        count += part.employee_count
        for name in (
            "total_insurance_salary",
            "employee_social",
            "employee_health",
            "employee_unemployment",
            "company_social",
            "company_health",
            "company_unemployment",
            "company_accident",
        ):
            totals[name] += getattr(part, name)
    return InsuranceBreakdown(employee_count=count, **{k: Decimal(v) for k, v in totals.items()})


def _merge_payroll(parts: Iterable[PayrollFigures]) -> PayrollFigures:
    gross = insurance = taxable = pit = net = ZERO
    for p in parts:
        gross += p.gross_salary
        insurance += p.insurance_deduction
        taxable += p.taxable_income
        pit += p.pit
        net += p.net_salary
    return PayrollFigures(gross, insurance, taxable, pit, net)


def summarize(
    documents: Sequence[LedgerDocument],
    scope: SummaryScope,
    config: StatutoryConfig,
    machines: dict[DocumentType, DocumentStateMachine] | None = None,
) -> LedgerSummary:
    """Tổng hợp cho một phạm vi; chỉ chứng từ ở trạng thái đã ghi sổ mới vào số liệu."""
    machines = machines or DEFAULT_MACHINES
    in_scope = sorted((d for d in documents if scope.matches(d)), key=lambda d: (d.document_date, d.id))

    counts = Counter(d.status.value for d in in_scope)
    posted = [d for d in in_scope if d.status in machines[d.document_type].posted_states]

    total_debit = ZERO
    total_credit = ZERO
    for document in posted:
        total_debit += round_vnd(document.total_debit)
        total_credit += round_vnd(document.total_credit)

    insurance_docs = [
        d for d in posted if d.document_type in (DocumentType.PAYROLL, DocumentType.INSURANCE_REPORT)
    ]
    # bảng lương và báo cáo BH cùng kỳ mô tả cùng một nghĩa vụ, chỉ lấy báo cáo BH nếu có cả hai
    if any(d.document_type == DocumentType.INSURANCE_REPORT for d in insurance_docs):
        insurance_docs = [d for d in insurance_docs if d.document_type == DocumentType.INSURANCE_REPORT]

    return LedgerSummary(
        scope=scope,
        document_count=len(in_scope),
        posted_count=len(posted),
        total_debit=total_debit,
        total_credit=total_credit,
        is_balanced=abs(total_debit - total_credit) <= config.balance_tolerance,
        counts_by_status=dict(sorted(counts.items())),
        insurance=_merge_insurance(summarize_insurance(d.employees, config) for d in insurance_docs),
        payroll=_merge_payroll(
            summarize_payroll(d.employees, config) for d in posted if d.document_type == DocumentType.PAYROLL
        ),
        vat=_merge_vat(
            vat_position(d.vat) for d in posted
            if d.document_type == DocumentType.VAT_DECLARATION and d.vat is not None
        ),
    )


def submission_deadline(period: str, config: StatutoryConfig) -> date:
    """Hạn nộp: tháng -> ngày cấu hình của tháng sau; quý -> ngày cuối tháng đầu quý sau."""
    parsed = AccountingPeriod.parse(period)
    following = parsed.next()
    if parsed.month is not None:
        return date(following.year, following.month, config.submission_deadline_day)
    first_month = following.start_date
    return date(
        first_month.year,
        first_month.month,
        calendar.monthrange(first_month.year, first_month.month)[1],
    )


def is_overdue(
    document: LedgerDocument,
    as_of: date,
    config: StatutoryConfig,
    machines: dict[DocumentType, DocumentStateMachine] | None = None,
) -> bool:
    """Chứng từ còn nháp sau hạn nộp của kỳ; ngày so sánh do phía gọi truyền vào."""
    machines = machines or DEFAULT_MACHINES
    machine = machines[document.document_type]
    if not machine.can_edit(document.status):
        return False
    return as_of > submission_deadline(document.period, config)


def build_payroll_lines(employees: Sequence[EmployeeLine], config: StatutoryConfig) -> list[LedgerLine]:
    """Bút toán bảng lương: ghi nhận chi phí lương, trích BH và khấu trừ thuế TNCN."""
    acc = PAYROLL_ACCOUNTS
    gross = sum((round_vnd(e.gross_salary) for e in employees), ZERO)
    payroll = summarize_payroll(employees, config)
    insurance = summarize_insurance(employees, config)

    lines = [
        LedgerLine.debit(acc["salary_expense"], gross, "Chi phí tiền lương"),
        LedgerLine.credit(acc["salary_payable"], gross, "Phải trả người lao động"),
    ]
    if payroll.insurance_deduction > 0:
        lines.append(LedgerLine.debit(acc["salary_payable"], payroll.insurance_deduction, "Khấu trừ BH người lao động"))
        lines.extend(_insurance_credits(
            insurance.employee_social, insurance.employee_health, insurance.employee_unemployment, ZERO
        ))
    if payroll.pit > 0:
        lines.append(LedgerLine.debit(acc["salary_payable"], payroll.pit, "Khấu trừ thuế TNCN"))
        lines.append(LedgerLine.credit(acc["pit"], payroll.pit, "Thuế TNCN phải nộp"))
    return lines


def build_insurance_lines(employees: Sequence[EmployeeLine], config: StatutoryConfig) -> list[LedgerLine]:
    """Bút toán trích BH phần doanh nghiệp đóng."""
    insurance = summarize_insurance(employees, config)
    if insurance.total_company <= 0:
        return []
    return [
        LedgerLine.debit(PAYROLL_ACCOUNTS["insurance_expense"], insurance.total_company, "Chi phí BH doanh nghiệp"),
        *_insurance_credits(
            insurance.company_social,
            insurance.company_health,
            insurance.company_unemployment,
            insurance.company_accident,
        ),
    ]


def _insurance_credits(social: Decimal, health: Decimal, unemployment: Decimal, accident: Decimal) -> list[LedgerLine]:
    acc = PAYROLL_ACCOUNTS
    parts = [
        (acc["social"], social, "BHXH"),
        (acc["health"], health, "BHYT"),
        (acc["unemployment"], unemployment, "BHTN"),
        (acc["accident"], accident, "BHTNLĐ-BNN"),
    ]
    return [LedgerLine.credit(code, amount, label) for code, amount, label in parts if amount > 0]


def build_vat_lines(figures: VatFigures) -> list[LedgerLine]:
    """Bút toán khấu trừ thuế GTGT đầu vào với đầu ra cuối kỳ."""
    position = vat_position(figures)
    offset = min(position.output_vat, position.total_deductible)
    if offset <= 0:
        return []
    return [
        LedgerLine.debit(VAT_ACCOUNTS["output"], offset, "Khấu trừ thuế GTGT"),
        LedgerLine.credit(VAT_ACCOUNTS["input"], offset, "Thuế GTGT đầu vào được khấu trừ"),
    ]
