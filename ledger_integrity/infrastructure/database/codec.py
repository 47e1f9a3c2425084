"""
Chuyển đổi chứng từ và bản ghi audit sang JSON để lưu vào cột văn bản.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from ledger_integrity.domain.change_detector import FieldChange
from ledger_integrity.domain.entities import LedgerDocument, StatusStamp, as_utc
from ledger_integrity.domain.snapshots import ValueKind, snapshot_from_plain, snapshot_to_tagged
from ledger_integrity.domain.value_objects import (
    DocumentStatus,
    DocumentType,
    EmployeeLine,
    LedgerLine,
    VatFigures,
)


def _money(value: Any) -> str:
    return str(Decimal(value))


def dump_document(document: LedgerDocument) -> str:
    payload = {
        "description": document.description,
        "created_by": document.created_by,
        "created_at": document.created_at.isoformat(),
        "updated_by": document.updated_by,
        "lines": [
            {
                "account_code": line.account_code,
                "debit_amount": _money(line.debit_amount),
                "credit_amount": _money(line.credit_amount),
                "description": line.description,
                "partner_code": line.partner_code,
                "department_code": line.department_code,
                "project_code": line.project_code,
            }
            for line in document.lines
        ],
        "employees": [
            {
                "employee_code": e.employee_code,
                "employee_name": e.employee_name,
                "insurance_salary": _money(e.insurance_salary),
                "gross_salary": _money(e.gross_salary),
                "dependents": e.dependents,
            }
            for e in document.employees
        ],
        "vat": None if document.vat is None else {
            "output_vat": _money(document.vat.output_vat),
            "deductible_input_vat": _money(document.vat.deductible_input_vat),
            "increase_adjustment": _money(document.vat.increase_adjustment),
            "decrease_adjustment": _money(document.vat.decrease_adjustment),
            "carry_forward_from_previous": _money(document.vat.carry_forward_from_previous),
        },
        "status_history": [
            {
                "action": s.action,
                "from_status": s.from_status.value,
                "to_status": s.to_status.value,
                "actor_id": s.actor_id,
                "at": s.at.isoformat(),
                "reason": s.reason,
            }
            for s in document.status_history
        ],
    }
    return json.dumps(payload, ensure_ascii=False)


def load_document(
    *,
    id: str,
    document_type: str,
    document_number: str,
    document_date: date,
    status: str,
    version: int,
    updated_at: datetime,
    payload: str,
) -> LedgerDocument:
    data = json.loads(payload)
    vat = data.get("vat")
    return LedgerDocument(
        id=id,
        document_type=DocumentType(document_type),
        document_number=document_number,
        document_date=document_date,
        description=data["description"],
        created_by=data["created_by"],
        created_at=as_utc(datetime.fromisoformat(data["created_at"])),
        updated_at=as_utc(updated_at),
        updated_by=data.get("updated_by"),
        status=DocumentStatus(status),
        version=version,
        lines=tuple(
            LedgerLine(
                account_code=line["account_code"],
                debit_amount=Decimal(line["debit_amount"]),
                credit_amount=Decimal(line["credit_amount"]),
                description=line.get("description", ""),
                partner_code=line.get("partner_code"),
                department_code=line.get("department_code"),
                project_code=line.get("project_code"),
            )
            for line in data.get("lines", [])
        ),
        employees=tuple(
            EmployeeLine(
                employee_code=e["employee_code"],
                employee_name=e["employee_name"],
                insurance_salary=Decimal(e["insurance_salary"]),
                gross_salary=Decimal(e["gross_salary"]),
                dependents=e.get("dependents", 0),
            )
            for e in data.get("employees", [])
        ),
        vat=None if vat is None else VatFigures(**{k: Decimal(v) for k, v in vat.items()}),
        status_history=tuple(
            StatusStamp(
                action=s["action"],
                from_status=DocumentStatus(s["from_status"]),
                to_status=DocumentStatus(s["to_status"]),
                actor_id=s["actor_id"],
                at=as_utc(datetime.fromisoformat(s["at"])),
                reason=s.get("reason"),
            )
            for s in data.get("status_history", [])
        ),
    )


def dump_snapshot(value) -> str | None:
    if value is None:
        return None
    return json.dumps(snapshot_to_tagged(value), ensure_ascii=False)


def load_snapshot(text: str | None):
    if text is None:
        return None
    return snapshot_from_plain(json.loads(text))


def dump_changes(changes: tuple[FieldChange, ...] | None) -> str | None:
    if changes is None:
        return None
    return json.dumps([c.to_dict() for c in changes], ensure_ascii=False)


def load_changes(text: str | None) -> tuple[FieldChange, ...] | None:
    if text is None:
        return None
    return tuple(
        FieldChange(
            field=item["field"],
            old_value=item["old_value"],
            new_value=item["new_value"],
            value_kind=ValueKind(item["value_kind"]),
        )
        for item in json.loads(text)
    )
