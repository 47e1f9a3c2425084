"""
API Routers - Nhật ký kiểm toán (chỉ đọc và đính chính, không sửa, không xóa).
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status

from ledger_integrity.api.dependencies import get_actor, get_service
from ledger_integrity.application.audit_recorder import AuditLogFilter
from ledger_integrity.application.dto.accounting_dto import (
    AuditLogPageDTO,
    AuditRecordResponseDTO,
    ReasonRequestDTO,
)
from ledger_integrity.application.ledger_service import LedgerService
from ledger_integrity.domain.entities import ActorContext
from ledger_integrity.domain.value_objects import AuditAction, AuditEntityType

router = APIRouter(prefix="/api/v1/audit-logs", tags=["Nhật ký kiểm toán"])


@router.get("", response_model=AuditLogPageDTO)
def query_audit_logs(
    entity_type: AuditEntityType | None = Query(None),
    entity_id: str | None = Query(None),
    action: AuditAction | None = Query(None),
    actor_id: str | None = Query(None),
    from_time: datetime | None = Query(None),
    to_time: datetime | None = Query(None),
    period: str | None = Query(None, description="Kỳ liên quan (YYYY-MM)"),
    search: str | None = Query(None, description="Tìm trong lý do, tên chứng từ, người thực hiện"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    service: LedgerService = Depends(get_service),
):
    filters = AuditLogFilter(
        entity_type=entity_type.value if entity_type else None,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        from_time=from_time,
        to_time=to_time,
        period=period,
        search=search,
    )
    return AuditLogPageDTO.from_domain(service.query_audit_log(filters, page, page_size))


@router.get("/{record_id}", response_model=AuditRecordResponseDTO)
def get_audit_record(record_id: str, service: LedgerService = Depends(get_service)):
    return AuditRecordResponseDTO.from_domain(service.get_audit_record(record_id))


@router.post("/{record_id}/corrections", response_model=AuditRecordResponseDTO, status_code=status.HTTP_201_CREATED)
def correct_audit_record(
    record_id: str,
    dto: ReasonRequestDTO,
    service: LedgerService = Depends(get_service),
    actor: ActorContext = Depends(get_actor),
):
    """Đính chính: tạo bản ghi mới trỏ về bản ghi gốc; bản ghi gốc giữ nguyên."""
    return AuditRecordResponseDTO.from_domain(service.correct_audit_record(record_id, actor, dto.reason))
