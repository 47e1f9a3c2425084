"""
API Routers - Khóa sổ kế toán theo kỳ.
"""

from fastapi import APIRouter, Depends

from ledger_integrity.api.dependencies import get_actor, get_service
from ledger_integrity.application.dto.accounting_dto import (
    PeriodChecklistDTO,
    PeriodLockResponseDTO,
    ReasonRequestDTO,
)
from ledger_integrity.application.ledger_service import LedgerService
from ledger_integrity.domain.entities import ActorContext

router = APIRouter(prefix="/api/v1/periods", tags=["Khóa sổ"])


@router.get("", response_model=list[PeriodLockResponseDTO])
def list_period_locks(service: LedgerService = Depends(get_service)):
    return [PeriodLockResponseDTO.from_domain(lock) for lock in service.periods.list_locks()]


@router.get("/{period}", response_model=PeriodLockResponseDTO)
def get_period_lock(period: str, service: LedgerService = Depends(get_service)):
    return PeriodLockResponseDTO.from_domain(service.periods.get(period))


@router.get("/{period}/checklist", response_model=PeriodChecklistDTO)
def get_lock_checklist(period: str, service: LedgerService = Depends(get_service)):
    """Điều kiện khóa sổ: cân đối Nợ = Có, kỳ trước đã khóa; cảnh báo còn chứng từ nháp."""
    return PeriodChecklistDTO.from_domain(service.periods.checklist(period))


@router.post("/{period}/lock", response_model=PeriodLockResponseDTO)
def lock_period(
    period: str,
    service: LedgerService = Depends(get_service),
    actor: ActorContext = Depends(get_actor),
):
    """Khóa kỳ (Kế toán trưởng, Admin)."""
    return PeriodLockResponseDTO.from_domain(service.lock_period(period, actor))


@router.post("/{period}/unlock", response_model=PeriodLockResponseDTO)
def unlock_period(
    period: str,
    dto: ReasonRequestDTO,
    service: LedgerService = Depends(get_service),
    actor: ActorContext = Depends(get_actor),
):
    """Mở khóa kỳ (chỉ Admin), bắt buộc ghi lý do."""
    return PeriodLockResponseDTO.from_domain(service.unlock_period(period, actor, dto.reason))
