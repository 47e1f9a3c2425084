"""
API Routers - Số liệu tổng hợp (luôn tính lại từ chứng từ đã ghi sổ).
"""

from fastapi import APIRouter, Depends, Query

from ledger_integrity.api.dependencies import get_service
from ledger_integrity.application.dto.accounting_dto import LedgerSummaryDTO
from ledger_integrity.application.ledger_service import LedgerService
from ledger_integrity.domain.aggregation import SummaryScope
from ledger_integrity.domain.value_objects import AccountingPeriod, DocumentType

router = APIRouter(prefix="/api/v1/reports", tags=["Báo cáo tổng hợp"])


@router.get("/summary", response_model=LedgerSummaryDTO)
def get_summary(
    period: str | None = Query(None, description="YYYY-MM, YYYY-Qn hoặc YYYY"),
    document_type: DocumentType | None = Query(None),
    service: LedgerService = Depends(get_service),
):
    """
    Tổng hợp Nợ/Có, BHXH, lương, thuế GTGT cho một kỳ.

    Chỉ chứng từ đã ghi sổ được tính; chứng từ nháp, đã hủy, bị từ chối bị loại.
    """
    if period is not None:
        period = str(AccountingPeriod.parse(period))
    return LedgerSummaryDTO.from_domain(service.get_summary(SummaryScope(period=period, document_type=document_type)))
