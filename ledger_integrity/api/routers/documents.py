"""
API Routers - Chứng từ kế toán: tạo, sửa nháp, chuyển trạng thái, lịch sử.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from ledger_integrity.api.dependencies import get_actor, get_service
from ledger_integrity.application.dto.accounting_dto import (
    AuditRecordResponseDTO,
    BalanceCheckResultDTO,
    DocumentCreateDTO,
    DocumentResponseDTO,
    DocumentUpdateDTO,
    TransitionRequestDTO,
    ValidateLinesRequestDTO,
)
from ledger_integrity.application.ledger_service import LedgerService
from ledger_integrity.domain.aggregation import SummaryScope
from ledger_integrity.domain.entities import ActorContext, DocumentDraft, DocumentPatch
from ledger_integrity.domain.value_objects import DocumentStatus, DocumentType

router = APIRouter(prefix="/api/v1", tags=["Chứng từ kế toán"])


@router.post("/ledger/validate", response_model=BalanceCheckResultDTO)
def validate_lines(dto: ValidateLinesRequestDTO, service: LedgerService = Depends(get_service)):
    """Kiểm tra bộ dòng bút toán: đủ tài khoản, mỗi dòng một phía, Tổng Nợ = Tổng Có."""
    lines = [line.to_domain() for line in dto.lines]
    return BalanceCheckResultDTO.build(lines, service.validate_lines(lines))


@router.post("/documents", response_model=DocumentResponseDTO, status_code=status.HTTP_201_CREATED)
def create_document(
    dto: DocumentCreateDTO,
    service: LedgerService = Depends(get_service),
    actor: ActorContext = Depends(get_actor),
):
    """
    Tạo chứng từ nháp (Điều 8-9, Phụ lục I - TT99/2025).

    - Số chứng từ tự sinh nếu bỏ trống
    - Bảng lương / báo cáo BHXH / tờ khai GTGT không kèm dòng bút toán sẽ được lập bút toán tự động
    """
    draft = DocumentDraft(
        document_date=dto.document_date,
        description=dto.description,
        document_number=dto.document_number,
        lines=tuple(line.to_domain() for line in dto.lines),
        employees=tuple(e.to_domain() for e in dto.employees),
        vat=dto.vat.to_domain() if dto.vat else None,
    )
    document = service.create_document(dto.document_type, draft, actor)
    return DocumentResponseDTO.from_domain(document)


@router.get("/documents", response_model=list[DocumentResponseDTO])
def list_documents(
    period: str | None = Query(None, description="YYYY-MM, YYYY-Qn hoặc YYYY"),
    document_type: DocumentType | None = Query(None),
    document_status: DocumentStatus | None = Query(None, alias="status"),
    service: LedgerService = Depends(get_service),
):
    documents = service.list_documents(SummaryScope(period=period, document_type=document_type), document_status)
    return [DocumentResponseDTO.from_domain(d) for d in documents]


@router.get("/documents/overdue", response_model=list[DocumentResponseDTO])
def list_overdue_documents(
    as_of: date = Query(..., description="Ngày đối chiếu hạn nộp"),
    service: LedgerService = Depends(get_service),
):
    """Bảng lương, báo cáo BHXH, tờ khai GTGT còn nháp sau hạn nộp."""
    return [DocumentResponseDTO.from_domain(d) for d in service.overdue_documents(as_of)]


@router.get("/documents/{document_id}", response_model=DocumentResponseDTO)
def get_document(document_id: str, service: LedgerService = Depends(get_service)):
    return DocumentResponseDTO.from_domain(service.get_document(document_id))


@router.patch("/documents/{document_id}", response_model=DocumentResponseDTO)
def update_document(
    document_id: str,
    dto: DocumentUpdateDTO,
    service: LedgerService = Depends(get_service),
    actor: ActorContext = Depends(get_actor),
):
    """Sửa chứng từ - chỉ khi còn ở trạng thái nháp."""
    patch = DocumentPatch(
        document_date=dto.document_date,
        description=dto.description,
        lines=tuple(line.to_domain() for line in dto.lines) if dto.lines is not None else None,
        employees=tuple(e.to_domain() for e in dto.employees) if dto.employees is not None else None,
        vat=dto.vat.to_domain() if dto.vat is not None else None,
    )
    document = service.update_document(document_id, patch, actor, expected_version=dto.expected_version)
    return DocumentResponseDTO.from_domain(document)


@router.post("/documents/{document_id}/transitions", response_model=DocumentResponseDTO)
def transition_document(
    document_id: str,
    dto: TransitionRequestDTO,
    service: LedgerService = Depends(get_service),
    actor: ActorContext = Depends(get_actor),
):
    """
    Chuyển trạng thái chứng từ (ghi sổ, nộp, duyệt, chi, hủy, điều chỉnh).

    - Ghi sổ chỉ khi Tổng Nợ = Tổng Có
    - Hủy, từ chối, điều chỉnh bắt buộc có lý do
    - Kỳ đã khóa chỉ cho phép bút toán điều chỉnh
    """
    document = service.transition(
        document_id, dto.action.upper(), actor, reason=dto.reason, expected_version=dto.expected_version
    )
    return DocumentResponseDTO.from_domain(document)


@router.get("/documents/{document_id}/history", response_model=list[AuditRecordResponseDTO])
def document_history(document_id: str, service: LedgerService = Depends(get_service)):
    return [AuditRecordResponseDTO.from_domain(r) for r in service.document_history(document_id)]
