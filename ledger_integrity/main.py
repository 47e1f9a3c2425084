"""
Main FastAPI application - Kiểm soát toàn vẹn sổ sách và dấu vết kiểm toán theo Thông tư 99/2025/TT-BTC.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ledger_integrity.api.routers import audit, documents, periods, reports
from ledger_integrity.application.ledger_service import LedgerService
from ledger_integrity.core.config import Settings, load_settings, load_statutory_config
from ledger_integrity.core.logging_config import configure_logging
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

logger = logging.getLogger(__name__)

# lớp con đứng trước lớp cha
ERROR_STATUS: list[tuple[type[LedgerError], int]] = [
    (UnbalancedError, 422),
    (LinesInvalidError, 400),
    (ReasonRequiredError, 400),
    (PermissionDeniedError, 403),
    (DocumentNotFoundError, 404),
    (AuditRecordNotFoundError, 404),
    (InvalidTransitionError, 409),
    (NotEditableError, 409),
    (ConcurrentModificationError, 409),
    (PeriodLockedError, 409),
    (PeriodLockError, 409),
]


def status_for(exc: LedgerError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 400


def build_service(settings: Settings) -> LedgerService:
    config = load_statutory_config(settings.statutory_config_path)
    if settings.ledger_store == "sql":
        from ledger_integrity.infrastructure.database import SessionLocal, init_db
        from ledger_integrity.infrastructure.database.repositories import (
            SqlAuditLogRepository,
            SqlDocumentRepository,
            SqlPeriodLockRepository,
        )

        init_db()
        return LedgerService(
            documents=SqlDocumentRepository(SessionLocal),
            audit_log=SqlAuditLogRepository(SessionLocal),
            period_locks=SqlPeriodLockRepository(SessionLocal),
            config=config,
        )
    return LedgerService(config=config)


def create_app(service: LedgerService | None = None) -> FastAPI:
    settings = load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        """Application lifespan - startup and shutdown events."""
        configure_logging(settings.log_level, json_format=settings.log_json)
        logger.info("ledger store: %s", "injected" if service else settings.ledger_store)
        yield

    app = FastAPI(
        title="Ledger Integrity & Audit API",
        description="""
## Kiểm soát toàn vẹn sổ sách theo Thông tư 99/2025/TT-BTC

### Tính năng chính:
- **Ghi sổ kép**: Kiểm tra cân đối Nợ = Có trước khi ghi sổ (Phụ lục III)
- **Vòng đời chứng từ**: Phiếu, bảng lương, báo cáo BHXH, tờ khai 01/GTGT
- **Audit trail**: Ghi lại trước/sau và từng field thay đổi, chỉ ghi thêm
- **Khóa sổ**: Chặn thay đổi số liệu trong kỳ đã khóa
- **Tổng hợp**: BHXH, thuế TNCN, thuế GTGT luôn tính lại từ chứng từ

### Nguyên tắc:
- Mỗi chứng từ chỉ phát sinh một lần
- Sau khóa sổ không cho phép chỉnh sửa dữ liệu cũ
- Hủy, từ chối, điều chỉnh, mở khóa bắt buộc ghi lý do
        """,
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.ledger_service = service or build_service(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(documents.router)
    app.include_router(audit.router)
    app.include_router(periods.router)
    app.include_router(reports.router)

    @app.get("/")
    def root():
        return {
            "name": "Ledger Integrity & Audit API",
            "version": "0.1.0",
            "regulation": "Thông tư 99/2025/TT-BTC",
            "docs": "/docs",
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "store": settings.ledger_store,
            "database": settings.database_type if settings.ledger_store == "sql" else None,
        }

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        """Handle domain errors."""
        status_code = status_for(exc)
        logger.warning("%s %s -> %s %s", request.method, request.url.path, status_code, exc.code)
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        """Handle validation errors."""
        return JSONResponse(
            status_code=400,
            content={"detail": str(exc), "code": "VALIDATION_ERROR"},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
