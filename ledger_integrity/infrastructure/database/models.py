"""
Infrastructure - SQLModel database models and configurations.
"""

import os
from datetime import date, datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class LedgerDocumentRow(SQLModel, table=True):
    """Chứng từ kế toán; dòng bút toán, nhân viên, tờ khai lưu trong payload JSON."""

    __tablename__ = "ledger_document"

    id: str = Field(primary_key=True)
    document_type: str = Field(index=True)
    document_number: str = Field(index=True)
    document_date: date = Field(index=True)
    status: str = Field(index=True)
    version: int = 1
    updated_at: datetime
    payload: str  # JSON


class AuditLogRow(SQLModel, table=True):
    """Audit trail cho mọi thay đổi (bắt buộc theo TT99/2025). Chỉ INSERT."""

    __tablename__ = "audit_log"
    __table_args__ = (UniqueConstraint("entity_type", "entity_id", "entity_sequence"),)

    sequence: int | None = Field(default=None, primary_key=True)
    id: str = Field(unique=True, index=True)
    entity_type: str = Field(index=True)
    entity_id: str = Field(index=True)
    entity_sequence: int
    entity_name: str | None = None
    action: str = Field(index=True)
    actor_id: str = Field(index=True)
    actor_name: str
    actor_role: str
    timestamp: datetime = Field(index=True)
    reason: str | None = None
    related_period: str | None = Field(default=None, index=True)
    corrects_record_id: str | None = None

    before: str | None = None   # JSON
    after: str | None = None    # JSON
    changes: str | None = None  # JSON


class PeriodLockRow(SQLModel, table=True):
    """Khóa sổ kế toán theo kỳ."""

    __tablename__ = "period_lock"

    period: str = Field(primary_key=True)  # YYYY-MM, YYYY-Qn, YYYY
    status: str = "OPEN"
    locked_at: datetime | None = None
    locked_by: str | None = None
    locked_by_name: str | None = None
    unlocked_at: datetime | None = None
    unlocked_by: str | None = None
    unlock_reason: str | None = None
    version: int = 1


def get_engine_url(database_type: str = "sqlite") -> str:
    """Lấy database URL từ environment."""
    db_type = database_type or os.getenv("DATABASE_TYPE", "sqlite")

    if db_type == "sqlite":
        db_path = os.getenv("DATABASE_PATH", "./data/ledger.db")
        return f"sqlite:///{db_path}"
    elif db_type == "postgresql":
        host = os.getenv("DB_HOST", "localhost")
        port = os.getenv("DB_PORT", "5432")
        dbname = os.getenv("DB_NAME", "ledger")
        user = os.getenv("DB_USER", "postgres")
        password = os.getenv("DB_PASSWORD", "postgres")
        return f"postgresql://{user}:{password}@{host}:{port}/{dbname}"
    else:
        raise ValueError(f"Unsupported database type: {db_type}")
