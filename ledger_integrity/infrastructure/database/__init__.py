"""
Database initialization and session management.
"""

import os
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from ledger_integrity.infrastructure.database.models import (
    AuditLogRow,
    LedgerDocumentRow,
    PeriodLockRow,
    get_engine_url,
)


def create_db_engine(url: str) -> Engine:
    if url == "sqlite://" or url == "sqlite:///:memory:":
        # một kết nối dùng chung cho CSDL trong bộ nhớ
        return create_engine(
            url, echo=False, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    if "sqlite" in url:
        return create_engine(url, echo=False, connect_args={"check_same_thread": False})
    return create_engine(url, echo=False)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


DATABASE_URL = get_engine_url(os.getenv("DATABASE_TYPE", "sqlite"))

engine = create_db_engine(DATABASE_URL)

SessionLocal = create_session_factory(engine)


def init_db(bind: Engine | None = None) -> None:
    """Initialize database - create all tables."""
    bind = bind or engine
    if bind.url.drivername.startswith("sqlite") and bind.url.database not in (None, "", ":memory:"):
        Path(bind.url.database).parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(
        bind=bind,
        tables=[LedgerDocumentRow.__table__, AuditLogRow.__table__, PeriodLockRow.__table__],
    )
