# portfolio_engine/db.py
from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from .config import settings


def _plain(v: Any) -> Any:
    if isinstance(v, enum.Enum):
        return v.value
    if isinstance(v, Decimal):
        return str(v)
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    return v


class Base(DeclarativeBase):
    def model_dump(self) -> dict[str, Any]:
        """Column values as JSON-safe primitives (audit before/after snapshots)."""
        return {c.key: _plain(getattr(self, c.key)) for c in self.__mapper__.column_attrs}


def _engine_kwargs(url: str) -> dict[str, Any]:
    kw: dict[str, Any] = {"pool_pre_ping": True, "future": True}
    if url.startswith("sqlite"):
        # celery eager mode and TestClient both touch the session from other threads
        kw["connect_args"] = {"check_same_thread": False}
    return kw


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
)


def get_db():
    """
    If any statement fails the transaction is aborted; roll back before the
    session is closed so a failed operation never leaves partial writes behind.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
