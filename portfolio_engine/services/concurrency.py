# portfolio_engine/services/concurrency.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..domain.errors import ConflictError, EngineError


@contextmanager
def serialized(db: Session, entity: str, **context: Any) -> Iterator[None]:
    """
    Wrap one lifecycle operation (including its commit).

    Properties and tenancies carry a version column; a write against a row
    another transaction has already moved on fails with StaleDataError.
    Unique claims (report generation keys, ledger sequence numbers) fail with
    IntegrityError. Either way the losing transaction is rolled back in full
    and surfaces as ConflictError. Rule violations raised inside the block
    also roll back whatever was flushed before them.
    """
    try:
        yield
    except EngineError:
        db.rollback()
        raise
    except StaleDataError as e:
        db.rollback()
        raise ConflictError(f"{entity} was modified concurrently; reload and retry", **context) from e
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(f"{entity} conflicts with a concurrent write", **context) from e
