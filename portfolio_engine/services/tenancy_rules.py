from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.allocation import ZERO, money
from ..domain.errors import ConflictError, ValidationError
from ..domain.statuses import NON_TERMINAL_TENANCY_STATUSES
from ..models import TenancyAgreement


def _as_date(v: Any) -> Optional[date]:
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v))
    except ValueError:
        return None


def validate_tenancy_terms(*, start_date: Any, end_date: Any, rent_amount: Any) -> tuple[date, Optional[date], Decimal]:
    s = _as_date(start_date)
    e = _as_date(end_date)

    if s is None:
        raise ValidationError("tenancy start_date is required and must be a date")
    if e is not None and e < s:
        raise ValidationError(
            "tenancy end_date cannot be before start_date", start_date=s.isoformat(), end_date=e.isoformat()
        )

    rent = money(rent_amount)
    if rent <= ZERO:
        raise ValidationError("tenancy rent_amount must be positive", rent_amount=str(rent))
    return s, e, rent


def live_tenancy(
    db: Session, *, property_id: int, ignore_tenancy_id: Optional[int] = None
) -> Optional[TenancyAgreement]:
    q = select(TenancyAgreement).where(
        TenancyAgreement.property_id == int(property_id),
        TenancyAgreement.status.in_(list(NON_TERMINAL_TENANCY_STATUSES)),
    )
    if ignore_tenancy_id is not None:
        q = q.where(TenancyAgreement.id != int(ignore_tenancy_id))
    return db.scalar(q.order_by(TenancyAgreement.id.desc()).limit(1))


def ensure_no_live_tenancy(
    db: Session, *, property_id: int, ignore_tenancy_id: Optional[int] = None
) -> None:
    """
    Raise ConflictError if the property already has a tenancy in draft,
    pending_signature or active.
    """
    row = live_tenancy(db, property_id=property_id, ignore_tenancy_id=ignore_tenancy_id)
    if row is not None:
        raise ConflictError(
            f"property already has a live tenancy id={int(row.id)} ({row.status.value})",
            property_id=int(property_id),
            tenancy_id=int(row.id),
        )
