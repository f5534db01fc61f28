# portfolio_engine/routers/tenancies.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_actor
from ..db import get_db
from ..domain.statuses import TenancyStatus
from ..schemas import TenancyBreach, TenancyCreate, TenancyEnd, TenancyOut, TenancyRenew
from ..services import payment_ledger, tenancy_lifecycle

router = APIRouter(prefix="/landlords/{landlord_id}/tenancies", tags=["tenancies"])


@router.post("", response_model=TenancyOut, status_code=201)
def create_tenancy(landlord_id: int, payload: TenancyCreate, db: Session = Depends(get_db), a=Depends(get_actor)):
    return tenancy_lifecycle.create(db, landlord_id, payload, actor_id=a.actor_id)


@router.get("", response_model=list[TenancyOut])
def list_tenancies(
    landlord_id: int,
    property_id: Optional[int] = Query(default=None, alias="propertyId"),
    status: Optional[TenancyStatus] = Query(default=None),
    db: Session = Depends(get_db),
):
    return tenancy_lifecycle.list_tenancies(db, landlord_id, property_id=property_id, status=status)


@router.patch("/{tenancy_id}/end", response_model=TenancyOut)
def end_tenancy(
    landlord_id: int,
    tenancy_id: int,
    payload: Optional[TenancyEnd] = Body(default=None),
    db: Session = Depends(get_db),
    a=Depends(get_actor),
):
    payload = payload or TenancyEnd()
    return tenancy_lifecycle.end(
        db, landlord_id, tenancy_id, end_date=payload.end_date, reason=payload.reason, actor_id=a.actor_id
    )


@router.patch("/{tenancy_id}/request-signature", response_model=TenancyOut)
def request_signature(landlord_id: int, tenancy_id: int, db: Session = Depends(get_db), a=Depends(get_actor)):
    return tenancy_lifecycle.request_signature(db, landlord_id, tenancy_id, actor_id=a.actor_id)


@router.patch("/{tenancy_id}/activate", response_model=TenancyOut)
def activate_tenancy(landlord_id: int, tenancy_id: int, db: Session = Depends(get_db), a=Depends(get_actor)):
    return tenancy_lifecycle.activate(db, landlord_id, tenancy_id, actor_id=a.actor_id)


@router.patch("/{tenancy_id}/breach", response_model=TenancyOut)
def mark_breached(
    landlord_id: int,
    tenancy_id: int,
    payload: TenancyBreach,
    db: Session = Depends(get_db),
    a=Depends(get_actor),
):
    return tenancy_lifecycle.mark_breached(db, landlord_id, tenancy_id, reason=payload.reason, actor_id=a.actor_id)


@router.post("/{tenancy_id}/renew", response_model=TenancyOut, status_code=201)
def renew_tenancy(
    landlord_id: int,
    tenancy_id: int,
    payload: TenancyRenew,
    db: Session = Depends(get_db),
    a=Depends(get_actor),
):
    return tenancy_lifecycle.renew(
        db,
        landlord_id,
        tenancy_id,
        new_end_date=payload.new_end_date,
        new_rent=payload.new_rent,
        actor_id=a.actor_id,
    )


@router.get("/{tenancy_id}/balance")
def tenancy_balance(landlord_id: int, tenancy_id: int, db: Session = Depends(get_db)) -> dict:
    return {k: float(v) for k, v in payment_ledger.tenancy_balance(db, landlord_id, tenancy_id).items()}
