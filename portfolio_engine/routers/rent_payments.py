# portfolio_engine/routers/rent_payments.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_actor
from ..db import get_db
from ..domain.statuses import PaymentStatus
from ..schemas import PaymentConfirm, PaymentFail, PaymentRefund, RentPaymentCreate, RentPaymentOut
from ..services import payment_ledger

router = APIRouter(prefix="/landlords/{landlord_id}/rent-payments", tags=["rent-payments"])


@router.post("", response_model=RentPaymentOut, status_code=201)
def record_payment(
    landlord_id: int, payload: RentPaymentCreate, db: Session = Depends(get_db), a=Depends(get_actor)
):
    return payment_ledger.record_payment(db, landlord_id, payload, actor_id=a.actor_id)


@router.get("", response_model=list[RentPaymentOut])
def list_payments(
    landlord_id: int,
    tenancy_id: Optional[int] = Query(default=None, alias="tenancyId"),
    status: Optional[PaymentStatus] = Query(default=None),
    from_date: Optional[date] = Query(default=None, alias="fromDate"),
    to_date: Optional[date] = Query(default=None, alias="toDate"),
    db: Session = Depends(get_db),
):
    return payment_ledger.list_payments(
        db, landlord_id, tenancy_id=tenancy_id, status=status, from_date=from_date, to_date=to_date
    )


@router.patch("/{payment_id}/processing", response_model=RentPaymentOut)
def mark_processing(landlord_id: int, payment_id: int, db: Session = Depends(get_db), a=Depends(get_actor)):
    return payment_ledger.mark_processing(db, landlord_id, payment_id, actor_id=a.actor_id)


@router.patch("/{payment_id}/confirm", response_model=RentPaymentOut)
def confirm_settlement(
    landlord_id: int,
    payment_id: int,
    payload: Optional[PaymentConfirm] = Body(default=None),
    db: Session = Depends(get_db),
    a=Depends(get_actor),
):
    payload = payload or PaymentConfirm()
    return payment_ledger.confirm_settlement(
        db,
        landlord_id,
        payment_id,
        settled_date=payload.settled_date,
        transaction_reference=payload.transaction_reference,
        actor_id=a.actor_id,
    )


@router.patch("/{payment_id}/fail", response_model=RentPaymentOut)
def fail_settlement(
    landlord_id: int, payment_id: int, payload: PaymentFail, db: Session = Depends(get_db), a=Depends(get_actor)
):
    return payment_ledger.fail_settlement(db, landlord_id, payment_id, reason=payload.reason, actor_id=a.actor_id)


@router.patch("/{payment_id}/cancel", response_model=RentPaymentOut)
def cancel_payment(landlord_id: int, payment_id: int, db: Session = Depends(get_db), a=Depends(get_actor)):
    return payment_ledger.cancel(db, landlord_id, payment_id, actor_id=a.actor_id)


@router.patch("/{payment_id}/refund", response_model=RentPaymentOut)
def refund_payment(
    landlord_id: int, payment_id: int, payload: PaymentRefund, db: Session = Depends(get_db), a=Depends(get_actor)
):
    return payment_ledger.refund(db, landlord_id, payment_id, reason=payload.reason, actor_id=a.actor_id)
