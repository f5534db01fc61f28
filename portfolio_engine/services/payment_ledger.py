# portfolio_engine/services/payment_ledger.py
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.allocation import (
    ZERO,
    Allocation,
    LedgerState,
    allocate_payment,
    apply_allocation,
    consumed_credit,
    money,
    reverse_allocation,
    roll_forward,
    validate_allocation,
)
from ..domain.audit import audit_write
from ..domain.errors import ValidationError
from ..domain.late_fees import LateFeePolicy, due_date_for_period, lateness, policy_from_settings
from ..domain.references import payment_reference
from ..domain.statuses import (
    EXTERNALLY_CLEARED_METHODS,
    PAYMENT_TRANSITIONS,
    PaymentMethod,
    PaymentStatus,
    ensure_transition,
)
from ..models import RentPayment, TenancyAgreement
from ..schemas import RentPaymentCreate
from .concurrency import serialized
from .events_facade import wf
from .ownership import must_get_landlord, must_get_payment, must_get_tenancy

log = logging.getLogger("portfolio_engine.ledger")

# never chained to, never re-allocated
_DEAD_STATUSES = (PaymentStatus.FAILED, PaymentStatus.CANCELLED)


def _now() -> datetime:
    return datetime.utcnow()


def _allocation_of(payment: RentPayment) -> Allocation:
    return Allocation(
        rent=money(payment.allocated_to_rent),
        fees=money(payment.allocated_to_fees),
        arrears=money(payment.allocated_to_arrears),
        credit=money(payment.credit_balance),
        is_partial=bool(payment.is_partial_payment),
    )


def _store_allocation(payment: RentPayment, alloc: Allocation) -> None:
    validate_allocation(alloc, payment.amount)
    payment.allocated_to_rent = alloc.rent
    payment.allocated_to_fees = alloc.fees
    payment.allocated_to_arrears = alloc.arrears
    payment.credit_balance = alloc.credit
    payment.is_partial_payment = alloc.is_partial


def _write_state(tenancy: TenancyAgreement, state: LedgerState) -> None:
    tenancy.open_period_start = state.open_period_start
    tenancy.open_period_outstanding = state.open_period_outstanding
    tenancy.arrears_balance = state.arrears_balance
    tenancy.credit_balance = state.credit_balance


def _allocate_against(tenancy: TenancyAgreement, payment: RentPayment) -> tuple[LedgerState, Allocation]:
    """Position the tenancy ledger on the payment's period and split the payment."""
    state, rent_due = roll_forward(
        LedgerState.of(tenancy), period_start=payment.period_start, period_rent=tenancy.rent_amount
    )
    alloc = allocate_payment(
        payment.amount,
        rent_due=rent_due,
        fees_due=money(payment.late_fee) + money(payment.admin_fee),
        arrears_due=state.arrears_balance,
    )
    return state, alloc


def _period_parent(db: Session, payment: RentPayment) -> Optional[RentPayment]:
    """First applied payment for the same tenancy and period."""
    return db.scalar(
        select(RentPayment)
        .where(
            RentPayment.tenancy_id == payment.tenancy_id,
            RentPayment.period_start == payment.period_start,
            RentPayment.id != payment.id,
            RentPayment.sequence_number.is_not(None),
            RentPayment.parent_payment_id.is_(None),
        )
        .order_by(RentPayment.sequence_number)
        .limit(1)
    )


def _apply_to_ledger(
    db: Session,
    tenancy: TenancyAgreement,
    payment: RentPayment,
    *,
    ledger_date: date,
) -> Allocation:
    """
    Allocate against the current ledger, then apply. Payments reach the ledger
    in date order only; each gets the tenancy's next sequence number.
    """
    if tenancy.last_payment_date is not None and ledger_date < tenancy.last_payment_date:
        raise ValidationError(
            "payment is dated before the tenancy's last applied payment",
            tenancy_id=tenancy.id,
            payment_date=ledger_date.isoformat(),
            last_payment_date=tenancy.last_payment_date.isoformat(),
        )

    held = LedgerState.of(tenancy)
    state, alloc = _allocate_against(tenancy, payment)
    _store_allocation(payment, alloc)
    # credit set against the newly opened period when the ledger rolled
    credit_used = held.credit_balance - state.credit_balance

    parent = _period_parent(db, payment)
    if parent is not None and (alloc.is_partial or parent.is_partial_payment):
        payment.parent_payment_id = parent.id
        parent.partial_payment_count = int(parent.partial_payment_count or 0) + 1
        db.add(parent)

    after = apply_allocation(state, alloc)
    _write_state(tenancy, after)

    tenancy.ledger_sequence = int(tenancy.ledger_sequence or 0) + 1
    payment.sequence_number = tenancy.ledger_sequence
    tenancy.last_payment_date = ledger_date
    tenancy.total_rent_paid = money(tenancy.total_rent_paid) + alloc.rent + alloc.arrears + credit_used
    if payment.is_late:
        tenancy.late_payments = int(tenancy.late_payments or 0) + 1

    # a partial payment never clears arrears
    had_arrears = held.arrears_balance > ZERO or state.arrears_balance > ZERO
    if not alloc.is_partial and had_arrears and after.arrears_balance == ZERO:
        tenancy.arrears_cleared_date = ledger_date

    db.add(tenancy)
    db.add(payment)
    return alloc


def _record_event(
    db: Session,
    payment: RentPayment,
    *,
    actor_id: Optional[str],
    action: str,
    before: Optional[dict],
    payload: Optional[dict] = None,
) -> None:
    audit_write(
        db,
        landlord_id=payment.landlord_id,
        actor_id=actor_id,
        action=action,
        entity_type="RentPayment",
        entity_id=payment.id,
        before=before,
        after=payment.model_dump(),
    )
    body = {
        "payment_id": payment.id,
        "tenancy_id": payment.tenancy_id,
        "status": payment.status.value,
        "amount": str(money(payment.amount)),
    }
    if payload:
        body.update(payload)
    wf.emit(
        db,
        landlord_id=payment.landlord_id,
        property_id=payment.property_id,
        actor_id=actor_id,
        event_type=action,
        payload=body,
    )


# -----------------------------
# Record
# -----------------------------
def record_payment(
    db: Session,
    landlord_id: int,
    spec: RentPaymentCreate,
    *,
    actor_id: Optional[str] = None,
    late_fee_policy: Optional[LateFeePolicy] = None,
) -> RentPayment:
    tenancy = must_get_tenancy(db, landlord_id=landlord_id, tenancy_id=spec.tenancy_id)

    amount = money(spec.amount)
    if amount <= ZERO:
        raise ValidationError("payment amount must be positive", amount=str(amount))
    if spec.period_end < spec.period_start:
        raise ValidationError(
            "payment period_end cannot be before period_start",
            period_start=spec.period_start.isoformat(),
            period_end=spec.period_end.isoformat(),
        )
    admin_fee = money(spec.admin_fee)
    if admin_fee < ZERO:
        raise ValidationError("admin_fee cannot be negative", admin_fee=str(admin_fee))

    due_date = spec.due_date or due_date_for_period(spec.period_start, tenancy.rent_due_day)
    is_late, days_late = lateness(spec.payment_date, due_date)

    # charged once per period: later payments for the same period carry no late fee
    late_fee = ZERO
    first_for_period = (
        db.scalar(
            select(RentPayment.id)
            .where(
                RentPayment.tenancy_id == tenancy.id,
                RentPayment.period_start == spec.period_start,
                RentPayment.status.not_in(list(_DEAD_STATUSES)),
            )
            .limit(1)
        )
        is None
    )
    if is_late and first_for_period:
        policy = late_fee_policy or policy_from_settings(settings)
        late_fee = money(policy.fee_for(days_late=days_late, period_rent=money(tenancy.rent_amount)))

    method = PaymentMethod(spec.method)
    payment = RentPayment(
        landlord_id=tenancy.landlord_id,
        tenancy_id=tenancy.id,
        property_id=tenancy.property_id,
        tenant_id=tenancy.tenant_id,
        payment_reference=payment_reference(),
        payment_type=spec.payment_type,
        method=method,
        status=PaymentStatus.PENDING,
        amount=amount,
        late_fee=late_fee,
        admin_fee=admin_fee,
        payment_date=spec.payment_date,
        due_date=due_date,
        period_start=spec.period_start,
        period_end=spec.period_end,
        is_late=is_late,
        days_late=days_late,
        partial_payment_count=0,
        transaction_reference=spec.transaction_reference,
        notes=spec.notes,
        recorded_by=actor_id,
    )

    with serialized(db, "tenancy", tenancy_id=tenancy.id):
        db.add(payment)
        db.flush()

        if method in EXTERNALLY_CLEARED_METHODS:
            # provisional split; recomputed against the ledger when settlement is confirmed
            _, alloc = _allocate_against(tenancy, payment)
            _store_allocation(payment, alloc)
            db.add(payment)
        else:
            _apply_to_ledger(db, tenancy, payment, ledger_date=spec.payment_date)
            payment.status = PaymentStatus.COMPLETED
            payment.processed_date = _now()
            payment.settled_date = spec.payment_date
        db.flush()

        _record_event(db, payment, actor_id=actor_id, action="payment.recorded", before=None)
        db.commit()

    db.refresh(payment)
    log.info(
        "payment recorded",
        extra={
            "landlord_id": payment.landlord_id,
            "tenancy_id": payment.tenancy_id,
            "payment_id": payment.id,
            "actor_id": actor_id,
        },
    )
    return payment


# -----------------------------
# Settlement
# -----------------------------
def mark_processing(
    db: Session, landlord_id: int, payment_id: int, *, actor_id: Optional[str] = None
) -> RentPayment:
    payment = must_get_payment(db, landlord_id=landlord_id, payment_id=payment_id)
    before = payment.model_dump()
    ensure_transition("payment", PAYMENT_TRANSITIONS, payment.status, PaymentStatus.PROCESSING)
    payment.status = PaymentStatus.PROCESSING
    db.add(payment)
    db.flush()
    _record_event(db, payment, actor_id=actor_id, action="payment.processing", before=before)
    db.commit()
    db.refresh(payment)
    return payment


def confirm_settlement(
    db: Session,
    landlord_id: int,
    payment_id: int,
    *,
    settled_date: Optional[date] = None,
    transaction_reference: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> RentPayment:
    payment = must_get_payment(db, landlord_id=landlord_id, payment_id=payment_id)
    ensure_transition("payment", PAYMENT_TRANSITIONS, payment.status, PaymentStatus.COMPLETED)

    ledger_date = settled_date or _now().date()
    if ledger_date < payment.payment_date:
        raise ValidationError(
            "settlement cannot precede the payment date",
            payment_id=payment.id,
            settled_date=ledger_date.isoformat(),
        )

    tenancy = db.get(TenancyAgreement, payment.tenancy_id)
    before = payment.model_dump()

    with serialized(db, "tenancy", tenancy_id=payment.tenancy_id):
        _apply_to_ledger(db, tenancy, payment, ledger_date=ledger_date)
        payment.status = PaymentStatus.COMPLETED
        payment.settled_date = ledger_date
        payment.processed_date = _now()
        if transaction_reference:
            payment.transaction_reference = transaction_reference
        db.flush()

        _record_event(db, payment, actor_id=actor_id, action="payment.settled", before=before)
        db.commit()

    db.refresh(payment)
    log.info(
        "payment settled",
        extra={"landlord_id": landlord_id, "tenancy_id": payment.tenancy_id, "payment_id": payment.id},
    )
    return payment


def fail_settlement(
    db: Session, landlord_id: int, payment_id: int, *, reason: str, actor_id: Optional[str] = None
) -> RentPayment:
    payment = must_get_payment(db, landlord_id=landlord_id, payment_id=payment_id)
    before = payment.model_dump()
    ensure_transition("payment", PAYMENT_TRANSITIONS, payment.status, PaymentStatus.FAILED)
    payment.status = PaymentStatus.FAILED
    payment.failure_reason = reason
    payment.processed_date = _now()
    db.add(payment)
    db.flush()
    _record_event(db, payment, actor_id=actor_id, action="payment.failed", before=before, payload={"reason": reason})
    db.commit()
    db.refresh(payment)
    log.warning("payment failed", extra={"landlord_id": landlord_id, "payment_id": payment.id})
    return payment


def cancel(db: Session, landlord_id: int, payment_id: int, *, actor_id: Optional[str] = None) -> RentPayment:
    payment = must_get_payment(db, landlord_id=landlord_id, payment_id=payment_id)
    before = payment.model_dump()
    ensure_transition("payment", PAYMENT_TRANSITIONS, payment.status, PaymentStatus.CANCELLED)
    payment.status = PaymentStatus.CANCELLED
    db.add(payment)
    db.flush()
    _record_event(db, payment, actor_id=actor_id, action="payment.cancelled", before=before)
    db.commit()
    db.refresh(payment)
    return payment


def refund(
    db: Session, landlord_id: int, payment_id: int, *, reason: str, actor_id: Optional[str] = None
) -> RentPayment:
    """Full refund of a completed payment; its allocation is taken back off the tenancy ledger."""
    if not (reason or "").strip():
        raise ValidationError("a refund reason is required", payment_id=payment_id)
    payment = must_get_payment(db, landlord_id=landlord_id, payment_id=payment_id)
    ensure_transition("payment", PAYMENT_TRANSITIONS, payment.status, PaymentStatus.REFUNDED)

    tenancy = db.get(TenancyAgreement, payment.tenancy_id)
    before = payment.model_dump()
    alloc = _allocation_of(payment)

    with serialized(db, "tenancy", tenancy_id=payment.tenancy_id):
        held = LedgerState.of(tenancy)
        reversed_state = reverse_allocation(held, alloc, period_start=payment.period_start)
        _write_state(tenancy, reversed_state)
        tenancy.total_rent_paid = (
            money(tenancy.total_rent_paid) - alloc.rent - alloc.arrears - consumed_credit(held, alloc)
        )
        db.add(tenancy)

        payment.status = PaymentStatus.REFUNDED
        payment.refund_amount = money(payment.amount)
        payment.refund_reason = reason.strip()
        payment.refunded_at = _now()
        db.add(payment)
        db.flush()

        _record_event(db, payment, actor_id=actor_id, action="payment.refunded", before=before, payload={"reason": reason})
        db.commit()

    db.refresh(payment)
    log.info("payment refunded", extra={"landlord_id": landlord_id, "payment_id": payment.id})
    return payment


def mark_overdue_payments(db: Session, *, today: Optional[date] = None) -> list[int]:
    """Pending payments past their due date -> overdue. Overdue payments can still settle."""
    today = today or _now().date()
    rows = db.scalars(
        select(RentPayment)
        .where(RentPayment.status == PaymentStatus.PENDING, RentPayment.due_date < today)
        .order_by(RentPayment.id)
    ).all()
    ids: list[int] = []
    for payment in rows:
        before = payment.model_dump()
        ensure_transition("payment", PAYMENT_TRANSITIONS, payment.status, PaymentStatus.OVERDUE)
        payment.status = PaymentStatus.OVERDUE
        db.add(payment)
        _record_event(db, payment, actor_id=None, action="payment.overdue", before=before)
        ids.append(int(payment.id))
    if ids:
        db.commit()
        log.info("marked %d payments overdue", len(ids))
    return ids


# -----------------------------
# Queries
# -----------------------------
def list_payments(
    db: Session,
    landlord_id: int,
    *,
    tenancy_id: Optional[int] = None,
    status: Optional[PaymentStatus] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
) -> list[RentPayment]:
    must_get_landlord(db, landlord_id=landlord_id)
    q = select(RentPayment).where(RentPayment.landlord_id == landlord_id)
    if tenancy_id is not None:
        q = q.where(RentPayment.tenancy_id == int(tenancy_id))
    if status is not None:
        q = q.where(RentPayment.status == PaymentStatus(status))
    if from_date is not None:
        q = q.where(RentPayment.payment_date >= from_date)
    if to_date is not None:
        q = q.where(RentPayment.payment_date <= to_date)
    q = q.order_by(RentPayment.payment_date.desc(), RentPayment.id.desc())
    return list(db.scalars(q).all())


def tenancy_balance(db: Session, landlord_id: int, tenancy_id: int) -> dict[str, Decimal]:
    tenancy = must_get_tenancy(db, landlord_id=landlord_id, tenancy_id=tenancy_id)
    return {
        "arrears_balance": money(tenancy.arrears_balance),
        "credit_balance": money(tenancy.credit_balance),
        "open_period_outstanding": money(tenancy.open_period_outstanding),
        "total_rent_paid": money(tenancy.total_rent_paid),
    }
