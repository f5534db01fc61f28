# tests/test_payment_ledger.py
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from portfolio_engine.db import SessionLocal
from portfolio_engine.domain.errors import ConflictError, ValidationError
from portfolio_engine.domain.late_fees import FlatLateFee
from portfolio_engine.domain.statuses import PaymentMethod, PaymentStatus, PropertyStatus, TenancyStatus
from portfolio_engine.models import Property, TenancyAgreement
from portfolio_engine.schemas import LandlordCreate, PropertyCreate, RentPaymentCreate, TenancyCreate
from portfolio_engine.services import payment_ledger, portfolio, tenancy_lifecycle

JAN = (date(2024, 1, 1), date(2024, 1, 31))
FEB = (date(2024, 2, 1), date(2024, 2, 29))


def _setup(db) -> tuple[int, TenancyAgreement]:
    ll = portfolio.register_landlord(db, LandlordCreate(display_name="Ledger Lettings"))
    p = portfolio.add_property(db, ll.id, PropertyCreate(address_line1="9 Mill Rd", city="Hull", postcode="HU1 1AA"))
    t = tenancy_lifecycle.create(
        db,
        ll.id,
        TenancyCreate(property_id=p.id, tenant_id="tenant-9", start_date=date(2024, 1, 1), rent_amount=Decimal("1000")),
    )
    return ll.id, t


def _pay(
    db,
    landlord_id: int,
    tenancy_id: int,
    amount: str,
    on: date,
    period=JAN,
    method: PaymentMethod = PaymentMethod.CARD_PAYMENT,
    **kw,
):
    return payment_ledger.record_payment(
        db,
        landlord_id,
        RentPaymentCreate(
            tenancy_id=tenancy_id,
            amount=Decimal(amount),
            payment_date=on,
            method=method,
            period_start=period[0],
            period_end=period[1],
        ),
        **kw,
    )


def test_january_payment_then_end():
    db = SessionLocal()
    try:
        lid, t = _setup(db)
        pay = _pay(db, lid, t.id, "1000", date(2024, 1, 5))

        assert pay.status == PaymentStatus.COMPLETED
        assert pay.allocated_to_rent == Decimal("1000.00")
        assert pay.allocated_to_arrears == Decimal("0.00")
        assert pay.is_late is True
        assert pay.days_late == 4
        assert pay.late_fee == Decimal("0.00")
        assert pay.sequence_number == 1
        assert pay.payment_reference.startswith("PAY-")

        ended = tenancy_lifecycle.end(db, lid, t.id, end_date=date(2024, 6, 30))
        assert ended.status == TenancyStatus.ENDED
        assert db.get(Property, t.property_id).status == PropertyStatus.AVAILABLE
    finally:
        db.close()


def test_partial_payments_chain_to_first_payment_of_period(db):
    lid, t = _setup(db)
    p1 = _pay(db, lid, t.id, "400", date(2024, 1, 1))
    assert p1.is_partial_payment is True
    assert p1.allocated_to_rent == Decimal("400.00")

    p2 = _pay(db, lid, t.id, "600", date(2024, 1, 10))
    db.refresh(p1)
    db.refresh(t)

    assert p2.is_partial_payment is False
    assert p2.parent_payment_id == p1.id
    assert p2.sequence_number == 2
    assert p1.partial_payment_count == 1
    assert t.open_period_outstanding == Decimal("0.00")
    assert t.late_payments == 1


def test_unpaid_rent_rolls_into_arrears_and_is_cleared(db):
    lid, t = _setup(db)
    _pay(db, lid, t.id, "600", date(2024, 1, 1))

    feb = _pay(db, lid, t.id, "1400", date(2024, 2, 1), period=FEB)
    db.refresh(t)

    assert feb.allocated_to_rent == Decimal("1000.00")
    assert feb.allocated_to_arrears == Decimal("400.00")
    assert feb.credit_balance == Decimal("0.00")
    assert feb.parent_payment_id is None
    assert t.arrears_balance == Decimal("0.00")
    assert t.arrears_cleared_date == date(2024, 2, 1)
    assert t.total_rent_paid == Decimal("2000.00")

    bal = payment_ledger.tenancy_balance(db, lid, t.id)
    assert bal["arrears_balance"] == Decimal("0.00")
    assert bal["open_period_outstanding"] == Decimal("0.00")


def test_payments_apply_in_date_order_only(db):
    lid, t = _setup(db)
    _pay(db, lid, t.id, "500", date(2024, 1, 10))

    with pytest.raises(ValidationError):
        _pay(db, lid, t.id, "500", date(2024, 1, 5))

    assert len(payment_ledger.list_payments(db, lid, tenancy_id=t.id)) == 1


def test_non_positive_amount_rejected(db):
    lid, t = _setup(db)
    with pytest.raises(ValidationError):
        _pay(db, lid, t.id, "0", date(2024, 1, 1))


def test_bank_transfer_waits_for_settlement(db):
    lid, t = _setup(db)
    pay = _pay(db, lid, t.id, "1000", date(2024, 1, 3), method=PaymentMethod.BANK_TRANSFER)
    db.refresh(t)

    assert pay.status == PaymentStatus.PENDING
    assert pay.sequence_number is None
    assert t.ledger_sequence == 0
    assert t.open_period_start is None

    with pytest.raises(ValidationError):
        payment_ledger.confirm_settlement(db, lid, pay.id, settled_date=date(2024, 1, 2))

    pay = payment_ledger.confirm_settlement(
        db, lid, pay.id, settled_date=date(2024, 1, 4), transaction_reference="BACS-77"
    )
    db.refresh(t)
    assert pay.status == PaymentStatus.COMPLETED
    assert pay.sequence_number == 1
    assert pay.settled_date == date(2024, 1, 4)
    assert pay.transaction_reference == "BACS-77"
    assert t.last_payment_date == date(2024, 1, 4)
    assert t.open_period_outstanding == Decimal("0.00")

    with pytest.raises(ConflictError):
        payment_ledger.confirm_settlement(db, lid, pay.id, settled_date=date(2024, 1, 5))


def test_overdue_payment_can_still_settle(db):
    lid, t = _setup(db)
    pay = _pay(db, lid, t.id, "1000", date(2024, 1, 3), method=PaymentMethod.DIRECT_DEBIT)

    assert payment_ledger.mark_overdue_payments(db, today=date(2024, 1, 10)) == [pay.id]
    db.refresh(pay)
    assert pay.status == PaymentStatus.OVERDUE

    pay = payment_ledger.mark_processing(db, lid, pay.id)
    assert pay.status == PaymentStatus.PROCESSING

    pay = payment_ledger.confirm_settlement(db, lid, pay.id, settled_date=date(2024, 1, 11))
    assert pay.status == PaymentStatus.COMPLETED


def test_failed_and_cancelled_are_terminal(db):
    lid, t = _setup(db)
    a = _pay(db, lid, t.id, "1000", date(2024, 1, 3), method=PaymentMethod.BANK_TRANSFER)
    b = _pay(db, lid, t.id, "1000", date(2024, 1, 3), method=PaymentMethod.BANK_TRANSFER)

    a = payment_ledger.fail_settlement(db, lid, a.id, reason="insufficient funds")
    assert a.status == PaymentStatus.FAILED
    assert a.failure_reason == "insufficient funds"
    with pytest.raises(ConflictError):
        payment_ledger.cancel(db, lid, a.id)

    b = payment_ledger.cancel(db, lid, b.id)
    assert b.status == PaymentStatus.CANCELLED
    with pytest.raises(ConflictError):
        payment_ledger.confirm_settlement(db, lid, b.id, settled_date=date(2024, 1, 4))

    c = _pay(db, lid, t.id, "1000", date(2024, 1, 3))
    with pytest.raises(ConflictError):
        payment_ledger.cancel(db, lid, c.id)


def test_refund_takes_allocation_back_off_the_ledger(db):
    lid, t = _setup(db)
    pay = _pay(db, lid, t.id, "1000", date(2024, 1, 1))

    with pytest.raises(ValidationError):
        payment_ledger.refund(db, lid, pay.id, reason=" ")

    pay = payment_ledger.refund(db, lid, pay.id, reason="paid twice by mistake")
    db.refresh(t)
    assert pay.status == PaymentStatus.REFUNDED
    assert pay.refund_amount == Decimal("1000.00")
    assert pay.refunded_at is not None
    assert t.open_period_outstanding == Decimal("1000.00")
    assert t.total_rent_paid == Decimal("0.00")

    with pytest.raises(ConflictError):
        payment_ledger.refund(db, lid, pay.id, reason="again")


def test_late_fee_charged_once_per_period(db):
    lid, t = _setup(db)
    policy = FlatLateFee(amount=Decimal("25"))

    p1 = _pay(db, lid, t.id, "500", date(2024, 1, 10), late_fee_policy=policy)
    p2 = _pay(db, lid, t.id, "500", date(2024, 1, 12), late_fee_policy=policy)
    db.refresh(t)

    assert p1.late_fee == Decimal("25.00")
    assert p2.late_fee == Decimal("0.00")
    assert t.late_payments == 2


def test_list_payments_filters(db):
    lid, t = _setup(db)
    _pay(db, lid, t.id, "1000", date(2024, 1, 2))
    _pay(db, lid, t.id, "1000", date(2024, 2, 2), period=FEB)
    _pay(db, lid, t.id, "1000", date(2024, 2, 3), period=FEB, method=PaymentMethod.BANK_TRANSFER)

    rows = payment_ledger.list_payments(db, lid, tenancy_id=t.id)
    assert [r.payment_date for r in rows] == [date(2024, 2, 3), date(2024, 2, 2), date(2024, 1, 2)]

    pending = payment_ledger.list_payments(db, lid, status=PaymentStatus.PENDING)
    assert len(pending) == 1

    jan_only = payment_ledger.list_payments(db, lid, from_date=date(2024, 1, 1), to_date=date(2024, 1, 31))
    assert len(jan_only) == 1


MAR = (date(2024, 3, 1), date(2024, 3, 31))


def test_credit_is_set_against_the_next_period(db):
    lid, t = _setup(db)
    jan = _pay(db, lid, t.id, "1500", date(2024, 1, 1))
    assert jan.credit_balance == Decimal("500.00")

    feb = _pay(db, lid, t.id, "500", date(2024, 2, 1), period=FEB)
    assert feb.allocated_to_rent == Decimal("500.00")
    assert feb.is_partial_payment is False

    _pay(db, lid, t.id, "1000", date(2024, 3, 1), period=MAR)

    bal = payment_ledger.tenancy_balance(db, lid, t.id)
    assert bal["arrears_balance"] == Decimal("0.00")
    assert bal["credit_balance"] == Decimal("0.00")
    assert bal["open_period_outstanding"] == Decimal("0.00")
    assert bal["total_rent_paid"] == Decimal("3000.00")


def test_refund_after_credit_was_used_puts_it_back_as_arrears(db):
    lid, t = _setup(db)
    jan = _pay(db, lid, t.id, "1500", date(2024, 1, 1))
    _pay(db, lid, t.id, "500", date(2024, 2, 1), period=FEB)

    payment_ledger.refund(db, lid, jan.id, reason="chargeback")

    bal = payment_ledger.tenancy_balance(db, lid, t.id)
    assert bal["arrears_balance"] == Decimal("1500.00")
    assert bal["credit_balance"] == Decimal("0.00")
    assert bal["total_rent_paid"] == Decimal("500.00")


def test_portfolio_summary_money_block(db):
    lid, t = _setup(db)
    _pay(db, lid, t.id, "600", date(2024, 1, 5))
    late = _pay(db, lid, t.id, "400", date(2024, 2, 3), period=FEB, method=PaymentMethod.BANK_TRANSFER)
    assert payment_ledger.mark_overdue_payments(db, today=date(2024, 2, 10)) == [late.id]
    _pay(db, lid, t.id, "250", date(2024, 2, 12), period=FEB, method=PaymentMethod.DIRECT_DEBIT)

    jan = portfolio.portfolio_summary(db, lid, today=date(2024, 1, 20))
    assert jan.monthly_income == 600.0
    assert jan.pending_payments_total == 250.0
    assert jan.overdue_payments_total == 400.0

    feb = portfolio.portfolio_summary(db, lid, today=date(2024, 2, 20)).as_dict()
    assert feb["monthly_income"] == 0.0
