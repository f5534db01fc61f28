from __future__ import annotations

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from portfolio_engine.domain.late_fees import (
    FlatLateFee,
    NoLateFee,
    PercentOfRentLateFee,
    due_date_for_period,
    lateness,
    policy_from_settings,
)
from portfolio_engine.domain.references import is_reference, make_reference, maintenance_reference


def test_due_day_is_clamped_to_month_length():
    assert due_date_for_period(date(2024, 2, 1), 31) == date(2024, 2, 29)
    assert due_date_for_period(date(2023, 2, 1), 30) == date(2023, 2, 28)
    assert due_date_for_period(date(2024, 1, 1), 15) == date(2024, 1, 15)


def test_lateness_counts_days_after_due():
    assert lateness(date(2024, 1, 5), date(2024, 1, 1)) == (True, 4)
    assert lateness(date(2024, 1, 1), date(2024, 1, 1)) == (False, 0)
    assert lateness(date(2023, 12, 28), date(2024, 1, 1)) == (False, 0)


def test_flat_fee_respects_grace_days():
    p = FlatLateFee(amount=Decimal("25"), grace_days=3)
    assert p.fee_for(days_late=3, period_rent=Decimal("1000")) == Decimal("0.00")
    assert p.fee_for(days_late=4, period_rent=Decimal("1000")) == Decimal("25.00")


def test_percent_fee_is_share_of_period_rent():
    p = PercentOfRentLateFee(rate=Decimal("0.05"))
    assert p.fee_for(days_late=1, period_rent=Decimal("1000")) == Decimal("50.00")


def test_policy_from_settings():
    assert isinstance(policy_from_settings(SimpleNamespace(late_fee_policy="none")), NoLateFee)
    flat = policy_from_settings(
        SimpleNamespace(late_fee_policy="flat", late_fee_flat_amount=30, late_fee_grace_days=2)
    )
    assert isinstance(flat, FlatLateFee)
    assert flat.amount == Decimal("30.00")
    assert flat.grace_days == 2


def test_reference_format():
    ref = make_reference("MNT", now_millis=1704067200000)
    assert ref.startswith("MNT-1704067200000-")
    assert is_reference(ref, "MNT")
    assert not is_reference(ref, "INS")
    assert not is_reference("MNT-abc-12345")
    assert maintenance_reference() != maintenance_reference()
