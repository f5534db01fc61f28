# portfolio_engine/domain/late_fees.py
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Protocol

from .allocation import ZERO, money


def due_date_for_period(period_start: date, rent_due_day: int) -> date:
    """Rent due day within the period start's month, clamped to the month length (31 -> 28/29/30)."""
    last_day = calendar.monthrange(period_start.year, period_start.month)[1]
    day = max(1, min(int(rent_due_day or 1), last_day))
    return date(period_start.year, period_start.month, day)


def lateness(payment_date: date, due_date: date) -> tuple[bool, int]:
    days = (payment_date - due_date).days
    if days > 0:
        return True, days
    return False, 0


class LateFeePolicy(Protocol):
    name: str

    def fee_for(self, *, days_late: int, period_rent: Decimal) -> Decimal: ...


@dataclass(frozen=True)
class NoLateFee:
    name: str = "none"

    def fee_for(self, *, days_late: int, period_rent: Decimal) -> Decimal:
        return ZERO


@dataclass(frozen=True)
class FlatLateFee:
    amount: Decimal
    grace_days: int = 0
    name: str = "flat"

    def fee_for(self, *, days_late: int, period_rent: Decimal) -> Decimal:
        if days_late <= self.grace_days:
            return ZERO
        return money(self.amount)


@dataclass(frozen=True)
class PercentOfRentLateFee:
    rate: Decimal
    grace_days: int = 0
    name: str = "percent"

    def fee_for(self, *, days_late: int, period_rent: Decimal) -> Decimal:
        if days_late <= self.grace_days:
            return ZERO
        return money(money(period_rent) * Decimal(str(self.rate)))


def policy_from_settings(s: Any) -> LateFeePolicy:
    policy = (getattr(s, "late_fee_policy", "none") or "none").lower()
    grace = int(getattr(s, "late_fee_grace_days", 0) or 0)
    if policy == "flat":
        return FlatLateFee(amount=money(getattr(s, "late_fee_flat_amount", 0)), grace_days=grace)
    if policy == "percent":
        return PercentOfRentLateFee(rate=Decimal(str(getattr(s, "late_fee_percent", 0) or 0)), grace_days=grace)
    return NoLateFee()
