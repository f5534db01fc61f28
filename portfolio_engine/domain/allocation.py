# portfolio_engine/domain/allocation.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(v: Any) -> Decimal:
    """Quantize to the smallest currency unit. Floats go through str() so 0.1 stays 0.10."""
    if v is None:
        return ZERO
    if isinstance(v, Decimal):
        d = v
    else:
        d = Decimal(str(v))
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Allocation:
    rent: Decimal
    fees: Decimal
    arrears: Decimal
    credit: Decimal
    is_partial: bool = False

    @property
    def total(self) -> Decimal:
        return self.rent + self.fees + self.arrears + self.credit

    def as_dict(self) -> dict:
        return {
            "allocated_to_rent": str(self.rent),
            "allocated_to_fees": str(self.fees),
            "allocated_to_arrears": str(self.arrears),
            "credit_balance": str(self.credit),
            "is_partial": self.is_partial,
        }


def validate_allocation(allocation: Allocation, amount: Any) -> None:
    expected = money(amount)
    for label, v in (
        ("rent", allocation.rent),
        ("fees", allocation.fees),
        ("arrears", allocation.arrears),
        ("credit", allocation.credit),
    ):
        if v < ZERO:
            raise ValidationError(f"allocation to {label} cannot be negative", bucket=label, value=str(v))
    if allocation.total != expected:
        raise ValidationError(
            "allocation does not reconcile: rent + fees + arrears + credit must equal the payment amount",
            amount=str(expected),
            allocated=str(allocation.total),
        )


def allocate_payment(amount: Any, *, rent_due: Any, fees_due: Any, arrears_due: Any) -> Allocation:
    """
    Split amount across rent, fees and arrears in that priority order.
    Whatever is left over becomes credit.

    A payment that does not cover rent_due + fees_due is partial.
    """
    amt = money(amount)
    if amt <= ZERO:
        raise ValidationError("payment amount must be positive", amount=str(amt))

    buckets = {"rent_due": money(rent_due), "fees_due": money(fees_due), "arrears_due": money(arrears_due)}
    for k, v in buckets.items():
        if v < ZERO:
            raise ValidationError(f"{k} cannot be negative", value=str(v))

    remaining = amt
    rent = min(remaining, buckets["rent_due"])
    remaining -= rent
    fees = min(remaining, buckets["fees_due"])
    remaining -= fees
    arrears = min(remaining, buckets["arrears_due"])
    remaining -= arrears

    alloc = Allocation(
        rent=rent,
        fees=fees,
        arrears=arrears,
        credit=remaining,
        is_partial=amt < (buckets["rent_due"] + buckets["fees_due"]),
    )
    validate_allocation(alloc, amt)
    return alloc


# -----------------------------------------------------------------------------
# Per-tenancy ledger state
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class LedgerState:
    open_period_start: Optional[date]
    open_period_outstanding: Decimal
    arrears_balance: Decimal
    credit_balance: Decimal

    @classmethod
    def of(cls, tenancy: Any) -> "LedgerState":
        return cls(
            open_period_start=getattr(tenancy, "open_period_start", None),
            open_period_outstanding=money(getattr(tenancy, "open_period_outstanding", None)),
            arrears_balance=money(getattr(tenancy, "arrears_balance", None)),
            credit_balance=money(getattr(tenancy, "credit_balance", None)),
        )


def apply_credit(state: LedgerState) -> LedgerState:
    """Set held credit against the open period's rent first, then carried arrears."""
    credit = state.credit_balance
    to_rent = min(credit, state.open_period_outstanding)
    credit -= to_rent
    to_arrears = min(credit, state.arrears_balance)
    credit -= to_arrears
    return replace(
        state,
        open_period_outstanding=state.open_period_outstanding - to_rent,
        arrears_balance=state.arrears_balance - to_arrears,
        credit_balance=credit,
    )


def roll_forward(state: LedgerState, *, period_start: date, period_rent: Any) -> tuple[LedgerState, Decimal]:
    """
    Position the ledger on period_start and return (new_state, rent_due).

    - first payment, or a later period than the open one: the open period's
      unpaid rent becomes arrears, the new period opens at full rent and any
      held credit is set against it
    - same period: rent_due is what is still outstanding on it
    - earlier period: that rent is already counted in arrears, so rent_due is 0
    """
    rent = money(period_rent)
    if state.open_period_start is None:
        opened = apply_credit(replace(state, open_period_start=period_start, open_period_outstanding=rent))
        return opened, opened.open_period_outstanding

    if period_start > state.open_period_start:
        rolled = apply_credit(
            replace(
                state,
                arrears_balance=state.arrears_balance + state.open_period_outstanding,
                open_period_start=period_start,
                open_period_outstanding=rent,
            )
        )
        return rolled, rolled.open_period_outstanding

    if period_start == state.open_period_start:
        return state, state.open_period_outstanding

    return state, ZERO


def apply_allocation(state: LedgerState, allocation: Allocation) -> LedgerState:
    return replace(
        state,
        open_period_outstanding=state.open_period_outstanding - allocation.rent,
        arrears_balance=state.arrears_balance - allocation.arrears,
        credit_balance=state.credit_balance + allocation.credit,
    )


def consumed_credit(state: LedgerState, allocation: Allocation) -> Decimal:
    """Part of a payment's credit already set against later rent."""
    return max(ZERO, allocation.credit - state.credit_balance)


def reverse_allocation(state: LedgerState, allocation: Allocation, *, period_start: date) -> LedgerState:
    """
    Undo a settled payment (refund). Rent paid against a period that has since
    rolled into arrears is put back as arrears rather than onto the open period.
    Credit from the payment that later periods already used is owed again, as arrears.
    """
    if state.open_period_start is not None and period_start == state.open_period_start:
        outstanding = state.open_period_outstanding + allocation.rent
        arrears = state.arrears_balance + allocation.arrears
    else:
        outstanding = state.open_period_outstanding
        arrears = state.arrears_balance + allocation.arrears + allocation.rent
    used = consumed_credit(state, allocation)
    return replace(
        state,
        open_period_outstanding=outstanding,
        arrears_balance=arrears + used,
        credit_balance=state.credit_balance - (allocation.credit - used),
    )
