# portfolio_engine/domain/reconciliation.py
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from .allocation import ZERO, money
from .statuses import MaintenanceStatus, PaymentStatus


def month_bounds(yyyy_mm: str) -> tuple[date, date]:
    y, m = [int(x) for x in yyyy_mm.split("-")]
    last_day = calendar.monthrange(y, m)[1]
    return date(y, m, 1), date(y, m, last_day)


def _as_date(v: Any) -> Optional[date]:
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    return date.fromisoformat(str(v))


def _in_period(v: Any, start: date, end: date) -> bool:
    d = _as_date(v)
    return d is not None and start <= d <= end


def _status_value(v: Any) -> str:
    return str(getattr(v, "value", v) or "").lower()


@dataclass(frozen=True)
class ReconciliationTotals:
    period_start: date
    period_end: date
    total_rental_income: Decimal
    total_maintenance_costs: Decimal
    payment_count: int
    maintenance_count: int

    @property
    def total_gross_income(self) -> Decimal:
        return self.total_rental_income

    @property
    def total_expenses(self) -> Decimal:
        return self.total_maintenance_costs

    @property
    def net_rental_income(self) -> Decimal:
        return self.total_gross_income - self.total_expenses

    def as_dict(self) -> dict:
        return {
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "total_rental_income": str(self.total_rental_income),
            "total_maintenance_costs": str(self.total_maintenance_costs),
            "total_gross_income": str(self.total_gross_income),
            "total_expenses": str(self.total_expenses),
            "net_rental_income": str(self.net_rental_income),
            "payment_count": self.payment_count,
            "maintenance_count": self.maintenance_count,
        }


def rental_income(payments: Iterable[Any], period_start: date, period_end: date) -> tuple[Decimal, int]:
    """Completed payments whose payment_date falls in [period_start, period_end]."""
    total = ZERO
    n = 0
    for p in payments:
        if _status_value(getattr(p, "status", None)) != PaymentStatus.COMPLETED.value:
            continue
        if not _in_period(getattr(p, "payment_date", None), period_start, period_end):
            continue
        total += money(getattr(p, "amount", 0))
        n += 1
    return total, n


def maintenance_costs(requests: Iterable[Any], period_start: date, period_end: date) -> tuple[Decimal, int]:
    """Completed requests with an actual cost, completed inside the period."""
    total = ZERO
    n = 0
    for r in requests:
        if _status_value(getattr(r, "status", None)) != MaintenanceStatus.COMPLETED.value:
            continue
        cost = getattr(r, "actual_cost", None)
        if cost is None:
            continue
        if not _in_period(getattr(r, "completed_date", None), period_start, period_end):
            continue
        total += money(cost)
        n += 1
    return total, n


def reconcile(
    *,
    payments: Iterable[Any],
    maintenance_requests: Iterable[Any],
    period_start: date,
    period_end: date,
) -> ReconciliationTotals:
    if period_end < period_start:
        raise ValueError("period_end cannot be before period_start")
    income, n_pay = rental_income(payments, period_start, period_end)
    costs, n_mnt = maintenance_costs(maintenance_requests, period_start, period_end)
    return ReconciliationTotals(
        period_start=period_start,
        period_end=period_end,
        total_rental_income=income,
        total_maintenance_costs=costs,
        payment_count=n_pay,
        maintenance_count=n_mnt,
    )
