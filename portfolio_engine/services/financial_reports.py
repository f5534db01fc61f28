# portfolio_engine/services/financial_reports.py
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.audit import audit_write
from ..domain.errors import ConflictError, ValidationError
from ..domain.reconciliation import reconcile
from ..domain.references import report_reference
from ..domain.statuses import REPORT_TRANSITIONS, MaintenanceStatus, PaymentStatus, ReportStatus, ensure_transition
from ..models import FinancialReport, MaintenanceRequest, RentPayment
from .concurrency import serialized
from .events_facade import wf
from .ownership import must_get_landlord, must_get_report

log = logging.getLogger("portfolio_engine.reports")

Dispatch = Callable[[int, int], Any]


def _utcnow() -> datetime:
    return datetime.utcnow()


def generation_key(landlord_id: int, period_start: date, period_end: date) -> str:
    return f"{int(landlord_id)}:{period_start.isoformat()}:{period_end.isoformat()}"


def enqueue_report(landlord_id: int, report_id: int) -> Any:
    from ..workers.report_tasks import process_financial_report

    return process_financial_report.delay(int(landlord_id), int(report_id))


def _finish(db: Session, report_id: int, **values: Any) -> bool:
    """
    generating -> terminal, at most once. The conditional update is what makes
    a duplicate worker delivery (or a late sweep) a no-op. Releases the claim.
    """
    ensure_transition("report", REPORT_TRANSITIONS, ReportStatus.GENERATING, ReportStatus(values["status"]))
    res = db.execute(
        update(FinancialReport)
        .where(FinancialReport.id == int(report_id), FinancialReport.status == ReportStatus.GENERATING)
        .values(generation_key=None, **values)
        .execution_options(synchronize_session=False)
    )
    return (res.rowcount or 0) == 1


def mark_failed(db: Session, report_id: int, error: str) -> bool:
    now = _utcnow()
    ok = _finish(db, report_id, status=ReportStatus.FAILED, error_message=str(error)[:2000], error_date=now)
    db.commit()
    if ok:
        log.warning("financial report failed: %s", error, extra={"report_id": report_id})
    return ok


# -----------------------------
# Generate
# -----------------------------
def _in_flight(db: Session, key: str) -> Optional[FinancialReport]:
    # fast path only; the unique generation_key decides a race
    return db.scalar(select(FinancialReport).where(FinancialReport.generation_key == key))


def generate(
    db: Session,
    landlord_id: int,
    *,
    period_start: date,
    period_end: date,
    title: Optional[str] = None,
    actor_id: Optional[str] = None,
    dispatch: Optional[Dispatch] = None,
) -> FinancialReport:
    """
    Claim (landlord, period), create the report in `generating` and hand it to
    the worker. Returns straight away; totals land on the row later.
    """
    must_get_landlord(db, landlord_id=landlord_id)
    if period_end < period_start:
        raise ValidationError(
            "period_end cannot be before period_start",
            period_start=period_start.isoformat(),
            period_end=period_end.isoformat(),
        )

    key = generation_key(landlord_id, period_start, period_end)
    in_flight = _in_flight(db, key)
    if in_flight is not None:
        raise ConflictError(
            "a report for this landlord and period is already generating",
            landlord_id=landlord_id,
            report_id=in_flight.id,
        )

    row = FinancialReport(
        landlord_id=landlord_id,
        report_reference=report_reference(),
        title=title or f"Financial report {period_start.isoformat()} to {period_end.isoformat()}",
        period_start=period_start,
        period_end=period_end,
        status=ReportStatus.GENERATING,
        generation_key=key,
        generation_started_at=_utcnow(),
        attempts=0,
        requested_by=actor_id,
    )
    with serialized(db, "financial report", landlord_id=landlord_id):
        db.add(row)
        db.flush()
        audit_write(
            db,
            landlord_id=landlord_id,
            actor_id=actor_id,
            action="report.requested",
            entity_type="FinancialReport",
            entity_id=row.id,
            after=row.model_dump(),
        )
        db.commit()
    db.refresh(row)
    log.info("financial report requested", extra={"landlord_id": landlord_id, "report_id": row.id})

    send = dispatch or enqueue_report
    try:
        send(int(landlord_id), int(row.id))
    except Exception as e:
        log.exception("report dispatch failed", extra={"landlord_id": landlord_id, "report_id": row.id})
        mark_failed(db, row.id, f"dispatch failed: {type(e).__name__}: {e}")
        db.refresh(row)

    return row


# -----------------------------
# Process (worker side)
# -----------------------------
def _load_inputs(db: Session, report: FinancialReport) -> tuple[list[RentPayment], list[MaintenanceRequest]]:
    payments = db.scalars(
        select(RentPayment).where(
            RentPayment.landlord_id == report.landlord_id,
            RentPayment.status == PaymentStatus.COMPLETED,
            RentPayment.payment_date >= report.period_start,
            RentPayment.payment_date <= report.period_end,
        )
    ).all()
    requests = db.scalars(
        select(MaintenanceRequest).where(
            MaintenanceRequest.landlord_id == report.landlord_id,
            MaintenanceRequest.status == MaintenanceStatus.COMPLETED,
            MaintenanceRequest.actual_cost.is_not(None),
            MaintenanceRequest.completed_date >= report.period_start,
            MaintenanceRequest.completed_date <= report.period_end,
        )
    ).all()
    return list(payments), list(requests)


def process_report_now(db: Session, *, landlord_id: int, report_id: int) -> dict[str, Any]:
    """
    Compute and store the totals for one report.

    - terminal reports are left alone (idempotent redelivery)
    - any error while computing is written onto the report as `failed`;
      nothing is raised to the caller
    """
    row = db.scalar(
        select(FinancialReport).where(
            FinancialReport.id == int(report_id), FinancialReport.landlord_id == int(landlord_id)
        )
    )
    if row is None:
        return {"ok": False, "status": "not_found", "report_id": report_id}
    if row.status != ReportStatus.GENERATING:
        return {"ok": True, "status": row.status.value, "report_id": row.id, "idempotent": True}

    row.attempts = int(row.attempts or 0) + 1
    db.add(row)
    db.commit()

    try:
        payments, requests = _load_inputs(db, row)
        totals = reconcile(
            payments=payments,
            maintenance_requests=requests,
            period_start=row.period_start,
            period_end=row.period_end,
        )
        won = _finish(
            db,
            row.id,
            status=ReportStatus.COMPLETED,
            total_rental_income=totals.total_rental_income,
            total_maintenance_costs=totals.total_maintenance_costs,
            total_gross_income=totals.total_gross_income,
            total_expenses=totals.total_expenses,
            net_rental_income=totals.net_rental_income,
            payment_count=totals.payment_count,
            maintenance_count=totals.maintenance_count,
            generated_date=_utcnow(),
        )
        if won:
            wf.emit(
                db,
                landlord_id=row.landlord_id,
                property_id=None,
                actor_id=None,
                event_type="report.completed",
                payload={"report_id": row.id, **totals.as_dict()},
            )
        db.commit()
    except Exception as e:
        db.rollback()
        log.exception("financial report generation failed", extra={"landlord_id": landlord_id, "report_id": report_id})
        mark_failed(db, int(report_id), f"{type(e).__name__}: {e}")
        return {"ok": False, "status": ReportStatus.FAILED.value, "report_id": report_id, "error": str(e)}

    db.refresh(row)
    log.info(
        "financial report completed",
        extra={"landlord_id": landlord_id, "report_id": row.id},
    )
    return {"ok": True, "status": row.status.value, "report_id": row.id, **totals.as_dict()}


def sweep_stuck_reports(
    db: Session, *, timeout_seconds: Optional[int] = None, now: Optional[datetime] = None
) -> dict[str, Any]:
    """generating for longer than the timeout -> failed, claim released."""
    timeout_s = int(timeout_seconds if timeout_seconds is not None else settings.report_generation_timeout_seconds)
    now = now or _utcnow()
    cutoff = now - timedelta(seconds=timeout_s)

    stuck = db.scalars(
        select(FinancialReport.id).where(
            FinancialReport.status == ReportStatus.GENERATING,
            FinancialReport.generation_started_at < cutoff,
        )
    ).all()

    failed: list[int] = []
    for report_id in stuck:
        if _finish(
            db,
            report_id,
            status=ReportStatus.FAILED,
            error_message=f"timed out after {timeout_s}s",
            error_date=now,
        ):
            failed.append(int(report_id))
    db.commit()
    if failed:
        log.warning("swept %d stuck financial reports", len(failed))
    return {"checked": len(stuck), "failed": failed}


# -----------------------------
# Queries
# -----------------------------
def list_reports(db: Session, landlord_id: int) -> list[FinancialReport]:
    must_get_landlord(db, landlord_id=landlord_id)
    q = (
        select(FinancialReport)
        .where(FinancialReport.landlord_id == landlord_id)
        .order_by(FinancialReport.created_at.desc(), FinancialReport.id.desc())
    )
    return list(db.scalars(q).all())


def get_report(db: Session, landlord_id: int, report_id: int) -> FinancialReport:
    return must_get_report(db, landlord_id=landlord_id, report_id=report_id)
