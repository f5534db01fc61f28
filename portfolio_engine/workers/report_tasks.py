# portfolio_engine/workers/report_tasks.py
from __future__ import annotations

import logging
import random

from ..config import settings
from ..db import SessionLocal
from ..services import financial_reports, payment_ledger, tenancy_lifecycle
from .celery_app import celery_app

log = logging.getLogger("portfolio_engine.workers")


def _backoff_seconds(retries: int) -> int:
    """
    Exponential backoff with jitter.
    retries is the current retry count (0 for first retry attempt).
    """
    base, cap = 5, 120
    delay = min(cap, base * (2 ** max(0, int(retries))))

    # jitter: +/- 20%
    jitter = int(delay * 0.2)
    if jitter > 0:
        delay = max(1, delay + random.randint(-jitter, jitter))
    return delay


@celery_app.task(
    bind=True,
    max_retries=int(settings.report_max_retries),
    default_retry_delay=5,
    name="portfolio_engine.workers.report_tasks.process_financial_report",
)
def process_financial_report(self, landlord_id: int, report_id: int) -> dict:
    """
    Computes one FinancialReport.

    Errors inside the computation are captured on the report by
    process_report_now. What reaches this handler is infrastructure
    failure (database unreachable and the like): retry with backoff, and on
    the final attempt write the failure onto the report.
    """
    db = SessionLocal()
    try:
        return financial_reports.process_report_now(db, landlord_id=int(landlord_id), report_id=int(report_id))
    except Exception as e:
        db.rollback()
        retries = int(getattr(self.request, "retries", 0) or 0)
        max_retries = int(getattr(self, "max_retries", 3) or 3)

        if retries >= max_retries:
            log.exception("financial report task gave up", extra={"landlord_id": landlord_id, "report_id": report_id})
            try:
                financial_reports.mark_failed(db, int(report_id), f"{type(e).__name__}: {e}")
            except Exception:
                db.rollback()
                log.exception("could not record report failure", extra={"report_id": report_id})
            return {"ok": False, "reason": "failed_final", "error": str(e), "retries": retries}

        log.warning(
            "financial report task retrying: %s",
            e,
            extra={"landlord_id": landlord_id, "report_id": report_id},
        )
        raise self.retry(exc=e, countdown=_backoff_seconds(retries=retries))
    finally:
        db.close()


@celery_app.task(name="portfolio_engine.workers.report_tasks.sweep_stuck_financial_reports")
def sweep_stuck_financial_reports() -> dict:
    db = SessionLocal()
    try:
        res = financial_reports.sweep_stuck_reports(
            db, timeout_seconds=int(settings.report_generation_timeout_seconds)
        )
        return {"ok": True, "sweep": res}
    finally:
        db.close()


@celery_app.task(name="portfolio_engine.workers.report_tasks.expire_tenancies")
def expire_tenancies() -> dict:
    db = SessionLocal()
    try:
        ids = tenancy_lifecycle.expire_due_tenancies(db)
        return {"ok": True, "expired": ids}
    finally:
        db.close()


@celery_app.task(name="portfolio_engine.workers.report_tasks.mark_overdue_rent_payments")
def mark_overdue_rent_payments() -> dict:
    db = SessionLocal()
    try:
        ids = payment_ledger.mark_overdue_payments(db)
        return {"ok": True, "overdue": ids}
    finally:
        db.close()
