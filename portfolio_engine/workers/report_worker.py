# portfolio_engine/workers/report_worker.py
from __future__ import annotations

from sqlalchemy import select

from ..db import SessionLocal
from ..domain.statuses import ReportStatus
from ..models import FinancialReport
from ..services.financial_reports import process_report_now


def main(limit: int = 50) -> list[dict]:
    """
    Manual worker (CLI):
    - drains generating reports without a broker
    - same idempotent path the Celery task uses
    """
    db = SessionLocal()
    out: list[dict] = []
    try:
        reports = db.scalars(
            select(FinancialReport)
            .where(FinancialReport.status == ReportStatus.GENERATING)
            .order_by(FinancialReport.id.asc())
            .limit(limit)
        ).all()

        for r in reports:
            res = process_report_now(db, landlord_id=int(r.landlord_id), report_id=int(r.id))
            print(f"[report_worker] report_id={r.id} status={res.get('status')} ok={res.get('ok')}")
            out.append(res)
    finally:
        db.close()
    return out


if __name__ == "__main__":
    main()
