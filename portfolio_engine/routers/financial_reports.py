# portfolio_engine/routers/financial_reports.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_actor
from ..db import get_db
from ..schemas import FinancialReportOut, ReportRequest
from ..services import financial_reports

router = APIRouter(prefix="/landlords/{landlord_id}/financial-reports", tags=["financial-reports"])


def get_report_dispatch():
    """Overridable in tests (app.dependency_overrides) to skip the broker."""
    return financial_reports.enqueue_report


@router.post("", response_model=FinancialReportOut, status_code=202)
def generate_report(
    landlord_id: int,
    payload: ReportRequest,
    db: Session = Depends(get_db),
    a=Depends(get_actor),
    dispatch=Depends(get_report_dispatch),
):
    return financial_reports.generate(
        db,
        landlord_id,
        period_start=payload.period_start,
        period_end=payload.period_end,
        title=payload.title,
        actor_id=a.actor_id,
        dispatch=dispatch,
    )


@router.get("", response_model=list[FinancialReportOut])
def list_reports(landlord_id: int, db: Session = Depends(get_db)):
    return financial_reports.list_reports(db, landlord_id)


@router.get("/{report_id}", response_model=FinancialReportOut)
def get_report(landlord_id: int, report_id: int, db: Session = Depends(get_db)):
    return financial_reports.get_report(db, landlord_id, report_id)
