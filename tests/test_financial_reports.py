# tests/test_financial_reports.py
from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from portfolio_engine.domain.errors import ConflictError, ValidationError
from portfolio_engine.domain.statuses import PaymentMethod, ReportStatus
from portfolio_engine.models import FinancialReport
from portfolio_engine.schemas import (
    LandlordCreate,
    MaintenanceComplete,
    MaintenanceCreate,
    PropertyCreate,
    RentPaymentCreate,
    TenancyCreate,
)
from portfolio_engine.services import (
    financial_reports,
    maintenance_workflow,
    payment_ledger,
    portfolio,
    tenancy_lifecycle,
)
from portfolio_engine.services.events_facade import wf
from portfolio_engine.workers import report_worker

JAN_START = date(2024, 1, 1)
JAN_END = date(2024, 1, 31)


def _no_dispatch(landlord_id: int, report_id: int) -> None:
    return None


def _january_books(db) -> int:
    """Two let properties paying 1000 each in January and one 150 repair."""
    ll = portfolio.register_landlord(db, LandlordCreate(display_name="Books Ltd"))
    for n in (1, 2):
        p = portfolio.add_property(
            db, ll.id, PropertyCreate(address_line1=f"{n} Station Rd", city="Bath", postcode="BA1 1AA")
        )
        t = tenancy_lifecycle.create(
            db,
            ll.id,
            TenancyCreate(property_id=p.id, tenant_id=f"tenant-{n}", start_date=JAN_START, rent_amount=Decimal("1000")),
        )
        payment_ledger.record_payment(
            db,
            ll.id,
            RentPaymentCreate(
                tenancy_id=t.id,
                amount=Decimal("1000"),
                payment_date=date(2024, 1, 5),
                method=PaymentMethod.CARD_PAYMENT,
                period_start=JAN_START,
                period_end=JAN_END,
            ),
        )
    r = maintenance_workflow.create(db, ll.id, MaintenanceCreate(property_id=p.id, title="Boiler repair"))
    maintenance_workflow.complete(
        db, ll.id, r.id, MaintenanceComplete(actual_cost=Decimal("150"), completed_date=date(2024, 1, 20))
    )
    return ll.id


def _generate(db, lid: int, dispatch=_no_dispatch) -> FinancialReport:
    return financial_reports.generate(db, lid, period_start=JAN_START, period_end=JAN_END, dispatch=dispatch)


def test_report_totals_for_january(db):
    lid = _january_books(db)
    rep = _generate(db, lid)
    assert rep.status == ReportStatus.GENERATING
    assert rep.generation_key == f"{lid}:2024-01-01:2024-01-31"
    assert rep.report_reference.startswith("RPT-")

    out = financial_reports.process_report_now(db, landlord_id=lid, report_id=rep.id)
    assert out["ok"] is True
    assert out["status"] == "completed"

    db.refresh(rep)
    assert rep.status == ReportStatus.COMPLETED
    assert rep.total_rental_income == Decimal("2000.00")
    assert rep.total_maintenance_costs == Decimal("150.00")
    assert rep.net_rental_income == Decimal("1850.00")
    assert rep.payment_count == 2
    assert rep.maintenance_count == 1
    assert rep.generated_date is not None
    assert rep.generation_key is None
    assert rep.attempts == 1

    assert len(wf.list(db, landlord_id=lid, event_type="report.completed")) == 1


def test_redelivery_is_idempotent(db):
    lid = _january_books(db)
    rep = _generate(db, lid)
    first = financial_reports.process_report_now(db, landlord_id=lid, report_id=rep.id)
    second = financial_reports.process_report_now(db, landlord_id=lid, report_id=rep.id)

    assert second["idempotent"] is True
    assert second["status"] == first["status"]
    db.refresh(rep)
    assert rep.attempts == 1
    assert len(wf.list(db, landlord_id=lid, event_type="report.completed")) == 1


def test_one_generation_in_flight_per_period(db):
    lid = _january_books(db)
    rep = _generate(db, lid)

    with pytest.raises(ConflictError):
        _generate(db, lid)

    # a different period is independent
    feb = financial_reports.generate(
        db, lid, period_start=date(2024, 2, 1), period_end=date(2024, 2, 29), dispatch=_no_dispatch
    )
    assert feb.status == ReportStatus.GENERATING

    financial_reports.process_report_now(db, landlord_id=lid, report_id=rep.id)
    again = _generate(db, lid)
    assert again.id != rep.id


def test_inverted_period_rejected(db):
    lid = _january_books(db)
    with pytest.raises(ValidationError):
        financial_reports.generate(db, lid, period_start=JAN_END, period_end=JAN_START, dispatch=_no_dispatch)


def test_computation_error_is_captured_on_the_report(db, monkeypatch):
    lid = _january_books(db)
    rep = _generate(db, lid)

    def boom(**kwargs):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(financial_reports, "reconcile", boom)
    out = financial_reports.process_report_now(db, landlord_id=lid, report_id=rep.id)

    assert out["ok"] is False
    assert out["status"] == "failed"
    db.refresh(rep)
    assert rep.status == ReportStatus.FAILED
    assert "ledger unavailable" in rep.error_message
    assert rep.error_date is not None
    assert rep.generation_key is None


def test_dispatch_failure_marks_report_failed(db):
    lid = _january_books(db)

    def broker_down(landlord_id: int, report_id: int) -> None:
        raise ConnectionError("broker unreachable")

    rep = _generate(db, lid, dispatch=broker_down)
    assert rep.status == ReportStatus.FAILED
    assert rep.error_message.startswith("dispatch failed")

    # claim released, so the caller can try again
    assert _generate(db, lid).status == ReportStatus.GENERATING


def test_sweep_fails_stuck_reports(db):
    lid = _january_books(db)
    rep = _generate(db, lid)

    assert financial_reports.sweep_stuck_reports(db, timeout_seconds=60)["failed"] == []

    res = financial_reports.sweep_stuck_reports(
        db, timeout_seconds=60, now=datetime.utcnow() + timedelta(minutes=10)
    )
    assert res["failed"] == [rep.id]
    db.refresh(rep)
    assert rep.status == ReportStatus.FAILED
    assert "timed out" in rep.error_message

    # a late worker delivery does not resurrect it
    out = financial_reports.process_report_now(db, landlord_id=lid, report_id=rep.id)
    assert out["idempotent"] is True
    assert out["status"] == "failed"


def test_report_worker_drains_generating_reports(db):
    lid = _january_books(db)
    rep = _generate(db, lid)

    results = report_worker.main()
    assert [r["report_id"] for r in results] == [rep.id]
    assert results[0]["status"] == "completed"

    row = db.scalar(select(FinancialReport).where(FinancialReport.id == rep.id))
    db.refresh(row)
    assert row.status == ReportStatus.COMPLETED


def test_celery_task_runs_the_same_path(db):
    from portfolio_engine.workers.report_tasks import process_financial_report

    lid = _january_books(db)
    rep = _generate(db, lid)

    out = process_financial_report(lid, rep.id)
    assert out["ok"] is True
    assert out["total_rental_income"] == "2000.00"

    db.refresh(rep)
    assert rep.status == ReportStatus.COMPLETED


def test_unknown_report_is_reported_not_raised(db):
    lid = _january_books(db)
    out = financial_reports.process_report_now(db, landlord_id=lid, report_id=9999)
    assert out == {"ok": False, "status": "not_found", "report_id": 9999}


def test_report_can_only_finish_into_a_terminal_status(db):
    ll = portfolio.register_landlord(db, LandlordCreate(display_name="Terminal Ltd"))
    row = financial_reports.generate(db, ll.id, period_start=JAN_START, period_end=JAN_END, dispatch=_no_dispatch)

    with pytest.raises(ConflictError):
        financial_reports._finish(db, row.id, status=ReportStatus.GENERATING)

    assert financial_reports.mark_failed(db, row.id, "worker lost") is True
    db.refresh(row)
    assert row.status == ReportStatus.FAILED
    assert row.generation_key is None
