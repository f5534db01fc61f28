# tests/test_maintenance_workflow.py
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from portfolio_engine.domain.errors import ConflictError, ValidationError
from portfolio_engine.domain.statuses import MaintenancePriority, MaintenanceStatus
from portfolio_engine.schemas import (
    LandlordCreate,
    MaintenanceComplete,
    MaintenanceCreate,
    MaintenancePatch,
    PropertyCreate,
)
from portfolio_engine.services import maintenance_workflow, portfolio
from portfolio_engine.services.events_facade import wf
from portfolio_engine.services.maintenance_workflow import PRIORITY_ALERT_EVENT


def _mk(db) -> tuple[int, int]:
    ll = portfolio.register_landlord(db, LandlordCreate(display_name="Repairs Co"))
    p = portfolio.add_property(db, ll.id, PropertyCreate(address_line1="4 Canal St", city="Leeds", postcode="LS2 2BB"))
    return ll.id, p.id


def _status(db, lid: int, rid: int, status: MaintenanceStatus):
    return maintenance_workflow.update(db, lid, rid, MaintenancePatch(status=status))


def test_create_assigns_reference_and_alerts_only_when_urgent(db):
    lid, pid = _mk(db)

    low = maintenance_workflow.create(
        db, lid, MaintenanceCreate(property_id=pid, title="Loose hinge", priority=MaintenancePriority.LOW)
    )
    assert low.status == MaintenanceStatus.SUBMITTED
    assert low.request_number.startswith("MNT-")
    assert wf.list(db, landlord_id=lid, event_type=PRIORITY_ALERT_EVENT) == []

    leak = maintenance_workflow.create(
        db, lid, MaintenanceCreate(property_id=pid, title="Burst pipe", priority=MaintenancePriority.EMERGENCY)
    )
    alerts = wf.list(db, landlord_id=lid, event_type=PRIORITY_ALERT_EVENT)
    assert len(alerts) == 1
    assert alerts[0].payload["maintenance_request_id"] == leak.id

    urgent = maintenance_workflow.urgent_open_requests(db, lid)
    assert [r.id for r in urgent] == [leak.id]


def test_status_moves_forward_and_may_skip(db):
    lid, pid = _mk(db)
    r = maintenance_workflow.create(db, lid, MaintenanceCreate(property_id=pid, title="Boiler service"))

    r = _status(db, lid, r.id, MaintenanceStatus.ACKNOWLEDGED)
    r = _status(db, lid, r.id, MaintenanceStatus.IN_PROGRESS)
    assert r.status == MaintenanceStatus.IN_PROGRESS

    with pytest.raises(ConflictError):
        _status(db, lid, r.id, MaintenanceStatus.ASSIGNED)

    db.refresh(r)
    assert r.status == MaintenanceStatus.IN_PROGRESS


def test_on_hold_resumes_at_or_after_held_status(db):
    lid, pid = _mk(db)
    r = maintenance_workflow.create(db, lid, MaintenanceCreate(property_id=pid, title="Damp in bedroom"))
    _status(db, lid, r.id, MaintenanceStatus.ASSIGNED)

    r = _status(db, lid, r.id, MaintenanceStatus.ON_HOLD)
    assert r.status_before_hold == MaintenanceStatus.ASSIGNED

    with pytest.raises(ConflictError):
        _status(db, lid, r.id, MaintenanceStatus.ACKNOWLEDGED)

    r = _status(db, lid, r.id, MaintenanceStatus.IN_PROGRESS)
    assert r.status == MaintenanceStatus.IN_PROGRESS
    assert r.status_before_hold is None


def test_completion_requires_actual_cost_when_estimated(db):
    lid, pid = _mk(db)
    r = maintenance_workflow.create(
        db,
        lid,
        MaintenanceCreate(property_id=pid, title="Replace extractor fan", estimated_cost=Decimal("120")),
    )

    with pytest.raises(ValidationError):
        maintenance_workflow.complete(db, lid, r.id, MaintenanceComplete())

    r = maintenance_workflow.complete(
        db,
        lid,
        r.id,
        MaintenanceComplete(actual_cost=Decimal("150"), completion_notes="fan replaced", completed_date=date(2024, 1, 20)),
    )
    assert r.status == MaintenanceStatus.COMPLETED
    assert r.actual_cost == Decimal("150.00")
    assert r.completed_date == date(2024, 1, 20)

    with pytest.raises(ConflictError):
        maintenance_workflow.update(db, lid, r.id, MaintenancePatch(title="changed"))
    with pytest.raises(ConflictError):
        _status(db, lid, r.id, MaintenanceStatus.CANCELLED)


def test_negative_cost_rejected(db):
    lid, pid = _mk(db)
    with pytest.raises(ValidationError):
        maintenance_workflow.create(
            db, lid, MaintenanceCreate(property_id=pid, title="Gutter", estimated_cost=Decimal("-1"))
        )


def test_priority_escalation_raises_alert(db):
    lid, pid = _mk(db)
    r = maintenance_workflow.create(db, lid, MaintenanceCreate(property_id=pid, title="No hot water"))
    assert wf.list(db, landlord_id=lid, event_type=PRIORITY_ALERT_EVENT) == []

    r = maintenance_workflow.update(
        db, lid, r.id, MaintenancePatch(priority=MaintenancePriority.URGENT, contractor_name="Hot Fix Ltd")
    )
    assert r.priority == MaintenancePriority.URGENT
    assert r.contractor_name == "Hot Fix Ltd"
    assert len(wf.list(db, landlord_id=lid, event_type=PRIORITY_ALERT_EVENT)) == 1


def test_list_filters(db):
    lid, pid = _mk(db)
    a = maintenance_workflow.create(db, lid, MaintenanceCreate(property_id=pid, title="A"))
    maintenance_workflow.create(
        db, lid, MaintenanceCreate(property_id=pid, title="B", priority=MaintenancePriority.HIGH)
    )
    _status(db, lid, a.id, MaintenanceStatus.CANCELLED)

    assert len(maintenance_workflow.list_requests(db, lid)) == 2
    assert len(maintenance_workflow.list_requests(db, lid, status=MaintenanceStatus.CANCELLED)) == 1
    assert len(maintenance_workflow.list_requests(db, lid, priority=MaintenancePriority.HIGH)) == 1
