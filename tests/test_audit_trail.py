# tests/test_audit_trail.py
from __future__ import annotations

import json
from datetime import date
from decimal import Decimal

from portfolio_engine.domain.audit import audit_trail, changed_fields
from portfolio_engine.schemas import LandlordCreate, PropertyCreate, TenancyCreate
from portfolio_engine.services import portfolio, tenancy_lifecycle


def test_changed_fields_ignores_bookkeeping_columns():
    before = {"status": "active", "rent_amount": "1000.00", "version": 1, "updated_at": "a"}
    after = {"status": "ended", "rent_amount": "1000.00", "version": 2, "updated_at": "b"}
    assert changed_fields(before, after) == ({"status": "active"}, {"status": "ended"})
    assert changed_fields(None, after) == (None, after)


def test_tenancy_trail_records_each_transition(db):
    ll = portfolio.register_landlord(db, LandlordCreate(display_name="Trail Homes"))
    p = portfolio.add_property(db, ll.id, PropertyCreate(address_line1="2 Elm Rd", city="Derby", postcode="DE1 1AA"))
    t = tenancy_lifecycle.create(
        db,
        ll.id,
        TenancyCreate(property_id=p.id, tenant_id="tenant-a", start_date=date(2024, 1, 1), rent_amount=Decimal("800")),
        actor_id="agent-1",
    )
    tenancy_lifecycle.end(db, ll.id, t.id, end_date=date(2024, 3, 31), actor_id="agent-2")

    rows = audit_trail(db, landlord_id=ll.id, entity_type="TenancyAgreement", entity_id=t.id)
    assert [r.action for r in rows] == ["tenancy.created", "tenancy.ended"]
    assert rows[0].before_json is None
    assert rows[1].actor_id == "agent-2"

    after = json.loads(rows[1].after_json)
    assert after["status"] == "ended"
    assert after["actual_end_date"] == "2024-03-31"
    assert "rent_amount" not in after
    assert json.loads(rows[1].before_json)["status"] == "active"
