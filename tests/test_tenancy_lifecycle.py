# tests/test_tenancy_lifecycle.py
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from portfolio_engine.config import settings
from portfolio_engine.domain.errors import ConflictError, NotFoundError, ValidationError
from portfolio_engine.domain.statuses import PaymentMethod, PortfolioSize, PropertyStatus, TenancyStatus
from portfolio_engine.models import Landlord, Property
from portfolio_engine.schemas import (
    LandlordCreate,
    PropertyCreate,
    PropertyPatch,
    RentPaymentCreate,
    TenancyCreate,
)
from portfolio_engine.services import payment_ledger, portfolio, tenancy_lifecycle
from portfolio_engine.services.events_facade import wf
from portfolio_engine.services.tenancy_rules import ensure_no_live_tenancy


def _mk_landlord(db, name: str = "Lettings Ltd") -> Landlord:
    return portfolio.register_landlord(db, LandlordCreate(display_name=name))


def _mk_property(db, landlord_id: int, addr: str = "1 High St") -> Property:
    return portfolio.add_property(
        db, landlord_id, PropertyCreate(address_line1=addr, city="Leeds", postcode="LS1 1AA", bedrooms=2)
    )


def _tenancy(property_id: int, **kw) -> TenancyCreate:
    body = dict(
        property_id=property_id,
        tenant_id="tenant-1",
        start_date=date(2024, 1, 1),
        rent_amount=Decimal("1000"),
    )
    body.update(kw)
    return TenancyCreate(**body)


def test_create_then_end_round_trip(db):
    ll = _mk_landlord(db)
    p = _mk_property(db, ll.id)
    assert p.status == PropertyStatus.AVAILABLE

    t = tenancy_lifecycle.create(db, ll.id, _tenancy(p.id), actor_id="agent-1")
    assert t.status == TenancyStatus.ACTIVE
    assert t.agreement_reference.startswith("TEN-")

    db.refresh(p)
    assert p.status == PropertyStatus.OCCUPIED
    assert p.current_tenant_id == "tenant-1"

    landlord = db.get(Landlord, ll.id)
    assert landlord.total_properties == 1
    assert landlord.occupied_properties == 1
    assert landlord.occupancy_rate == Decimal("100.00")
    assert landlord.portfolio_size == PortfolioSize.SMALL

    ended = tenancy_lifecycle.end(db, ll.id, t.id, end_date=date(2024, 6, 30))
    assert ended.status == TenancyStatus.ENDED
    assert ended.actual_end_date == date(2024, 6, 30)
    assert ended.termination_reason == "Not specified"

    db.refresh(p)
    assert p.status == PropertyStatus.AVAILABLE
    assert p.current_tenant_id is None
    assert db.get(Landlord, ll.id).occupied_properties == 0

    events = [e.event_type for e in wf.list(db, landlord_id=ll.id, property_id=p.id)]
    assert "tenancy.created" in events
    assert "tenancy.ended" in events


def test_second_tenancy_on_same_property_is_blocked(db):
    ll = _mk_landlord(db)
    p = _mk_property(db, ll.id)
    tenancy_lifecycle.create(db, ll.id, _tenancy(p.id))

    with pytest.raises(ConflictError):
        tenancy_lifecycle.create(db, ll.id, _tenancy(p.id, tenant_id="tenant-2"))

    with pytest.raises(ConflictError):
        ensure_no_live_tenancy(db, property_id=p.id)

    assert len(tenancy_lifecycle.list_tenancies(db, ll.id, property_id=p.id)) == 1


def test_ending_twice_is_a_conflict(db):
    ll = _mk_landlord(db)
    p = _mk_property(db, ll.id)
    t = tenancy_lifecycle.create(db, ll.id, _tenancy(p.id))
    tenancy_lifecycle.end(db, ll.id, t.id, reason="tenant moved out")

    with pytest.raises(ConflictError):
        tenancy_lifecycle.end(db, ll.id, t.id)


def test_invalid_terms_and_foreign_property(db):
    ll = _mk_landlord(db)
    other = _mk_landlord(db, "Other Lettings")
    p = _mk_property(db, ll.id)

    with pytest.raises(ValidationError):
        tenancy_lifecycle.create(db, ll.id, _tenancy(p.id, end_date=date(2023, 12, 31)))
    with pytest.raises(ValidationError):
        tenancy_lifecycle.create(db, ll.id, _tenancy(p.id, rent_amount=Decimal("0")))
    with pytest.raises(NotFoundError):
        tenancy_lifecycle.create(db, other.id, _tenancy(p.id))

    db.refresh(p)
    assert p.status == PropertyStatus.AVAILABLE


def test_signature_flow_when_required(db, monkeypatch):
    monkeypatch.setattr(settings, "tenancy_requires_signature", True)
    ll = _mk_landlord(db)
    p = _mk_property(db, ll.id)

    t = tenancy_lifecycle.create(db, ll.id, _tenancy(p.id))
    assert t.status == TenancyStatus.DRAFT

    t = tenancy_lifecycle.request_signature(db, ll.id, t.id)
    assert t.status == TenancyStatus.PENDING_SIGNATURE

    t = tenancy_lifecycle.activate(db, ll.id, t.id)
    assert t.status == TenancyStatus.ACTIVE

    with pytest.raises(ConflictError):
        tenancy_lifecycle.activate(db, ll.id, t.id)


def test_renew_carries_unpaid_rent_into_successor(db):
    ll = _mk_landlord(db)
    p = _mk_property(db, ll.id)
    old = tenancy_lifecycle.create(db, ll.id, _tenancy(p.id, end_date=date(2024, 12, 31)))

    payment_ledger.record_payment(
        db,
        ll.id,
        RentPaymentCreate(
            tenancy_id=old.id,
            amount=Decimal("400"),
            payment_date=date(2024, 1, 1),
            method=PaymentMethod.CARD_PAYMENT,
            period_start=date(2024, 1, 1),
            period_end=date(2024, 1, 31),
        ),
    )

    new = tenancy_lifecycle.renew(db, ll.id, old.id, new_end_date=date(2025, 12, 31), new_rent=Decimal("1100"))
    db.refresh(old)
    db.refresh(p)

    assert old.status == TenancyStatus.RENEWED
    assert new.status == TenancyStatus.ACTIVE
    assert new.renewed_from_id == old.id
    assert new.start_date == date(2025, 1, 1)
    assert new.rent_amount == Decimal("1100.00")
    assert new.arrears_balance == Decimal("600.00")
    assert p.status == PropertyStatus.OCCUPIED


def test_expire_releases_property(db):
    ll = _mk_landlord(db)
    p = _mk_property(db, ll.id)
    t = tenancy_lifecycle.create(db, ll.id, _tenancy(p.id, end_date=date(2024, 12, 31)))

    assert tenancy_lifecycle.expire_due_tenancies(db, today=date(2024, 12, 31)) == []
    assert tenancy_lifecycle.expire_due_tenancies(db, today=date(2025, 1, 1)) == [t.id]
    assert tenancy_lifecycle.expire_due_tenancies(db, today=date(2025, 1, 1)) == []

    db.refresh(t)
    db.refresh(p)
    assert t.status == TenancyStatus.EXPIRED
    assert t.actual_end_date == date(2024, 12, 31)
    assert p.status == PropertyStatus.AVAILABLE


def test_breach_requires_reason_and_releases_property(db):
    ll = _mk_landlord(db)
    p = _mk_property(db, ll.id)
    t = tenancy_lifecycle.create(db, ll.id, _tenancy(p.id))

    with pytest.raises(ValidationError):
        tenancy_lifecycle.mark_breached(db, ll.id, t.id, reason="  ")

    t = tenancy_lifecycle.mark_breached(db, ll.id, t.id, reason="subletting")
    db.refresh(p)
    assert t.status == TenancyStatus.BREACHED
    assert t.termination_reason == "subletting"
    assert p.status == PropertyStatus.AVAILABLE


def test_off_market_blocks_new_tenancies(db):
    ll = _mk_landlord(db)
    p = _mk_property(db, ll.id)

    with pytest.raises(ValidationError):
        tenancy_lifecycle.take_property_off_market(db, ll.id, p.id, status=PropertyStatus.OCCUPIED)

    p = tenancy_lifecycle.take_property_off_market(
        db, ll.id, p.id, status=PropertyStatus.RENOVATION, reason="new kitchen"
    )
    assert p.status == PropertyStatus.RENOVATION

    with pytest.raises(ConflictError):
        tenancy_lifecycle.create(db, ll.id, _tenancy(p.id))

    p = tenancy_lifecycle.return_property_to_market(db, ll.id, p.id)
    assert p.status == PropertyStatus.AVAILABLE
    with pytest.raises(ConflictError):
        tenancy_lifecycle.return_property_to_market(db, ll.id, p.id)


def test_occupied_property_cannot_go_off_market(db):
    ll = _mk_landlord(db)
    p = _mk_property(db, ll.id)
    tenancy_lifecycle.create(db, ll.id, _tenancy(p.id))

    with pytest.raises(ConflictError):
        tenancy_lifecycle.take_property_off_market(db, ll.id, p.id, status=PropertyStatus.WITHDRAWN)


def test_property_patch_cannot_touch_lifecycle_fields(db):
    ll = _mk_landlord(db)
    p = _mk_property(db, ll.id)
    version = p.version

    with pytest.raises(ValidationError):
        portfolio.update_property(db, ll.id, p.id, PropertyPatch(status="occupied"))

    p = portfolio.update_property(db, ll.id, p.id, PropertyPatch(city="York", bedrooms=3))
    assert p.city == "York"
    assert p.bedrooms == 3
    assert p.status == PropertyStatus.AVAILABLE
    assert p.version == version + 1


def test_portfolio_summary_counts(db):
    ll = _mk_landlord(db)
    p1 = _mk_property(db, ll.id, "1 High St")
    _mk_property(db, ll.id, "2 High St")
    tenancy_lifecycle.create(db, ll.id, _tenancy(p1.id))

    s = portfolio.portfolio_summary(db, ll.id)
    assert s.total_properties == 2
    assert s.occupied_properties == 1
    assert s.vacant_properties == 1
    assert s.occupancy_rate == 50.0
    assert s.active_tenancies == 1
    assert s.open_maintenance_requests == 0
