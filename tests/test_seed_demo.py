# tests/test_seed_demo.py
from __future__ import annotations

from portfolio_engine.cli.seed_demo import seed_demo
from portfolio_engine.domain.statuses import PropertyStatus, TenancyStatus
from portfolio_engine.models import Landlord, Property, TenancyAgreement


def test_seed_is_idempotent_on_landlord(db):
    a = seed_demo(create_sample_tenancy=False)
    b = seed_demo(create_sample_tenancy=False)
    assert a.landlord_id == b.landlord_id
    assert a.property_id is None
    assert db.query(Landlord).count() == 1


def test_seed_lets_a_sample_property(db):
    out = seed_demo(email="sample@landlord.local")
    prop = db.get(Property, out.property_id)
    tenancy = db.get(TenancyAgreement, out.tenancy_id)

    assert prop.status == PropertyStatus.OCCUPIED
    assert prop.current_tenant_id == "demo-tenant"
    assert tenancy.status == TenancyStatus.ACTIVE
    assert tenancy.landlord_id == out.landlord_id
