# portfolio_engine/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import Base, SessionLocal, engine
from ..domain.statuses import LandlordStatus
from ..models import Landlord
from ..schemas import LandlordCreate, PropertyCreate, TenancyCreate
from ..services import portfolio, tenancy_lifecycle


@dataclass(frozen=True)
class SeedResult:
    landlord_id: int
    property_id: Optional[int]
    tenancy_id: Optional[int]


def _get_or_create_landlord(db: Session, email: str, display_name: str) -> Landlord:
    row = db.scalar(select(Landlord).where(Landlord.email == email))
    if row:
        return row
    return portfolio.register_landlord(
        db,
        LandlordCreate(display_name=display_name, email=email, status=LandlordStatus.ACTIVE),
        actor_id="seed",
    )


def seed_demo(
    *,
    email: str = "demo@landlord.local",
    display_name: str = "Demo Landlord",
    create_sample_tenancy: bool = True,
) -> SeedResult:
    """Idempotent on the landlord; adds one let property per run when asked to."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        landlord = _get_or_create_landlord(db, email, display_name)
        if not create_sample_tenancy:
            return SeedResult(landlord_id=int(landlord.id), property_id=None, tenancy_id=None)

        prop = portfolio.add_property(
            db,
            landlord.id,
            PropertyCreate(
                address_line1="1 Demo Street",
                city="Leeds",
                postcode="LS1 1AA",
                bedrooms=2,
                monthly_rent=Decimal("950.00"),
            ),
            actor_id="seed",
        )
        tenancy = tenancy_lifecycle.create(
            db,
            landlord.id,
            TenancyCreate(
                property_id=prop.id,
                tenant_id="demo-tenant",
                start_date=date.today().replace(day=1),
                rent_amount=Decimal("950.00"),
            ),
            actor_id="seed",
        )
        return SeedResult(landlord_id=int(landlord.id), property_id=int(prop.id), tenancy_id=int(tenancy.id))
    finally:
        db.close()
