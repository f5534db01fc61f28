# portfolio_engine/services/portfolio.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.allocation import money
from ..domain.audit import audit_write
from ..domain.errors import ValidationError
from ..domain.reconciliation import month_bounds
from ..domain.statuses import (
    ALERT_PRIORITIES,
    TERMINAL_MAINTENANCE_STATUSES,
    InspectionStatus,
    PaymentStatus,
    PortfolioSize,
    PropertyStatus,
    TenancyStatus,
    portfolio_size_for,
)
from ..models import Landlord, MaintenanceRequest, Property, PropertyInspection, RentPayment, TenancyAgreement
from ..schemas import LandlordCreate, PropertyCreate, PropertyPatch
from .ownership import must_get_landlord, must_get_property

log = logging.getLogger("portfolio_engine.portfolio")

# owned by the tenancy lifecycle manager
_LIFECYCLE_FIELDS = ("status", "current_tenant_id")


@dataclass(frozen=True)
class PortfolioRollup:
    total_properties: int
    occupied_properties: int
    occupancy_rate: Decimal
    portfolio_size: Optional[PortfolioSize]


@dataclass(frozen=True)
class PortfolioSummary:
    landlord_id: int
    total_properties: int
    occupied_properties: int
    vacant_properties: int
    occupancy_rate: float
    portfolio_size: Optional[PortfolioSize]
    active_tenancies: int
    open_maintenance_requests: int
    urgent_maintenance_requests: int
    upcoming_inspections: int
    monthly_income: float
    pending_payments_total: float
    overdue_payments_total: float

    def as_dict(self) -> dict:
        return asdict(self)


def occupancy_rate(occupied: int, total: int) -> Decimal:
    if total <= 0:
        return Decimal("0.00")
    return (Decimal(occupied) * 100 / Decimal(total)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def recompute_rollup(db: Session, landlord: Landlord) -> PortfolioRollup:
    """
    Recount the landlord's properties from rows and write the counters back.
    Flushes; the caller commits.
    """
    db.flush()
    total = int(
        db.scalar(select(func.count(Property.id)).where(Property.landlord_id == landlord.id)) or 0
    )
    occupied = int(
        db.scalar(
            select(func.count(Property.id)).where(
                Property.landlord_id == landlord.id, Property.status == PropertyStatus.OCCUPIED
            )
        )
        or 0
    )
    rollup = PortfolioRollup(
        total_properties=total,
        occupied_properties=occupied,
        occupancy_rate=occupancy_rate(occupied, total),
        portfolio_size=portfolio_size_for(total),
    )
    landlord.total_properties = rollup.total_properties
    landlord.occupied_properties = rollup.occupied_properties
    landlord.occupancy_rate = rollup.occupancy_rate
    landlord.portfolio_size = rollup.portfolio_size
    db.add(landlord)
    db.flush()
    return rollup


# -----------------------------
# Landlords
# -----------------------------
def register_landlord(db: Session, spec: LandlordCreate, *, actor_id: Optional[str] = None) -> Landlord:
    row = Landlord(
        **spec.model_dump(),
        total_properties=0,
        occupied_properties=0,
        occupancy_rate=Decimal("0.00"),
        portfolio_size=None,
        registration_date=datetime.utcnow(),
    )
    db.add(row)
    db.flush()

    audit_write(
        db,
        landlord_id=row.id,
        actor_id=actor_id,
        action="landlord.register",
        entity_type="Landlord",
        entity_id=row.id,
        after=row.model_dump(),
    )
    db.commit()
    db.refresh(row)
    log.info("landlord registered", extra={"landlord_id": row.id, "actor_id": actor_id})
    return row


def get_landlord(db: Session, landlord_id: int) -> Landlord:
    return must_get_landlord(db, landlord_id=landlord_id)


def refresh_rollup(db: Session, landlord_id: int) -> PortfolioRollup:
    landlord = must_get_landlord(db, landlord_id=landlord_id)
    rollup = recompute_rollup(db, landlord)
    db.commit()
    return rollup


# -----------------------------
# Properties
# -----------------------------
def add_property(
    db: Session, landlord_id: int, spec: PropertyCreate, *, actor_id: Optional[str] = None
) -> Property:
    landlord = must_get_landlord(db, landlord_id=landlord_id)

    row = Property(
        **spec.model_dump(),
        landlord_id=landlord.id,
        status=PropertyStatus.AVAILABLE,
        current_tenant_id=None,
    )
    db.add(row)
    db.flush()

    recompute_rollup(db, landlord)
    audit_write(
        db,
        landlord_id=landlord.id,
        actor_id=actor_id,
        action="property.create",
        entity_type="Property",
        entity_id=row.id,
        after=row.model_dump(),
    )
    db.commit()
    db.refresh(row)
    log.info("property added", extra={"landlord_id": landlord.id, "property_id": row.id})
    return row


def update_property(
    db: Session,
    landlord_id: int,
    property_id: int,
    patch: PropertyPatch,
    *,
    actor_id: Optional[str] = None,
) -> Property:
    must_get_landlord(db, landlord_id=landlord_id)
    row = must_get_property(db, landlord_id=landlord_id, property_id=property_id)

    changes = patch.model_dump(exclude_unset=True)
    blocked = [k for k in _LIFECYCLE_FIELDS if k in changes]
    if blocked:
        raise ValidationError(
            "property status and current tenant change only through tenancy operations",
            property_id=property_id,
            fields=blocked,
        )

    before = row.model_dump()
    for k, v in changes.items():
        setattr(row, k, v)
    db.add(row)
    db.flush()

    audit_write(
        db,
        landlord_id=landlord_id,
        actor_id=actor_id,
        action="property.update",
        entity_type="Property",
        entity_id=row.id,
        before=before,
        after=row.model_dump(),
    )
    db.commit()
    db.refresh(row)
    return row


def list_properties(db: Session, landlord_id: int, status: Optional[PropertyStatus] = None) -> list[Property]:
    must_get_landlord(db, landlord_id=landlord_id)
    q = select(Property).where(Property.landlord_id == landlord_id).order_by(Property.id)
    if status is not None:
        q = q.where(Property.status == PropertyStatus(status))
    return list(db.scalars(q).all())


# -----------------------------
# Summary
# -----------------------------
def _today_utc_date() -> date:
    return datetime.utcnow().date()


def _payment_total(db: Session, landlord_id: int, *conditions) -> Decimal:
    total = db.scalar(
        select(func.coalesce(func.sum(RentPayment.amount), 0)).where(
            RentPayment.landlord_id == landlord_id, *conditions
        )
    )
    return money(total or 0)


def portfolio_summary(db: Session, landlord_id: int, *, today: Optional[date] = None) -> PortfolioSummary:
    landlord = must_get_landlord(db, landlord_id=landlord_id)
    rollup = recompute_rollup(db, landlord)
    db.commit()

    today = today or _today_utc_date()
    window_end = today + timedelta(days=int(settings.upcoming_inspection_window_days))

    active_tenancies = int(
        db.scalar(
            select(func.count(TenancyAgreement.id)).where(
                TenancyAgreement.landlord_id == landlord_id,
                TenancyAgreement.status == TenancyStatus.ACTIVE,
            )
        )
        or 0
    )
    open_maintenance = int(
        db.scalar(
            select(func.count(MaintenanceRequest.id)).where(
                MaintenanceRequest.landlord_id == landlord_id,
                MaintenanceRequest.status.not_in(list(TERMINAL_MAINTENANCE_STATUSES)),
            )
        )
        or 0
    )
    urgent_maintenance = int(
        db.scalar(
            select(func.count(MaintenanceRequest.id)).where(
                MaintenanceRequest.landlord_id == landlord_id,
                MaintenanceRequest.status.not_in(list(TERMINAL_MAINTENANCE_STATUSES)),
                MaintenanceRequest.priority.in_(list(ALERT_PRIORITIES)),
            )
        )
        or 0
    )
    upcoming_inspections = int(
        db.scalar(
            select(func.count(PropertyInspection.id)).where(
                PropertyInspection.landlord_id == landlord_id,
                PropertyInspection.status.in_(
                    [InspectionStatus.SCHEDULED, InspectionStatus.CONFIRMED, InspectionStatus.RESCHEDULED]
                ),
                PropertyInspection.scheduled_date >= datetime.combine(today, datetime.min.time()),
                PropertyInspection.scheduled_date <= datetime.combine(window_end, datetime.max.time()),
            )
        )
        or 0
    )

    month_start, month_end = month_bounds(today.strftime("%Y-%m"))
    monthly_income = _payment_total(
        db,
        landlord_id,
        RentPayment.status == PaymentStatus.COMPLETED,
        RentPayment.payment_date >= month_start,
        RentPayment.payment_date <= month_end,
    )
    pending_total = _payment_total(
        db, landlord_id, RentPayment.status.in_([PaymentStatus.PENDING, PaymentStatus.PROCESSING])
    )
    overdue_total = _payment_total(db, landlord_id, RentPayment.status == PaymentStatus.OVERDUE)

    return PortfolioSummary(
        landlord_id=landlord_id,
        total_properties=rollup.total_properties,
        occupied_properties=rollup.occupied_properties,
        vacant_properties=rollup.total_properties - rollup.occupied_properties,
        occupancy_rate=float(rollup.occupancy_rate),
        portfolio_size=rollup.portfolio_size,
        active_tenancies=active_tenancies,
        open_maintenance_requests=open_maintenance,
        urgent_maintenance_requests=urgent_maintenance,
        upcoming_inspections=upcoming_inspections,
        monthly_income=float(monthly_income),
        pending_payments_total=float(pending_total),
        overdue_payments_total=float(overdue_total),
    )
