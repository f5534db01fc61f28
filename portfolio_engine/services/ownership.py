# portfolio_engine/services/ownership.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.errors import NotFoundError
from ..models import (
    FinancialReport,
    Landlord,
    MaintenanceRequest,
    Property,
    PropertyInspection,
    RentPayment,
    TenancyAgreement,
)


def must_get_landlord(db: Session, *, landlord_id: int) -> Landlord:
    row = db.get(Landlord, int(landlord_id))
    if not row:
        raise NotFoundError("landlord not found", landlord_id=landlord_id)
    return row


def must_get_property(db: Session, *, landlord_id: int, property_id: int) -> Property:
    row = db.scalar(select(Property).where(Property.id == property_id, Property.landlord_id == landlord_id))
    if not row:
        raise NotFoundError("property not found", landlord_id=landlord_id, property_id=property_id)
    return row


def must_get_tenancy(db: Session, *, landlord_id: int, tenancy_id: int) -> TenancyAgreement:
    row = db.scalar(
        select(TenancyAgreement).where(
            TenancyAgreement.id == tenancy_id, TenancyAgreement.landlord_id == landlord_id
        )
    )
    if not row:
        raise NotFoundError("tenancy not found", landlord_id=landlord_id, tenancy_id=tenancy_id)
    return row


def must_get_payment(db: Session, *, landlord_id: int, payment_id: int) -> RentPayment:
    row = db.scalar(select(RentPayment).where(RentPayment.id == payment_id, RentPayment.landlord_id == landlord_id))
    if not row:
        raise NotFoundError("payment not found", landlord_id=landlord_id, payment_id=payment_id)
    return row


def must_get_maintenance_request(db: Session, *, landlord_id: int, request_id: int) -> MaintenanceRequest:
    row = db.scalar(
        select(MaintenanceRequest).where(
            MaintenanceRequest.id == request_id, MaintenanceRequest.landlord_id == landlord_id
        )
    )
    if not row:
        raise NotFoundError(
            "maintenance request not found", landlord_id=landlord_id, maintenance_request_id=request_id
        )
    return row


def must_get_inspection(db: Session, *, landlord_id: int, inspection_id: int) -> PropertyInspection:
    row = db.scalar(
        select(PropertyInspection).where(
            PropertyInspection.id == inspection_id, PropertyInspection.landlord_id == landlord_id
        )
    )
    if not row:
        raise NotFoundError("inspection not found", landlord_id=landlord_id, inspection_id=inspection_id)
    return row


def must_get_report(db: Session, *, landlord_id: int, report_id: int) -> FinancialReport:
    row = db.scalar(
        select(FinancialReport).where(FinancialReport.id == report_id, FinancialReport.landlord_id == landlord_id)
    )
    if not row:
        raise NotFoundError("financial report not found", landlord_id=landlord_id, report_id=report_id)
    return row
