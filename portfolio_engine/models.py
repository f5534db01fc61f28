# portfolio_engine/models.py
from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base
from .domain.statuses import (
    DepositScheme,
    InspectionOutcome,
    InspectionStatus,
    InspectionType,
    LandlordStatus,
    LandlordType,
    MaintenanceCategory,
    MaintenancePriority,
    MaintenanceStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    PortfolioSize,
    PropertyStatus,
    RentFrequency,
    ReportStatus,
    TenancyStatus,
    TenancyType,
)


def _enum(e: type[enum.Enum]) -> Enum:
    # stored as the lowercase value string, validated by SQLAlchemy on the way in and out
    return Enum(
        e,
        native_enum=False,
        length=30,
        validate_strings=True,
        values_callable=lambda cls: [m.value for m in cls],
    )


Money = Numeric(12, 2)


# -----------------------------
# Audit / outbox
# -----------------------------
class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("landlords.id"), index=True, nullable=False)
    actor_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class WorkflowEvent(Base):
    __tablename__ = "workflow_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("landlords.id"), index=True, nullable=False)

    property_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("properties.id"), nullable=True, index=True)
    actor_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    event_type: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    payload_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Portfolio
# -----------------------------
class Landlord(Base):
    __tablename__ = "landlords"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    display_name: Mapped[str] = mapped_column(String(160), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    company_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    company_number: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    landlord_type: Mapped[LandlordType] = mapped_column(
        _enum(LandlordType), nullable=False, default=LandlordType.INDIVIDUAL
    )
    status: Mapped[LandlordStatus] = mapped_column(
        _enum(LandlordStatus), nullable=False, default=LandlordStatus.PENDING_VERIFICATION
    )
    portfolio_size: Mapped[Optional[PortfolioSize]] = mapped_column(_enum(PortfolioSize), nullable=True)

    # derived: recomputed from rows by the portfolio registry, never incremented in place
    total_properties: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    occupied_properties: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    occupancy_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))

    registration_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    properties: Mapped[List["Property"]] = relationship(back_populates="landlord")


class Property(Base):
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("landlords.id"), nullable=False, index=True)

    address_line1: Mapped[str] = mapped_column(String(255), nullable=False)
    address_line2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[str] = mapped_column(String(120), nullable=False)
    postcode: Mapped[str] = mapped_column(String(12), nullable=False)

    property_type: Mapped[str] = mapped_column(String(60), nullable=False, default="house")
    bedrooms: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    bathrooms: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # written only by the tenancy lifecycle manager
    status: Mapped[PropertyStatus] = mapped_column(
        _enum(PropertyStatus), nullable=False, default=PropertyStatus.AVAILABLE, index=True
    )
    current_tenant_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # descriptive finance, never derived
    purchase_price: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    current_value: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    monthly_rent: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    deposit: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    has_mortgage: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    mortgage_balance: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    monthly_mortgage_payment: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    acquisition_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    landlord: Mapped["Landlord"] = relationship(back_populates="properties")
    tenancies: Mapped[List["TenancyAgreement"]] = relationship(back_populates="property")
    maintenance_requests: Mapped[List["MaintenanceRequest"]] = relationship(back_populates="property")
    inspections: Mapped[List["PropertyInspection"]] = relationship(back_populates="property")


# -----------------------------
# Tenancies
# -----------------------------
class TenancyAgreement(Base):
    __tablename__ = "tenancy_agreements"
    __table_args__ = (Index("ix_tenancy_agreements_property_status", "property_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("landlords.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    agreement_reference: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    tenancy_type: Mapped[TenancyType] = mapped_column(
        _enum(TenancyType), nullable=False, default=TenancyType.ASSURED_SHORTHOLD
    )
    status: Mapped[TenancyStatus] = mapped_column(_enum(TenancyStatus), nullable=False, default=TenancyStatus.DRAFT)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    actual_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    termination_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notice_period_months: Mapped[int] = mapped_column(Integer, nullable=False, default=2)

    rent_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    rent_frequency: Mapped[RentFrequency] = mapped_column(
        _enum(RentFrequency), nullable=False, default=RentFrequency.MONTHLY
    )
    rent_due_day: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    deposit_amount: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    deposit_scheme: Mapped[Optional[DepositScheme]] = mapped_column(_enum(DepositScheme), nullable=True)
    deposit_scheme_reference: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)

    renewed_from_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("tenancy_agreements.id"), nullable=True
    )

    # ledger state, written only by the payment ledger
    arrears_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    credit_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    open_period_start: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    open_period_outstanding: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    total_rent_paid: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    late_payments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ledger_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    arrears_cleared_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    property: Mapped["Property"] = relationship(back_populates="tenancies")
    payments: Mapped[List["RentPayment"]] = relationship(
        back_populates="tenancy", foreign_keys="RentPayment.tenancy_id"
    )


class RentPayment(Base):
    __tablename__ = "rent_payments"
    __table_args__ = (
        UniqueConstraint("tenancy_id", "sequence_number", name="uq_rent_payments_tenancy_sequence"),
        Index("ix_rent_payments_landlord_date", "landlord_id", "payment_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("landlords.id"), nullable=False, index=True)
    tenancy_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenancy_agreements.id"), nullable=False, index=True
    )
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    payment_reference: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    payment_type: Mapped[PaymentType] = mapped_column(_enum(PaymentType), nullable=False, default=PaymentType.RENT)
    method: Mapped[PaymentMethod] = mapped_column(_enum(PaymentMethod), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        _enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, index=True
    )

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    late_fee: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    admin_fee: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))

    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    is_late: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    days_late: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # allocation: rent + fees + arrears + credit == amount
    allocated_to_rent: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    allocated_to_fees: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    allocated_to_arrears: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    credit_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))

    is_partial_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    parent_payment_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("rent_payments.id"), nullable=True
    )
    partial_payment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # assigned when the allocation is applied to the tenancy ledger
    sequence_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    transaction_reference: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    processed_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    settled_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    refund_amount: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    refund_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recorded_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    tenancy: Mapped["TenancyAgreement"] = relationship(back_populates="payments", foreign_keys=[tenancy_id])


# -----------------------------
# Maintenance / inspections
# -----------------------------
class MaintenanceRequest(Base):
    __tablename__ = "maintenance_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("landlords.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)

    request_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[MaintenanceCategory] = mapped_column(
        _enum(MaintenanceCategory), nullable=False, default=MaintenanceCategory.OTHER
    )
    priority: Mapped[MaintenancePriority] = mapped_column(
        _enum(MaintenancePriority), nullable=False, default=MaintenancePriority.MEDIUM, index=True
    )
    status: Mapped[MaintenanceStatus] = mapped_column(
        _enum(MaintenanceStatus), nullable=False, default=MaintenanceStatus.SUBMITTED, index=True
    )
    status_before_hold: Mapped[Optional[MaintenanceStatus]] = mapped_column(_enum(MaintenanceStatus), nullable=True)

    location: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    tenant_presence_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    estimated_cost: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    actual_cost: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)

    contractor_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    contractor_phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    contractor_email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    scheduled_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    completion_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    landlord_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    source_inspection_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("property_inspections.id"), nullable=True
    )
    reported_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    property: Mapped["Property"] = relationship(back_populates="maintenance_requests")


class PropertyInspection(Base):
    __tablename__ = "property_inspections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("landlords.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)

    inspection_reference: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    inspection_type: Mapped[InspectionType] = mapped_column(
        _enum(InspectionType), nullable=False, default=InspectionType.ROUTINE
    )
    status: Mapped[InspectionStatus] = mapped_column(
        _enum(InspectionStatus), nullable=False, default=InspectionStatus.SCHEDULED, index=True
    )
    outcome: Mapped[Optional[InspectionOutcome]] = mapped_column(_enum(InspectionOutcome), nullable=True)

    scheduled_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    actual_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    reschedule_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    inspector_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    general_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    issues_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    requires_follow_up: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    follow_up_request_ids_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    property: Mapped["Property"] = relationship(back_populates="inspections")


# -----------------------------
# Financial reports
# -----------------------------
class FinancialReport(Base):
    __tablename__ = "financial_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("landlords.id"), nullable=False, index=True)

    report_reference: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[ReportStatus] = mapped_column(
        _enum(ReportStatus), nullable=False, default=ReportStatus.GENERATING, index=True
    )

    # set while generating, cleared on completion/failure; unique => one in-flight run per key
    generation_key: Mapped[Optional[str]] = mapped_column(String(80), nullable=True, unique=True)
    generation_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    total_rental_income: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    total_maintenance_costs: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    total_gross_income: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    total_expenses: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    net_rental_income: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    payment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    maintenance_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    generated_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    requested_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
