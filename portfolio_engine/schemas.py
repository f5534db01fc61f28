# portfolio_engine/schemas.py
from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .domain.statuses import (
    DepositScheme,
    InspectionOutcome,
    InspectionStatus,
    InspectionType,
    IssueSeverity,
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


# -------------------- Landlords --------------------

class LandlordCreate(BaseModel):
    display_name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    company_number: Optional[str] = None
    user_id: Optional[str] = None
    landlord_type: LandlordType = LandlordType.INDIVIDUAL
    status: LandlordStatus = LandlordStatus.PENDING_VERIFICATION


class LandlordOut(BaseModel):
    id: int
    display_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    company_number: Optional[str] = None
    user_id: Optional[str] = None
    landlord_type: LandlordType
    status: LandlordStatus

    portfolio_size: Optional[PortfolioSize] = None
    total_properties: int
    occupied_properties: int
    occupancy_rate: float

    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class PortfolioSummaryOut(BaseModel):
    landlord_id: int
    total_properties: int
    occupied_properties: int
    vacant_properties: int
    occupancy_rate: float
    portfolio_size: Optional[PortfolioSize] = None
    active_tenancies: int
    open_maintenance_requests: int
    urgent_maintenance_requests: int
    upcoming_inspections: int
    monthly_income: float = 0.0
    pending_payments_total: float = 0.0
    overdue_payments_total: float = 0.0


# -------------------- Properties --------------------

class PropertyCreate(BaseModel):
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    postcode: str
    property_type: str = "house"
    bedrooms: int = 1
    bathrooms: int = 1

    purchase_price: Optional[Decimal] = None
    current_value: Optional[Decimal] = None
    monthly_rent: Optional[Decimal] = None
    deposit: Optional[Decimal] = None
    has_mortgage: bool = False
    mortgage_balance: Optional[Decimal] = None
    monthly_mortgage_payment: Optional[Decimal] = None

    notes: Optional[str] = None
    acquisition_date: Optional[date] = None


class PropertyPatch(BaseModel):
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    postcode: Optional[str] = None
    property_type: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None

    purchase_price: Optional[Decimal] = None
    current_value: Optional[Decimal] = None
    monthly_rent: Optional[Decimal] = None
    deposit: Optional[Decimal] = None
    has_mortgage: Optional[bool] = None
    mortgage_balance: Optional[Decimal] = None
    monthly_mortgage_payment: Optional[Decimal] = None

    notes: Optional[str] = None
    acquisition_date: Optional[date] = None

    # accepted only so the registry can reject them with a clear message
    status: Optional[str] = None
    current_tenant_id: Optional[str] = None


class PropertyOut(BaseModel):
    id: int
    landlord_id: int
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    postcode: str
    property_type: str
    bedrooms: int
    bathrooms: int

    status: PropertyStatus
    current_tenant_id: Optional[str] = None

    purchase_price: Optional[float] = None
    current_value: Optional[float] = None
    monthly_rent: Optional[float] = None
    deposit: Optional[float] = None
    has_mortgage: bool
    mortgage_balance: Optional[float] = None
    monthly_mortgage_payment: Optional[float] = None

    notes: Optional[str] = None
    acquisition_date: Optional[date] = None
    version: int
    model_config = ConfigDict(from_attributes=True)


class PropertyOffMarket(BaseModel):
    status: PropertyStatus
    reason: Optional[str] = None


# -------------------- Tenancies --------------------

class TenancyCreate(BaseModel):
    property_id: int
    tenant_id: str = Field(min_length=1)
    start_date: date
    end_date: Optional[date] = None
    rent_amount: Decimal
    rent_frequency: RentFrequency = RentFrequency.MONTHLY
    rent_due_day: Optional[int] = Field(default=None, ge=1, le=31)

    deposit_amount: Optional[Decimal] = None
    deposit_scheme: Optional[DepositScheme] = None
    deposit_scheme_reference: Optional[str] = None

    tenancy_type: TenancyType = TenancyType.ASSURED_SHORTHOLD
    notice_period_months: int = 2
    notes: Optional[str] = None


class TenancyEnd(BaseModel):
    end_date: Optional[date] = None
    reason: Optional[str] = None


class TenancyRenew(BaseModel):
    new_end_date: date
    new_rent: Optional[Decimal] = None


class TenancyBreach(BaseModel):
    reason: str


class TenancyOut(BaseModel):
    id: int
    landlord_id: int
    property_id: int
    tenant_id: str
    agreement_reference: str
    tenancy_type: TenancyType
    status: TenancyStatus

    start_date: date
    end_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    termination_reason: Optional[str] = None

    rent_amount: float
    rent_frequency: RentFrequency
    rent_due_day: int
    deposit_amount: Optional[float] = None
    deposit_scheme: Optional[DepositScheme] = None

    renewed_from_id: Optional[int] = None

    arrears_balance: float
    credit_balance: float
    total_rent_paid: float
    late_payments: int
    last_payment_date: Optional[date] = None
    arrears_cleared_date: Optional[date] = None

    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# -------------------- Rent payments --------------------

class RentPaymentCreate(BaseModel):
    tenancy_id: int
    amount: Decimal
    payment_date: date
    method: PaymentMethod
    period_start: date
    period_end: date
    payment_type: PaymentType = PaymentType.RENT
    due_date: Optional[date] = None
    admin_fee: Decimal = Decimal("0")
    transaction_reference: Optional[str] = None
    notes: Optional[str] = None


class PaymentConfirm(BaseModel):
    settled_date: Optional[date] = None
    transaction_reference: Optional[str] = None


class PaymentFail(BaseModel):
    reason: str


class PaymentRefund(BaseModel):
    reason: str = Field(min_length=1)


class RentPaymentOut(BaseModel):
    id: int
    landlord_id: int
    tenancy_id: int
    property_id: int
    tenant_id: str
    payment_reference: str
    payment_type: PaymentType
    method: PaymentMethod
    status: PaymentStatus

    amount: float
    late_fee: float
    admin_fee: float

    payment_date: date
    due_date: date
    period_start: date
    period_end: date
    is_late: bool
    days_late: int

    allocated_to_rent: float
    allocated_to_fees: float
    allocated_to_arrears: float
    credit_balance: float

    is_partial_payment: bool
    parent_payment_id: Optional[int] = None
    partial_payment_count: int
    sequence_number: Optional[int] = None

    transaction_reference: Optional[str] = None
    settled_date: Optional[date] = None
    failure_reason: Optional[str] = None
    refund_amount: Optional[float] = None
    refund_reason: Optional[str] = None

    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# -------------------- Maintenance --------------------

class MaintenanceCreate(BaseModel):
    property_id: int
    title: str = Field(min_length=1)
    description: Optional[str] = None
    category: MaintenanceCategory = MaintenanceCategory.OTHER
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    location: Optional[str] = None
    tenant_presence_required: bool = False
    estimated_cost: Optional[Decimal] = None
    scheduled_date: Optional[datetime] = None


class MaintenancePatch(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[MaintenanceCategory] = None
    priority: Optional[MaintenancePriority] = None
    status: Optional[MaintenanceStatus] = None

    location: Optional[str] = None
    estimated_cost: Optional[Decimal] = None
    actual_cost: Optional[Decimal] = None

    contractor_name: Optional[str] = None
    contractor_phone: Optional[str] = None
    contractor_email: Optional[str] = None

    scheduled_date: Optional[datetime] = None
    completed_date: Optional[date] = None
    completion_notes: Optional[str] = None
    landlord_notes: Optional[str] = None


class MaintenanceComplete(BaseModel):
    actual_cost: Optional[Decimal] = None
    completion_notes: Optional[str] = None
    completed_date: Optional[date] = None


class MaintenanceOut(BaseModel):
    id: int
    landlord_id: int
    property_id: int
    request_number: str
    title: str
    description: Optional[str] = None
    category: MaintenanceCategory
    priority: MaintenancePriority
    status: MaintenanceStatus
    status_before_hold: Optional[MaintenanceStatus] = None

    location: Optional[str] = None
    estimated_cost: Optional[float] = None
    actual_cost: Optional[float] = None
    contractor_name: Optional[str] = None

    scheduled_date: Optional[datetime] = None
    completed_date: Optional[date] = None
    completion_notes: Optional[str] = None
    source_inspection_id: Optional[int] = None

    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# -------------------- Inspections --------------------

class InspectionIssue(BaseModel):
    category: str
    description: str
    severity: IssueSeverity = IssueSeverity.MEDIUM
    action_required: bool = False
    estimated_cost: Optional[Decimal] = None
    location: Optional[str] = None


class InspectionCreate(BaseModel):
    property_id: int
    inspection_type: InspectionType = InspectionType.ROUTINE
    scheduled_date: datetime
    inspector_name: Optional[str] = None
    notes: Optional[str] = None


class InspectionReschedule(BaseModel):
    new_date: datetime
    reason: Optional[str] = None


class InspectionComplete(BaseModel):
    outcome: InspectionOutcome
    issues: List[InspectionIssue] = Field(default_factory=list)
    general_comments: Optional[str] = None
    actual_date: Optional[datetime] = None


class InspectionOut(BaseModel):
    id: int
    landlord_id: int
    property_id: int
    inspection_reference: str
    inspection_type: InspectionType
    status: InspectionStatus
    outcome: Optional[InspectionOutcome] = None

    scheduled_date: datetime
    actual_date: Optional[datetime] = None
    reschedule_count: int = 0
    inspector_name: Optional[str] = None
    general_comments: Optional[str] = None

    issues_found: List[dict[str, Any]] = Field(default_factory=list)
    requires_follow_up: bool = False
    follow_up_request_ids: List[int] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def _decode_json_columns(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return data

        def _load(raw: Optional[str]) -> list:
            if not raw:
                return []
            parsed = json.loads(raw)
            return parsed if isinstance(parsed, list) else []

        return {
            "id": data.id,
            "landlord_id": data.landlord_id,
            "property_id": data.property_id,
            "inspection_reference": data.inspection_reference,
            "inspection_type": data.inspection_type,
            "status": data.status,
            "outcome": data.outcome,
            "scheduled_date": data.scheduled_date,
            "actual_date": data.actual_date,
            "reschedule_count": data.reschedule_count,
            "inspector_name": data.inspector_name,
            "general_comments": data.general_comments,
            "issues_found": _load(data.issues_json),
            "requires_follow_up": bool(data.requires_follow_up),
            "follow_up_request_ids": _load(data.follow_up_request_ids_json),
        }


# -------------------- Financial reports --------------------

class ReportRequest(BaseModel):
    period_start: date
    period_end: date
    title: Optional[str] = None


class FinancialReportOut(BaseModel):
    id: int
    landlord_id: int
    report_reference: str
    title: Optional[str] = None
    period_start: date
    period_end: date
    status: ReportStatus

    total_rental_income: float
    total_maintenance_costs: float
    total_gross_income: float
    total_expenses: float
    net_rental_income: float
    payment_count: int
    maintenance_count: int

    generated_date: Optional[datetime] = None
    error_message: Optional[str] = None
    error_date: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)
