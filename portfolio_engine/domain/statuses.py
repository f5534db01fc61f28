# portfolio_engine/domain/statuses.py
from __future__ import annotations

import enum
from typing import Mapping, TypeVar

from .errors import ConflictError


class _StrEnum(str, enum.Enum):
    def __str__(self) -> str:
        return str(self.value)


# -----------------------------
# Landlords
# -----------------------------
class LandlordType(_StrEnum):
    INDIVIDUAL = "individual"
    COMPANY = "company"
    TRUST = "trust"
    PARTNERSHIP = "partnership"


class LandlordStatus(_StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    PENDING_VERIFICATION = "pending_verification"


class PortfolioSize(_StrEnum):
    SMALL = "small"  # 1-5 properties
    MEDIUM = "medium"  # 6-20
    LARGE = "large"  # 21-50
    ENTERPRISE = "enterprise"  # 51+


def portfolio_size_for(total_properties: int) -> PortfolioSize | None:
    n = int(total_properties or 0)
    if n <= 0:
        return None
    if n <= 5:
        return PortfolioSize.SMALL
    if n <= 20:
        return PortfolioSize.MEDIUM
    if n <= 50:
        return PortfolioSize.LARGE
    return PortfolioSize.ENTERPRISE


# -----------------------------
# Properties
# -----------------------------
class PropertyStatus(_StrEnum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    RENOVATION = "renovation"
    SOLD = "sold"
    WITHDRAWN = "withdrawn"


OFF_MARKET_STATUSES = frozenset(
    {PropertyStatus.MAINTENANCE, PropertyStatus.RENOVATION, PropertyStatus.SOLD, PropertyStatus.WITHDRAWN}
)

PROPERTY_TRANSITIONS: dict[PropertyStatus, frozenset[PropertyStatus]] = {
    PropertyStatus.AVAILABLE: frozenset({PropertyStatus.OCCUPIED} | OFF_MARKET_STATUSES),
    PropertyStatus.OCCUPIED: frozenset({PropertyStatus.AVAILABLE}),
    PropertyStatus.MAINTENANCE: frozenset({PropertyStatus.AVAILABLE} | (OFF_MARKET_STATUSES - {PropertyStatus.MAINTENANCE})),
    PropertyStatus.RENOVATION: frozenset({PropertyStatus.AVAILABLE} | (OFF_MARKET_STATUSES - {PropertyStatus.RENOVATION})),
    PropertyStatus.WITHDRAWN: frozenset({PropertyStatus.AVAILABLE} | (OFF_MARKET_STATUSES - {PropertyStatus.WITHDRAWN})),
    PropertyStatus.SOLD: frozenset(),
}


# -----------------------------
# Tenancies
# -----------------------------
class TenancyStatus(_StrEnum):
    DRAFT = "draft"
    PENDING_SIGNATURE = "pending_signature"
    ACTIVE = "active"
    EXPIRED = "expired"
    TERMINATED = "terminated"
    RENEWED = "renewed"
    BREACHED = "breached"
    ENDED = "ended"


class TenancyType(_StrEnum):
    ASSURED_SHORTHOLD = "assured_shorthold"
    ASSURED = "assured"
    REGULATED = "regulated"
    COMPANY_LET = "company_let"
    STUDENT = "student"
    HOLIDAY_LET = "holiday_let"


class RentFrequency(_StrEnum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


class DepositScheme(_StrEnum):
    DPS = "dps"
    TDS = "tds"
    MYDEPOSITS = "mydeposits"
    CUSTODIAL = "custodial"
    INSURANCE_BASED = "insurance_based"


NON_TERMINAL_TENANCY_STATUSES = frozenset(
    {TenancyStatus.DRAFT, TenancyStatus.PENDING_SIGNATURE, TenancyStatus.ACTIVE}
)

TENANCY_TRANSITIONS: dict[TenancyStatus, frozenset[TenancyStatus]] = {
    TenancyStatus.DRAFT: frozenset(
        {TenancyStatus.PENDING_SIGNATURE, TenancyStatus.ACTIVE, TenancyStatus.ENDED, TenancyStatus.TERMINATED}
    ),
    TenancyStatus.PENDING_SIGNATURE: frozenset(
        {TenancyStatus.ACTIVE, TenancyStatus.ENDED, TenancyStatus.TERMINATED}
    ),
    TenancyStatus.ACTIVE: frozenset(
        {
            TenancyStatus.ENDED,
            TenancyStatus.EXPIRED,
            TenancyStatus.TERMINATED,
            TenancyStatus.RENEWED,
            TenancyStatus.BREACHED,
        }
    ),
    TenancyStatus.EXPIRED: frozenset(),
    TenancyStatus.TERMINATED: frozenset(),
    TenancyStatus.RENEWED: frozenset(),
    TenancyStatus.BREACHED: frozenset(),
    TenancyStatus.ENDED: frozenset(),
}


# -----------------------------
# Rent payments
# -----------------------------
class PaymentStatus(_StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    OVERDUE = "overdue"


class PaymentMethod(_StrEnum):
    BANK_TRANSFER = "bank_transfer"
    DIRECT_DEBIT = "direct_debit"
    STANDING_ORDER = "standing_order"
    CARD_PAYMENT = "card_payment"
    CASH = "cash"
    CHEQUE = "cheque"
    ONLINE_PAYMENT = "online_payment"


class PaymentType(_StrEnum):
    RENT = "rent"
    DEPOSIT = "deposit"
    LATE_FEE = "late_fee"
    ADMIN_FEE = "admin_fee"
    UTILITIES = "utilities"
    MAINTENANCE = "maintenance"
    OTHER = "other"


# settlement is confirmed out of band for these
EXTERNALLY_CLEARED_METHODS = frozenset({PaymentMethod.BANK_TRANSFER, PaymentMethod.DIRECT_DEBIT})

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {
            PaymentStatus.PROCESSING,
            PaymentStatus.COMPLETED,
            PaymentStatus.FAILED,
            PaymentStatus.CANCELLED,
            PaymentStatus.OVERDUE,
        }
    ),
    PaymentStatus.OVERDUE: frozenset(
        {PaymentStatus.PROCESSING, PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED}
    ),
    PaymentStatus.PROCESSING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


# -----------------------------
# Maintenance
# -----------------------------
class MaintenanceStatus(_StrEnum):
    SUBMITTED = "submitted"
    ACKNOWLEDGED = "acknowledged"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


class MaintenancePriority(_StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class MaintenanceCategory(_StrEnum):
    PLUMBING = "plumbing"
    ELECTRICAL = "electrical"
    HEATING = "heating"
    APPLIANCES = "appliances"
    STRUCTURAL = "structural"
    DECORATIVE = "decorative"
    GARDEN = "garden"
    SECURITY = "security"
    CLEANING = "cleaning"
    PEST_CONTROL = "pest_control"
    OTHER = "other"


ALERT_PRIORITIES = frozenset({MaintenancePriority.URGENT, MaintenancePriority.EMERGENCY})

MAINTENANCE_PROGRESSION = (
    MaintenanceStatus.SUBMITTED,
    MaintenanceStatus.ACKNOWLEDGED,
    MaintenanceStatus.ASSIGNED,
    MaintenanceStatus.IN_PROGRESS,
    MaintenanceStatus.COMPLETED,
)

TERMINAL_MAINTENANCE_STATUSES = frozenset({MaintenanceStatus.COMPLETED, MaintenanceStatus.CANCELLED})


def _maintenance_transitions() -> dict[MaintenanceStatus, frozenset[MaintenanceStatus]]:
    table: dict[MaintenanceStatus, frozenset[MaintenanceStatus]] = {}
    for i, s in enumerate(MAINTENANCE_PROGRESSION[:-1]):
        table[s] = frozenset(MAINTENANCE_PROGRESSION[i + 1 :]) | {MaintenanceStatus.ON_HOLD, MaintenanceStatus.CANCELLED}
    # resume target is narrowed further by status_before_hold in the workflow engine
    table[MaintenanceStatus.ON_HOLD] = frozenset(MAINTENANCE_PROGRESSION[:-1]) | {MaintenanceStatus.CANCELLED}
    table[MaintenanceStatus.COMPLETED] = frozenset()
    table[MaintenanceStatus.CANCELLED] = frozenset()
    return table


MAINTENANCE_TRANSITIONS = _maintenance_transitions()


def progression_rank(status: MaintenanceStatus) -> int:
    try:
        return MAINTENANCE_PROGRESSION.index(status)
    except ValueError:
        return -1


# -----------------------------
# Inspections
# -----------------------------
class InspectionStatus(_StrEnum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    NO_ACCESS = "no_access"
    POSTPONED = "postponed"


class InspectionType(_StrEnum):
    ROUTINE = "routine"
    MOVE_IN = "move_in"
    MOVE_OUT = "move_out"
    MID_TENANCY = "mid_tenancy"
    MAINTENANCE = "maintenance"
    COMPLIANCE = "compliance"
    INSURANCE = "insurance"
    SAFETY = "safety"
    INVENTORY = "inventory"
    DAMAGE_ASSESSMENT = "damage_assessment"


class InspectionOutcome(_StrEnum):
    SATISFACTORY = "satisfactory"
    MINOR_ISSUES = "minor_issues"
    MAJOR_ISSUES = "major_issues"
    URGENT_ACTION_REQUIRED = "urgent_action_required"
    BREACH_OF_TENANCY = "breach_of_tenancy"
    EXCELLENT_CONDITION = "excellent_condition"


class IssueSeverity(_StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


_BOOKED = frozenset(
    {
        InspectionStatus.CONFIRMED,
        InspectionStatus.IN_PROGRESS,
        InspectionStatus.COMPLETED,
        InspectionStatus.CANCELLED,
        InspectionStatus.RESCHEDULED,
        InspectionStatus.NO_ACCESS,
        InspectionStatus.POSTPONED,
    }
)

INSPECTION_TRANSITIONS: dict[InspectionStatus, frozenset[InspectionStatus]] = {
    InspectionStatus.SCHEDULED: _BOOKED,
    InspectionStatus.CONFIRMED: _BOOKED - {InspectionStatus.CONFIRMED},
    InspectionStatus.RESCHEDULED: _BOOKED,
    InspectionStatus.IN_PROGRESS: frozenset(
        {InspectionStatus.COMPLETED, InspectionStatus.CANCELLED, InspectionStatus.NO_ACCESS}
    ),
    InspectionStatus.NO_ACCESS: frozenset({InspectionStatus.RESCHEDULED, InspectionStatus.CANCELLED}),
    InspectionStatus.POSTPONED: frozenset({InspectionStatus.RESCHEDULED, InspectionStatus.CANCELLED}),
    InspectionStatus.COMPLETED: frozenset(),
    InspectionStatus.CANCELLED: frozenset(),
}


# -----------------------------
# Financial reports
# -----------------------------
class ReportStatus(_StrEnum):
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


REPORT_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.GENERATING: frozenset({ReportStatus.COMPLETED, ReportStatus.FAILED}),
    ReportStatus.COMPLETED: frozenset(),
    ReportStatus.FAILED: frozenset(),
}


S = TypeVar("S", bound=enum.Enum)


def can_transition(table: Mapping[S, frozenset[S]], current: S, target: S) -> bool:
    return target in table.get(current, frozenset())


def ensure_transition(entity: str, table: Mapping[S, frozenset[S]], current: S, target: S) -> None:
    """Raise ConflictError unless (current -> target) is in the transition table."""
    if not can_transition(table, current, target):
        raise ConflictError(
            f"{entity} cannot move from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )
