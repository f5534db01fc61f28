# portfolio_engine/services/tenancy_lifecycle.py
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.allocation import money
from ..domain.audit import audit_write
from ..domain.errors import ConflictError, ValidationError
from ..domain.references import tenancy_reference
from ..domain.statuses import (
    NON_TERMINAL_TENANCY_STATUSES,
    OFF_MARKET_STATUSES,
    PROPERTY_TRANSITIONS,
    TENANCY_TRANSITIONS,
    PropertyStatus,
    TenancyStatus,
    ensure_transition,
)
from ..models import Landlord, Property, TenancyAgreement
from ..schemas import TenancyCreate
from .concurrency import serialized
from .events_facade import wf
from .ownership import must_get_landlord, must_get_property, must_get_tenancy
from .portfolio import recompute_rollup
from .tenancy_rules import ensure_no_live_tenancy, validate_tenancy_terms

log = logging.getLogger("portfolio_engine.tenancy")

DEFAULT_TERMINATION_REASON = "Not specified"


def _today_utc_date() -> date:
    return datetime.utcnow().date()


def _set_property_status(prop: Property, target: PropertyStatus, *, tenant_id: Optional[str]) -> None:
    ensure_transition("property", PROPERTY_TRANSITIONS, prop.status, target)
    prop.status = target
    prop.current_tenant_id = tenant_id


def _release_property(db: Session, tenancy: TenancyAgreement) -> Optional[Property]:
    """Occupied -> available once the tenancy holding the property is terminal."""
    prop = db.get(Property, tenancy.property_id)
    if prop is None or prop.status != PropertyStatus.OCCUPIED:
        return prop
    _set_property_status(prop, PropertyStatus.AVAILABLE, tenant_id=None)
    db.add(prop)
    return prop


def _move(tenancy: TenancyAgreement, target: TenancyStatus) -> TenancyStatus:
    current = tenancy.status
    ensure_transition("tenancy", TENANCY_TRANSITIONS, current, target)
    tenancy.status = target
    return current


def _record(
    db: Session,
    tenancy: TenancyAgreement,
    *,
    actor_id: Optional[str],
    action: str,
    before: Optional[dict],
    payload: Optional[dict] = None,
) -> None:
    audit_write(
        db,
        landlord_id=tenancy.landlord_id,
        actor_id=actor_id,
        action=action,
        entity_type="TenancyAgreement",
        entity_id=tenancy.id,
        before=before,
        after=tenancy.model_dump(),
    )
    body = {"tenancy_id": tenancy.id, "status": tenancy.status.value}
    if payload:
        body.update(payload)
    wf.emit(
        db,
        landlord_id=tenancy.landlord_id,
        property_id=tenancy.property_id,
        actor_id=actor_id,
        event_type=action,
        payload=body,
    )


# -----------------------------
# Create / end
# -----------------------------
def create(
    db: Session, landlord_id: int, spec: TenancyCreate, *, actor_id: Optional[str] = None
) -> TenancyAgreement:
    landlord = must_get_landlord(db, landlord_id=landlord_id)
    prop = must_get_property(db, landlord_id=landlord_id, property_id=spec.property_id)
    start, end, rent = validate_tenancy_terms(
        start_date=spec.start_date, end_date=spec.end_date, rent_amount=spec.rent_amount
    )

    with serialized(db, "property", property_id=prop.id):
        if prop.status != PropertyStatus.AVAILABLE:
            raise ConflictError(
                f"property is {prop.status.value}, not available",
                property_id=prop.id,
                status=prop.status.value,
            )
        ensure_no_live_tenancy(db, property_id=prop.id)

        status = TenancyStatus.DRAFT if settings.tenancy_requires_signature else TenancyStatus.ACTIVE
        tenancy = TenancyAgreement(
            landlord_id=landlord.id,
            property_id=prop.id,
            tenant_id=spec.tenant_id,
            agreement_reference=tenancy_reference(),
            tenancy_type=spec.tenancy_type,
            status=status,
            start_date=start,
            end_date=end,
            notice_period_months=spec.notice_period_months,
            rent_amount=rent,
            rent_frequency=spec.rent_frequency,
            rent_due_day=int(spec.rent_due_day or settings.default_rent_due_day),
            deposit_amount=money(spec.deposit_amount) if spec.deposit_amount is not None else None,
            deposit_scheme=spec.deposit_scheme,
            deposit_scheme_reference=spec.deposit_scheme_reference,
            notes=spec.notes,
        )
        db.add(tenancy)

        _set_property_status(prop, PropertyStatus.OCCUPIED, tenant_id=spec.tenant_id)
        db.add(prop)
        db.flush()

        recompute_rollup(db, landlord)
        _record(db, tenancy, actor_id=actor_id, action="tenancy.created", before=None)
        db.commit()

    db.refresh(tenancy)
    log.info(
        "tenancy created",
        extra={"landlord_id": landlord.id, "property_id": prop.id, "tenancy_id": tenancy.id, "actor_id": actor_id},
    )
    return tenancy


def end(
    db: Session,
    landlord_id: int,
    tenancy_id: int,
    *,
    end_date: Optional[date] = None,
    reason: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> TenancyAgreement:
    tenancy = must_get_tenancy(db, landlord_id=landlord_id, tenancy_id=tenancy_id)

    with serialized(db, "tenancy", tenancy_id=tenancy.id):
        if tenancy.status not in NON_TERMINAL_TENANCY_STATUSES:
            raise ConflictError(
                f"tenancy is already {tenancy.status.value}",
                tenancy_id=tenancy.id,
                status=tenancy.status.value,
            )
        before = tenancy.model_dump()
        _move(tenancy, TenancyStatus.ENDED)
        tenancy.actual_end_date = end_date or _today_utc_date()
        tenancy.termination_reason = (reason or "").strip() or DEFAULT_TERMINATION_REASON
        db.add(tenancy)

        _release_property(db, tenancy)
        recompute_rollup(db, must_get_landlord(db, landlord_id=landlord_id))
        _record(
            db,
            tenancy,
            actor_id=actor_id,
            action="tenancy.ended",
            before=before,
            payload={"reason": tenancy.termination_reason},
        )
        db.commit()

    db.refresh(tenancy)
    log.info("tenancy ended", extra={"landlord_id": landlord_id, "tenancy_id": tenancy.id, "actor_id": actor_id})
    return tenancy


# -----------------------------
# Signature flow
# -----------------------------
def request_signature(
    db: Session, landlord_id: int, tenancy_id: int, *, actor_id: Optional[str] = None
) -> TenancyAgreement:
    tenancy = must_get_tenancy(db, landlord_id=landlord_id, tenancy_id=tenancy_id)
    with serialized(db, "tenancy", tenancy_id=tenancy.id):
        before = tenancy.model_dump()
        _move(tenancy, TenancyStatus.PENDING_SIGNATURE)
        db.add(tenancy)
        db.flush()
        _record(db, tenancy, actor_id=actor_id, action="tenancy.signature_requested", before=before)
        db.commit()
    db.refresh(tenancy)
    return tenancy


def activate(db: Session, landlord_id: int, tenancy_id: int, *, actor_id: Optional[str] = None) -> TenancyAgreement:
    tenancy = must_get_tenancy(db, landlord_id=landlord_id, tenancy_id=tenancy_id)
    with serialized(db, "tenancy", tenancy_id=tenancy.id):
        before = tenancy.model_dump()
        _move(tenancy, TenancyStatus.ACTIVE)
        db.add(tenancy)
        db.flush()
        _record(db, tenancy, actor_id=actor_id, action="tenancy.activated", before=before)
        db.commit()
    db.refresh(tenancy)
    log.info("tenancy activated", extra={"landlord_id": landlord_id, "tenancy_id": tenancy.id})
    return tenancy


# -----------------------------
# Scheduled / escalated transitions
# -----------------------------
def expire_due_tenancies(db: Session, *, today: Optional[date] = None) -> list[int]:
    """
    Active tenancies whose end date has passed -> expired, property released.
    Returns the expired tenancy ids.
    """
    today = today or _today_utc_date()
    rows = db.scalars(
        select(TenancyAgreement)
        .where(
            TenancyAgreement.status == TenancyStatus.ACTIVE,
            TenancyAgreement.end_date.is_not(None),
            TenancyAgreement.end_date < today,
        )
        .order_by(TenancyAgreement.id)
    ).all()
    if not rows:
        return []

    expired: list[int] = []
    landlord_ids: set[int] = set()
    with serialized(db, "tenancy"):
        for tenancy in rows:
            before = tenancy.model_dump()
            _move(tenancy, TenancyStatus.EXPIRED)
            tenancy.actual_end_date = tenancy.end_date
            db.add(tenancy)
            _release_property(db, tenancy)
            _record(db, tenancy, actor_id=None, action="tenancy.expired", before=before)
            expired.append(int(tenancy.id))
            landlord_ids.add(int(tenancy.landlord_id))

        for lid in sorted(landlord_ids):
            landlord = db.get(Landlord, lid)
            if landlord is not None:
                recompute_rollup(db, landlord)
        db.commit()

    log.info("expired %d tenancies", len(expired))
    return expired


def mark_breached(
    db: Session, landlord_id: int, tenancy_id: int, *, reason: str, actor_id: Optional[str] = None
) -> TenancyAgreement:
    if not (reason or "").strip():
        raise ValidationError("a breach reason is required", tenancy_id=tenancy_id)
    tenancy = must_get_tenancy(db, landlord_id=landlord_id, tenancy_id=tenancy_id)

    with serialized(db, "tenancy", tenancy_id=tenancy.id):
        before = tenancy.model_dump()
        _move(tenancy, TenancyStatus.BREACHED)
        tenancy.actual_end_date = _today_utc_date()
        tenancy.termination_reason = reason.strip()
        db.add(tenancy)

        _release_property(db, tenancy)
        recompute_rollup(db, must_get_landlord(db, landlord_id=landlord_id))
        _record(db, tenancy, actor_id=actor_id, action="tenancy.breached", before=before, payload={"reason": reason})
        db.commit()

    db.refresh(tenancy)
    log.warning("tenancy breached", extra={"landlord_id": landlord_id, "tenancy_id": tenancy.id})
    return tenancy


def renew(
    db: Session,
    landlord_id: int,
    tenancy_id: int,
    *,
    new_end_date: date,
    new_rent=None,
    actor_id: Optional[str] = None,
) -> TenancyAgreement:
    """
    active -> renewed, and a successor active tenancy on the same property in
    the same transaction. The property stays occupied throughout. Unpaid rent
    of the old open period is carried into the successor's arrears.
    """
    old = must_get_tenancy(db, landlord_id=landlord_id, tenancy_id=tenancy_id)

    start = (old.end_date + timedelta(days=1)) if old.end_date else _today_utc_date()
    _, end_date, rent = validate_tenancy_terms(
        start_date=start,
        end_date=new_end_date,
        rent_amount=new_rent if new_rent is not None else old.rent_amount,
    )

    with serialized(db, "tenancy", tenancy_id=old.id):
        before = old.model_dump()
        _move(old, TenancyStatus.RENEWED)
        old.actual_end_date = start - timedelta(days=1)
        db.add(old)

        successor = TenancyAgreement(
            landlord_id=old.landlord_id,
            property_id=old.property_id,
            tenant_id=old.tenant_id,
            agreement_reference=tenancy_reference(),
            tenancy_type=old.tenancy_type,
            status=TenancyStatus.ACTIVE,
            start_date=start,
            end_date=end_date,
            notice_period_months=old.notice_period_months,
            rent_amount=rent,
            rent_frequency=old.rent_frequency,
            rent_due_day=old.rent_due_day,
            deposit_amount=old.deposit_amount,
            deposit_scheme=old.deposit_scheme,
            deposit_scheme_reference=old.deposit_scheme_reference,
            renewed_from_id=old.id,
            arrears_balance=money(old.arrears_balance) + money(old.open_period_outstanding),
            credit_balance=money(old.credit_balance),
        )
        db.add(successor)
        db.flush()

        _record(
            db,
            old,
            actor_id=actor_id,
            action="tenancy.renewed",
            before=before,
            payload={"successor_tenancy_id": successor.id},
        )
        _record(
            db,
            successor,
            actor_id=actor_id,
            action="tenancy.created",
            before=None,
            payload={"renewed_from_id": old.id},
        )
        db.commit()

    db.refresh(successor)
    log.info(
        "tenancy renewed",
        extra={"landlord_id": landlord_id, "tenancy_id": successor.id, "property_id": successor.property_id},
    )
    return successor


def take_property_off_market(
    db: Session,
    landlord_id: int,
    property_id: int,
    *,
    status: PropertyStatus,
    reason: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> Property:
    target = PropertyStatus(status)
    if target not in OFF_MARKET_STATUSES:
        raise ValidationError(
            f"{target.value} is not an off-market status",
            allowed=sorted(s.value for s in OFF_MARKET_STATUSES),
        )
    prop = must_get_property(db, landlord_id=landlord_id, property_id=property_id)

    with serialized(db, "property", property_id=prop.id):
        ensure_no_live_tenancy(db, property_id=prop.id)
        before = prop.model_dump()
        _set_property_status(prop, target, tenant_id=None)
        db.add(prop)
        db.flush()

        recompute_rollup(db, must_get_landlord(db, landlord_id=landlord_id))
        audit_write(
            db,
            landlord_id=landlord_id,
            actor_id=actor_id,
            action="property.off_market",
            entity_type="Property",
            entity_id=prop.id,
            before=before,
            after=prop.model_dump(),
        )
        wf.emit(
            db,
            landlord_id=landlord_id,
            property_id=prop.id,
            actor_id=actor_id,
            event_type="property.off_market",
            payload={"status": target.value, "reason": reason},
        )
        db.commit()

    db.refresh(prop)
    return prop


def return_property_to_market(
    db: Session, landlord_id: int, property_id: int, *, actor_id: Optional[str] = None
) -> Property:
    prop = must_get_property(db, landlord_id=landlord_id, property_id=property_id)
    if prop.status not in OFF_MARKET_STATUSES:
        raise ConflictError(
            f"property is {prop.status.value}; only off-market properties can be returned",
            property_id=prop.id,
        )

    with serialized(db, "property", property_id=prop.id):
        before = prop.model_dump()
        _set_property_status(prop, PropertyStatus.AVAILABLE, tenant_id=None)
        db.add(prop)
        db.flush()

        audit_write(
            db,
            landlord_id=landlord_id,
            actor_id=actor_id,
            action="property.on_market",
            entity_type="Property",
            entity_id=prop.id,
            before=before,
            after=prop.model_dump(),
        )
        wf.emit(
            db,
            landlord_id=landlord_id,
            property_id=prop.id,
            actor_id=actor_id,
            event_type="property.on_market",
            payload={"status": PropertyStatus.AVAILABLE.value},
        )
        db.commit()

    db.refresh(prop)
    return prop


def list_tenancies(
    db: Session,
    landlord_id: int,
    *,
    property_id: Optional[int] = None,
    status: Optional[TenancyStatus] = None,
) -> list[TenancyAgreement]:
    must_get_landlord(db, landlord_id=landlord_id)
    q = select(TenancyAgreement).where(TenancyAgreement.landlord_id == landlord_id)
    if property_id is not None:
        q = q.where(TenancyAgreement.property_id == int(property_id))
    if status is not None:
        q = q.where(TenancyAgreement.status == TenancyStatus(status))
    return list(db.scalars(q.order_by(TenancyAgreement.id.desc())).all())
