# portfolio_engine/services/maintenance_workflow.py
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.allocation import ZERO, money
from ..domain.audit import audit_write
from ..domain.errors import ConflictError, ValidationError
from ..domain.references import maintenance_reference
from ..domain.statuses import (
    ALERT_PRIORITIES,
    MAINTENANCE_TRANSITIONS,
    TERMINAL_MAINTENANCE_STATUSES,
    MaintenanceCategory,
    MaintenancePriority,
    MaintenanceStatus,
    ensure_transition,
    progression_rank,
)
from ..models import MaintenanceRequest
from ..schemas import MaintenanceComplete, MaintenanceCreate, MaintenancePatch
from .events_facade import wf
from .ownership import must_get_landlord, must_get_maintenance_request, must_get_property

log = logging.getLogger("portfolio_engine.maintenance")

PRIORITY_ALERT_EVENT = "maintenance.priority_alert"

# descriptive fields update() may set directly
_PATCHABLE = (
    "title",
    "description",
    "category",
    "location",
    "estimated_cost",
    "actual_cost",
    "contractor_name",
    "contractor_phone",
    "contractor_email",
    "scheduled_date",
    "completion_notes",
    "landlord_notes",
)


def _today_utc_date() -> date:
    return datetime.utcnow().date()


def _optional_money(v: Any) -> Optional[Decimal]:
    if v is None:
        return None
    m = money(v)
    if m < ZERO:
        raise ValidationError("costs cannot be negative", value=str(m))
    return m


def _emit_priority_alert(db: Session, row: MaintenanceRequest, *, actor_id: Optional[str]) -> None:
    wf.emit(
        db,
        landlord_id=row.landlord_id,
        property_id=row.property_id,
        actor_id=actor_id,
        event_type=PRIORITY_ALERT_EVENT,
        payload={
            "maintenance_request_id": row.id,
            "request_number": row.request_number,
            "priority": row.priority.value,
            "title": row.title,
        },
    )
    log.warning(
        "%s maintenance request raised",
        row.priority.value,
        extra={"landlord_id": row.landlord_id, "property_id": row.property_id, "maintenance_request_id": row.id},
    )


def check_transition(row: MaintenanceRequest, target: MaintenanceStatus) -> None:
    """
    Forward-only along submitted -> acknowledged -> assigned -> in_progress
    -> completed. on_hold resumes to the status it was held from or later.
    """
    current = row.status
    ensure_transition("maintenance request", MAINTENANCE_TRANSITIONS, current, target)
    if current == MaintenanceStatus.ON_HOLD and target != MaintenanceStatus.CANCELLED:
        held_from = row.status_before_hold or MaintenanceStatus.SUBMITTED
        if progression_rank(target) < progression_rank(held_from):
            raise ConflictError(
                f"maintenance request was held from {held_from.value}; cannot resume at {target.value}",
                maintenance_request_id=row.id,
                current=current.value,
                target=target.value,
            )


def _apply_status(row: MaintenanceRequest, target: MaintenanceStatus) -> None:
    check_transition(row, target)
    if target == MaintenanceStatus.ON_HOLD:
        row.status_before_hold = row.status
    elif row.status == MaintenanceStatus.ON_HOLD:
        row.status_before_hold = None
    row.status = target


def _apply_completion(
    row: MaintenanceRequest,
    *,
    actual_cost: Any,
    completion_notes: Optional[str],
    completed_date: Optional[date],
) -> None:
    cost = _optional_money(actual_cost) if actual_cost is not None else row.actual_cost
    if row.estimated_cost is not None and cost is None:
        raise ValidationError(
            "actual_cost is required to complete a request that had an estimate",
            maintenance_request_id=row.id,
            estimated_cost=str(money(row.estimated_cost)),
        )
    _apply_status(row, MaintenanceStatus.COMPLETED)
    row.actual_cost = cost
    if completion_notes is not None:
        row.completion_notes = completion_notes
    row.completed_date = completed_date or _today_utc_date()


def open_request(
    db: Session,
    *,
    landlord_id: int,
    property_id: int,
    title: str,
    description: Optional[str] = None,
    category: MaintenanceCategory = MaintenanceCategory.OTHER,
    priority: MaintenancePriority = MaintenancePriority.MEDIUM,
    location: Optional[str] = None,
    tenant_presence_required: bool = False,
    estimated_cost: Any = None,
    scheduled_date: Optional[datetime] = None,
    source_inspection_id: Optional[int] = None,
    actor_id: Optional[str] = None,
) -> MaintenanceRequest:
    """Insert + audit + alert. Flushes; the caller commits."""
    if not (title or "").strip():
        raise ValidationError("maintenance request title is required", property_id=property_id)

    row = MaintenanceRequest(
        landlord_id=int(landlord_id),
        property_id=int(property_id),
        request_number=maintenance_reference(),
        title=title.strip(),
        description=description,
        category=MaintenanceCategory(category),
        priority=MaintenancePriority(priority),
        status=MaintenanceStatus.SUBMITTED,
        location=location,
        tenant_presence_required=bool(tenant_presence_required),
        estimated_cost=_optional_money(estimated_cost),
        scheduled_date=scheduled_date,
        source_inspection_id=source_inspection_id,
        reported_by=actor_id,
    )
    db.add(row)
    db.flush()

    audit_write(
        db,
        landlord_id=row.landlord_id,
        actor_id=actor_id,
        action="maintenance.create",
        entity_type="MaintenanceRequest",
        entity_id=row.id,
        after=row.model_dump(),
    )
    wf.emit(
        db,
        landlord_id=row.landlord_id,
        property_id=row.property_id,
        actor_id=actor_id,
        event_type="maintenance.created",
        payload={"maintenance_request_id": row.id, "priority": row.priority.value},
    )
    if row.priority in ALERT_PRIORITIES:
        _emit_priority_alert(db, row, actor_id=actor_id)
    return row


def create(
    db: Session, landlord_id: int, spec: MaintenanceCreate, *, actor_id: Optional[str] = None
) -> MaintenanceRequest:
    must_get_landlord(db, landlord_id=landlord_id)
    prop = must_get_property(db, landlord_id=landlord_id, property_id=spec.property_id)

    try:
        row = open_request(
            db,
            landlord_id=landlord_id,
            property_id=prop.id,
            title=spec.title,
            description=spec.description,
            category=spec.category,
            priority=spec.priority,
            location=spec.location,
            tenant_presence_required=spec.tenant_presence_required,
            estimated_cost=spec.estimated_cost,
            scheduled_date=spec.scheduled_date,
            actor_id=actor_id,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(row)
    log.info(
        "maintenance request created",
        extra={"landlord_id": landlord_id, "property_id": prop.id, "maintenance_request_id": row.id},
    )
    return row


def update(
    db: Session,
    landlord_id: int,
    request_id: int,
    patch: MaintenancePatch,
    *,
    actor_id: Optional[str] = None,
) -> MaintenanceRequest:
    """
    Descriptive fields plus, optionally, one validated status transition.
    Priority changes only when the patch names it.
    """
    row = must_get_maintenance_request(db, landlord_id=landlord_id, request_id=request_id)
    changes = patch.model_dump(exclude_unset=True)
    target = changes.pop("status", None)
    new_priority = changes.pop("priority", None)
    completed_date = changes.pop("completed_date", None)

    if row.status in TERMINAL_MAINTENANCE_STATUSES and (changes or new_priority is not None):
        raise ConflictError(
            f"maintenance request is {row.status.value}; it can no longer be edited",
            maintenance_request_id=row.id,
        )

    before = row.model_dump()
    old_priority = row.priority
    try:
        for k in _PATCHABLE:
            if k not in changes:
                continue
            v = changes[k]
            if k in ("estimated_cost", "actual_cost"):
                v = _optional_money(v)
            if k == "category" and v is not None:
                v = MaintenanceCategory(v)
            setattr(row, k, v)

        if new_priority is not None:
            row.priority = MaintenancePriority(new_priority)

        if target is not None:
            target = MaintenanceStatus(target)
            if target == MaintenanceStatus.COMPLETED:
                _apply_completion(
                    row,
                    actual_cost=changes.get("actual_cost"),
                    completion_notes=changes.get("completion_notes"),
                    completed_date=completed_date,
                )
            else:
                _apply_status(row, target)

        db.add(row)
        db.flush()

        audit_write(
            db,
            landlord_id=row.landlord_id,
            actor_id=actor_id,
            action="maintenance.update",
            entity_type="MaintenanceRequest",
            entity_id=row.id,
            before=before,
            after=row.model_dump(),
        )
        if target is not None and target.value != before.get("status"):
            wf.emit(
                db,
                landlord_id=row.landlord_id,
                property_id=row.property_id,
                actor_id=actor_id,
                event_type="maintenance.status_changed",
                payload={
                    "maintenance_request_id": row.id,
                    "from": before.get("status"),
                    "to": row.status.value,
                },
            )
        if row.priority != old_priority and row.priority in ALERT_PRIORITIES:
            _emit_priority_alert(db, row, actor_id=actor_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(row)
    return row


def complete(
    db: Session,
    landlord_id: int,
    request_id: int,
    completion: MaintenanceComplete,
    *,
    actor_id: Optional[str] = None,
) -> MaintenanceRequest:
    row = must_get_maintenance_request(db, landlord_id=landlord_id, request_id=request_id)
    before = row.model_dump()
    try:
        _apply_completion(
            row,
            actual_cost=completion.actual_cost,
            completion_notes=completion.completion_notes,
            completed_date=completion.completed_date,
        )
        db.add(row)
        db.flush()

        audit_write(
            db,
            landlord_id=row.landlord_id,
            actor_id=actor_id,
            action="maintenance.complete",
            entity_type="MaintenanceRequest",
            entity_id=row.id,
            before=before,
            after=row.model_dump(),
        )
        wf.emit(
            db,
            landlord_id=row.landlord_id,
            property_id=row.property_id,
            actor_id=actor_id,
            event_type="maintenance.completed",
            payload={
                "maintenance_request_id": row.id,
                "actual_cost": str(row.actual_cost) if row.actual_cost is not None else None,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(row)
    log.info(
        "maintenance request completed",
        extra={"landlord_id": landlord_id, "property_id": row.property_id, "maintenance_request_id": row.id},
    )
    return row


def list_requests(
    db: Session,
    landlord_id: int,
    *,
    property_id: Optional[int] = None,
    status: Optional[MaintenanceStatus] = None,
    priority: Optional[MaintenancePriority] = None,
) -> list[MaintenanceRequest]:
    must_get_landlord(db, landlord_id=landlord_id)
    q = select(MaintenanceRequest).where(MaintenanceRequest.landlord_id == landlord_id)
    if property_id is not None:
        q = q.where(MaintenanceRequest.property_id == int(property_id))
    if status is not None:
        q = q.where(MaintenanceRequest.status == MaintenanceStatus(status))
    if priority is not None:
        q = q.where(MaintenanceRequest.priority == MaintenancePriority(priority))
    return list(db.scalars(q.order_by(MaintenanceRequest.created_at.desc(), MaintenanceRequest.id.desc())).all())


def urgent_open_requests(db: Session, landlord_id: int) -> list[MaintenanceRequest]:
    must_get_landlord(db, landlord_id=landlord_id)
    q = (
        select(MaintenanceRequest)
        .where(
            MaintenanceRequest.landlord_id == landlord_id,
            MaintenanceRequest.priority.in_(list(ALERT_PRIORITIES)),
            MaintenanceRequest.status.not_in(list(TERMINAL_MAINTENANCE_STATUSES)),
        )
        .order_by(MaintenanceRequest.id)
    )
    return list(db.scalars(q).all())
