# portfolio_engine/services/inspection_workflow.py
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.audit import audit_write
from ..domain.errors import ValidationError
from ..domain.references import inspection_reference
from ..domain.statuses import (
    INSPECTION_TRANSITIONS,
    InspectionOutcome,
    InspectionStatus,
    InspectionType,
    IssueSeverity,
    MaintenanceCategory,
    MaintenancePriority,
    ensure_transition,
)
from ..models import PropertyInspection
from ..schemas import InspectionComplete, InspectionCreate, InspectionIssue
from .concurrency import serialized
from .events_facade import wf
from .maintenance_workflow import open_request
from .ownership import must_get_inspection, must_get_landlord, must_get_property

log = logging.getLogger("portfolio_engine.inspections")

SEVERITY_TO_PRIORITY: dict[IssueSeverity, MaintenancePriority] = {
    IssueSeverity.LOW: MaintenancePriority.LOW,
    IssueSeverity.MEDIUM: MaintenancePriority.MEDIUM,
    IssueSeverity.HIGH: MaintenancePriority.HIGH,
    IssueSeverity.URGENT: MaintenancePriority.URGENT,
}

FOLLOW_UP_OUTCOMES = frozenset(
    {
        InspectionOutcome.MAJOR_ISSUES,
        InspectionOutcome.URGENT_ACTION_REQUIRED,
        InspectionOutcome.BREACH_OF_TENANCY,
    }
)


def priority_for_severity(severity: Optional[str]) -> MaintenancePriority:
    if severity is None:
        return MaintenancePriority.MEDIUM
    try:
        return SEVERITY_TO_PRIORITY[IssueSeverity(str(severity).strip().lower())]
    except ValueError:
        raise ValidationError(f"unknown issue severity {severity!r}", severity=str(severity)) from None


def category_for_issue(category: Optional[str]) -> MaintenanceCategory:
    key = (category or "").strip().lower().replace(" ", "_").replace("-", "_")
    try:
        return MaintenanceCategory(key)
    except ValueError:
        return MaintenanceCategory.OTHER


def _follow_up_title(issue: InspectionIssue) -> str:
    return f"Inspection follow-up: {issue.description}".strip()[:255]


def _dumps(v: Any) -> str:
    return json.dumps(v, sort_keys=True, default=str)


def _record(
    db: Session,
    row: PropertyInspection,
    *,
    actor_id: Optional[str],
    action: str,
    before: Optional[dict],
    payload: Optional[dict] = None,
) -> None:
    audit_write(
        db,
        landlord_id=row.landlord_id,
        actor_id=actor_id,
        action=action,
        entity_type="PropertyInspection",
        entity_id=row.id,
        before=before,
        after=row.model_dump(),
    )
    body = {"inspection_id": row.id, "status": row.status.value}
    if payload:
        body.update(payload)
    wf.emit(
        db,
        landlord_id=row.landlord_id,
        property_id=row.property_id,
        actor_id=actor_id,
        event_type=action,
        payload=body,
    )


def schedule(
    db: Session, landlord_id: int, spec: InspectionCreate, *, actor_id: Optional[str] = None
) -> PropertyInspection:
    must_get_landlord(db, landlord_id=landlord_id)
    prop = must_get_property(db, landlord_id=landlord_id, property_id=spec.property_id)

    row = PropertyInspection(
        landlord_id=landlord_id,
        property_id=prop.id,
        inspection_reference=inspection_reference(),
        inspection_type=InspectionType(spec.inspection_type),
        status=InspectionStatus.SCHEDULED,
        scheduled_date=spec.scheduled_date,
        inspector_name=spec.inspector_name,
        notes=spec.notes,
        reschedule_count=0,
        requires_follow_up=False,
    )
    with serialized(db, "inspection", property_id=prop.id):
        db.add(row)
        db.flush()
        _record(db, row, actor_id=actor_id, action="inspection.scheduled", before=None)
        db.commit()

    db.refresh(row)
    log.info(
        "inspection scheduled",
        extra={"landlord_id": landlord_id, "property_id": prop.id, "inspection_id": row.id},
    )
    return row


def _transition(
    db: Session,
    landlord_id: int,
    inspection_id: int,
    target: InspectionStatus,
    *,
    actor_id: Optional[str],
    action: str,
    payload: Optional[dict] = None,
    mutate=None,
) -> PropertyInspection:
    row = must_get_inspection(db, landlord_id=landlord_id, inspection_id=inspection_id)
    with serialized(db, "inspection", inspection_id=row.id):
        before = row.model_dump()
        ensure_transition("inspection", INSPECTION_TRANSITIONS, row.status, target)
        row.status = target
        if mutate is not None:
            mutate(row)
        db.add(row)
        db.flush()
        _record(db, row, actor_id=actor_id, action=action, before=before, payload=payload)
        db.commit()
    db.refresh(row)
    return row


def confirm(db: Session, landlord_id: int, inspection_id: int, *, actor_id: Optional[str] = None) -> PropertyInspection:
    return _transition(
        db, landlord_id, inspection_id, InspectionStatus.CONFIRMED, actor_id=actor_id, action="inspection.confirmed"
    )


def start(db: Session, landlord_id: int, inspection_id: int, *, actor_id: Optional[str] = None) -> PropertyInspection:
    def _stamp(row: PropertyInspection) -> None:
        row.actual_date = row.actual_date or datetime.utcnow()

    return _transition(
        db,
        landlord_id,
        inspection_id,
        InspectionStatus.IN_PROGRESS,
        actor_id=actor_id,
        action="inspection.started",
        mutate=_stamp,
    )


def reschedule(
    db: Session,
    landlord_id: int,
    inspection_id: int,
    *,
    new_date: datetime,
    reason: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> PropertyInspection:
    def _move(row: PropertyInspection) -> None:
        row.scheduled_date = new_date
        row.reschedule_count = int(row.reschedule_count or 0) + 1

    return _transition(
        db,
        landlord_id,
        inspection_id,
        InspectionStatus.RESCHEDULED,
        actor_id=actor_id,
        action="inspection.rescheduled",
        payload={"scheduled_date": new_date.isoformat(), "reason": reason},
        mutate=_move,
    )


def record_no_access(
    db: Session, landlord_id: int, inspection_id: int, *, actor_id: Optional[str] = None
) -> PropertyInspection:
    return _transition(
        db, landlord_id, inspection_id, InspectionStatus.NO_ACCESS, actor_id=actor_id, action="inspection.no_access"
    )


def postpone(db: Session, landlord_id: int, inspection_id: int, *, actor_id: Optional[str] = None) -> PropertyInspection:
    return _transition(
        db, landlord_id, inspection_id, InspectionStatus.POSTPONED, actor_id=actor_id, action="inspection.postponed"
    )


def cancel(db: Session, landlord_id: int, inspection_id: int, *, actor_id: Optional[str] = None) -> PropertyInspection:
    return _transition(
        db, landlord_id, inspection_id, InspectionStatus.CANCELLED, actor_id=actor_id, action="inspection.cancelled"
    )


def _open_follow_ups(
    db: Session, row: PropertyInspection, issues: Iterable[InspectionIssue], *, actor_id: Optional[str]
) -> list[int]:
    ids: list[int] = []
    for issue in issues:
        if not issue.action_required:
            continue
        req = open_request(
            db,
            landlord_id=row.landlord_id,
            property_id=row.property_id,
            title=_follow_up_title(issue),
            description=issue.description,
            category=category_for_issue(issue.category),
            priority=priority_for_severity(issue.severity),
            location=issue.location,
            estimated_cost=issue.estimated_cost,
            source_inspection_id=row.id,
            actor_id=actor_id,
        )
        ids.append(int(req.id))
    return ids


def complete(
    db: Session,
    landlord_id: int,
    inspection_id: int,
    completion: InspectionComplete,
    *,
    actor_id: Optional[str] = None,
) -> PropertyInspection:
    """
    Close the inspection and open one maintenance request per issue that
    needs action, all in one transaction.
    """
    row = must_get_inspection(db, landlord_id=landlord_id, inspection_id=inspection_id)

    with serialized(db, "inspection", inspection_id=row.id):
        before = row.model_dump()
        ensure_transition("inspection", INSPECTION_TRANSITIONS, row.status, InspectionStatus.COMPLETED)

        row.status = InspectionStatus.COMPLETED
        row.actual_date = completion.actual_date or row.actual_date or datetime.utcnow()
        row.outcome = InspectionOutcome(completion.outcome)
        row.general_comments = completion.general_comments
        row.issues_json = _dumps([i.model_dump(mode="json") for i in completion.issues])

        follow_up_ids = _open_follow_ups(db, row, completion.issues, actor_id=actor_id)
        row.follow_up_request_ids_json = _dumps(follow_up_ids)
        row.requires_follow_up = bool(follow_up_ids) or row.outcome in FOLLOW_UP_OUTCOMES
        db.add(row)
        db.flush()

        _record(
            db,
            row,
            actor_id=actor_id,
            action="inspection.completed",
            before=before,
            payload={"outcome": row.outcome.value, "follow_up_request_ids": follow_up_ids},
        )
        db.commit()

    db.refresh(row)
    log.info(
        "inspection completed with %d follow-ups",
        len(follow_up_ids),
        extra={"landlord_id": landlord_id, "property_id": row.property_id, "inspection_id": row.id},
    )
    return row


def list_inspections(
    db: Session,
    landlord_id: int,
    *,
    property_id: Optional[int] = None,
    status: Optional[InspectionStatus] = None,
    inspection_type: Optional[InspectionType] = None,
) -> list[PropertyInspection]:
    must_get_landlord(db, landlord_id=landlord_id)
    q = select(PropertyInspection).where(PropertyInspection.landlord_id == landlord_id)
    if property_id is not None:
        q = q.where(PropertyInspection.property_id == int(property_id))
    if status is not None:
        q = q.where(PropertyInspection.status == InspectionStatus(status))
    if inspection_type is not None:
        q = q.where(PropertyInspection.inspection_type == InspectionType(inspection_type))
    return list(db.scalars(q.order_by(PropertyInspection.scheduled_date.desc(), PropertyInspection.id.desc())).all())
