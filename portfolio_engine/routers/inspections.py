# portfolio_engine/routers/inspections.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_actor
from ..db import get_db
from ..domain.statuses import InspectionStatus, InspectionType
from ..schemas import InspectionComplete, InspectionCreate, InspectionOut, InspectionReschedule
from ..services import inspection_workflow

router = APIRouter(prefix="/landlords/{landlord_id}/inspections", tags=["inspections"])


@router.post("", response_model=InspectionOut, status_code=201)
def schedule_inspection(
    landlord_id: int, payload: InspectionCreate, db: Session = Depends(get_db), a=Depends(get_actor)
):
    return inspection_workflow.schedule(db, landlord_id, payload, actor_id=a.actor_id)


@router.get("", response_model=list[InspectionOut])
def list_inspections(
    landlord_id: int,
    property_id: Optional[int] = Query(default=None, alias="propertyId"),
    status: Optional[InspectionStatus] = Query(default=None),
    inspection_type: Optional[InspectionType] = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
):
    return inspection_workflow.list_inspections(
        db, landlord_id, property_id=property_id, status=status, inspection_type=inspection_type
    )


@router.patch("/{inspection_id}/confirm", response_model=InspectionOut)
def confirm_inspection(landlord_id: int, inspection_id: int, db: Session = Depends(get_db), a=Depends(get_actor)):
    return inspection_workflow.confirm(db, landlord_id, inspection_id, actor_id=a.actor_id)


@router.patch("/{inspection_id}/start", response_model=InspectionOut)
def start_inspection(landlord_id: int, inspection_id: int, db: Session = Depends(get_db), a=Depends(get_actor)):
    return inspection_workflow.start(db, landlord_id, inspection_id, actor_id=a.actor_id)


@router.patch("/{inspection_id}/reschedule", response_model=InspectionOut)
def reschedule_inspection(
    landlord_id: int,
    inspection_id: int,
    payload: InspectionReschedule,
    db: Session = Depends(get_db),
    a=Depends(get_actor),
):
    return inspection_workflow.reschedule(
        db, landlord_id, inspection_id, new_date=payload.new_date, reason=payload.reason, actor_id=a.actor_id
    )


@router.patch("/{inspection_id}/no-access", response_model=InspectionOut)
def record_no_access(landlord_id: int, inspection_id: int, db: Session = Depends(get_db), a=Depends(get_actor)):
    return inspection_workflow.record_no_access(db, landlord_id, inspection_id, actor_id=a.actor_id)


@router.patch("/{inspection_id}/postpone", response_model=InspectionOut)
def postpone_inspection(landlord_id: int, inspection_id: int, db: Session = Depends(get_db), a=Depends(get_actor)):
    return inspection_workflow.postpone(db, landlord_id, inspection_id, actor_id=a.actor_id)


@router.patch("/{inspection_id}/cancel", response_model=InspectionOut)
def cancel_inspection(landlord_id: int, inspection_id: int, db: Session = Depends(get_db), a=Depends(get_actor)):
    return inspection_workflow.cancel(db, landlord_id, inspection_id, actor_id=a.actor_id)


@router.patch("/{inspection_id}/complete", response_model=InspectionOut)
def complete_inspection(
    landlord_id: int,
    inspection_id: int,
    payload: InspectionComplete,
    db: Session = Depends(get_db),
    a=Depends(get_actor),
):
    return inspection_workflow.complete(db, landlord_id, inspection_id, payload, actor_id=a.actor_id)
