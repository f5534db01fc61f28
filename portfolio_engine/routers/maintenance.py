# portfolio_engine/routers/maintenance.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_actor
from ..db import get_db
from ..domain.statuses import MaintenancePriority, MaintenanceStatus
from ..schemas import MaintenanceComplete, MaintenanceCreate, MaintenanceOut, MaintenancePatch
from ..services import maintenance_workflow

router = APIRouter(prefix="/landlords/{landlord_id}/maintenance-requests", tags=["maintenance"])


@router.post("", response_model=MaintenanceOut, status_code=201)
def create_request(
    landlord_id: int, payload: MaintenanceCreate, db: Session = Depends(get_db), a=Depends(get_actor)
):
    return maintenance_workflow.create(db, landlord_id, payload, actor_id=a.actor_id)


@router.get("", response_model=list[MaintenanceOut])
def list_requests(
    landlord_id: int,
    property_id: Optional[int] = Query(default=None, alias="propertyId"),
    status: Optional[MaintenanceStatus] = Query(default=None),
    priority: Optional[MaintenancePriority] = Query(default=None),
    db: Session = Depends(get_db),
):
    return maintenance_workflow.list_requests(
        db, landlord_id, property_id=property_id, status=status, priority=priority
    )


@router.get("/urgent", response_model=list[MaintenanceOut])
def urgent_requests(landlord_id: int, db: Session = Depends(get_db)):
    return maintenance_workflow.urgent_open_requests(db, landlord_id)


@router.patch("/{request_id}", response_model=MaintenanceOut)
def update_request(
    landlord_id: int,
    request_id: int,
    payload: MaintenancePatch,
    db: Session = Depends(get_db),
    a=Depends(get_actor),
):
    return maintenance_workflow.update(db, landlord_id, request_id, payload, actor_id=a.actor_id)


@router.patch("/{request_id}/complete", response_model=MaintenanceOut)
def complete_request(
    landlord_id: int,
    request_id: int,
    payload: MaintenanceComplete,
    db: Session = Depends(get_db),
    a=Depends(get_actor),
):
    return maintenance_workflow.complete(db, landlord_id, request_id, payload, actor_id=a.actor_id)
