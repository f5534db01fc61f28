# portfolio_engine/routers/landlords.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_actor
from ..db import get_db
from ..domain.statuses import PropertyStatus
from ..schemas import (
    LandlordCreate,
    LandlordOut,
    PortfolioSummaryOut,
    PropertyCreate,
    PropertyOffMarket,
    PropertyOut,
    PropertyPatch,
)
from ..services import portfolio, tenancy_lifecycle

router = APIRouter(prefix="/landlords", tags=["landlords"])


@router.post("", response_model=LandlordOut, status_code=201)
def register_landlord(payload: LandlordCreate, db: Session = Depends(get_db), a=Depends(get_actor)):
    return portfolio.register_landlord(db, payload, actor_id=a.actor_id)


@router.get("/{landlord_id}", response_model=LandlordOut)
def get_landlord(landlord_id: int, db: Session = Depends(get_db)):
    return portfolio.get_landlord(db, landlord_id)


@router.get("/{landlord_id}/portfolio-summary", response_model=PortfolioSummaryOut)
def portfolio_summary(landlord_id: int, db: Session = Depends(get_db)):
    return portfolio.portfolio_summary(db, landlord_id).as_dict()


# -----------------------------
# Properties
# -----------------------------
@router.post("/{landlord_id}/properties", response_model=PropertyOut, status_code=201)
def add_property(landlord_id: int, payload: PropertyCreate, db: Session = Depends(get_db), a=Depends(get_actor)):
    return portfolio.add_property(db, landlord_id, payload, actor_id=a.actor_id)


@router.get("/{landlord_id}/properties", response_model=list[PropertyOut])
def list_properties(
    landlord_id: int,
    status: Optional[PropertyStatus] = Query(default=None),
    db: Session = Depends(get_db),
):
    return portfolio.list_properties(db, landlord_id, status=status)


@router.patch("/{landlord_id}/properties/{property_id}", response_model=PropertyOut)
def update_property(
    landlord_id: int,
    property_id: int,
    payload: PropertyPatch,
    db: Session = Depends(get_db),
    a=Depends(get_actor),
):
    return portfolio.update_property(db, landlord_id, property_id, payload, actor_id=a.actor_id)


@router.patch("/{landlord_id}/properties/{property_id}/off-market", response_model=PropertyOut)
def take_off_market(
    landlord_id: int,
    property_id: int,
    payload: PropertyOffMarket,
    db: Session = Depends(get_db),
    a=Depends(get_actor),
):
    return tenancy_lifecycle.take_property_off_market(
        db, landlord_id, property_id, status=payload.status, reason=payload.reason, actor_id=a.actor_id
    )


@router.patch("/{landlord_id}/properties/{property_id}/on-market", response_model=PropertyOut)
def return_to_market(landlord_id: int, property_id: int, db: Session = Depends(get_db), a=Depends(get_actor)):
    return tenancy_lifecycle.return_property_to_market(db, landlord_id, property_id, actor_id=a.actor_id)
