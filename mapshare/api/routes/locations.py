from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from mapshare.core.auth import get_current_user_id
from mapshare.core.db import get_db
from mapshare.core.validation import validate_location
from mapshare.schemas.base import MessageResponse
from mapshare.schemas.enums import LocationStatus
from mapshare.schemas.location import (
    LocationCreateRequest,
    LocationStatusRequest,
    LocationResponse,
    LocationListResponse,
)
from mapshare.services import locations as location_service
from mapshare.services.profiles import get_viewer, require_admin

router = APIRouter(prefix="/locations", tags=["locations"])

_MODERATION_STATUSES = {LocationStatus.approved.value, LocationStatus.denied.value}


# ----------------------------
# READ
# ----------------------------
@router.get("", response_model=LocationListResponse)
def list_locations(
    db: Session = Depends(get_db),
    viewer: tuple[Optional[str], bool] = Depends(get_viewer),
):
    viewer_id, is_admin = viewer
    return {"data": location_service.list_locations(db, viewer_id, is_admin)}


@router.get("/{location_id}", response_model=LocationResponse)
def get_location(
    location_id: str,
    db: Session = Depends(get_db),
    viewer: tuple[Optional[str], bool] = Depends(get_viewer),
):
    viewer_id, is_admin = viewer
    try:
        loc = location_service.get_location(db, location_id, viewer_id, is_admin)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"data": loc}


# ----------------------------
# SUBMIT
# ----------------------------
@router.post("", response_model=LocationResponse, status_code=201)
def create_location(
    payload: LocationCreateRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    errors = validate_location(
        payload.name, payload.description, payload.latitude, payload.longitude
    )
    if errors:
        logger.info(f"Rejected location from user {user_id}: {errors}")
        raise HTTPException(status_code=400, detail=", ".join(errors))

    loc = location_service.create_location(
        db,
        created_by=str(user_id),
        name=payload.name,
        description=payload.description,
        latitude=payload.latitude,
        longitude=payload.longitude,
    )
    return {"data": loc, "message": "Location submitted for approval"}


# ----------------------------
# MODERATION (admin)
# ----------------------------
@router.post("/{location_id}/status", response_model=LocationResponse)
def update_location_status(
    location_id: str,
    payload: LocationStatusRequest,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    if payload.status not in _MODERATION_STATUSES:
        raise HTTPException(
            status_code=400,
            detail="Invalid request: id and valid status required",
        )

    status = LocationStatus(payload.status)
    try:
        loc = location_service.set_location_status(db, location_id, status, admin_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {"data": loc, "message": f"Location {status.value}"}


@router.delete("/{location_id}", response_model=MessageResponse)
def delete_location(
    location_id: str,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    try:
        location_service.delete_location(db, location_id, admin_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {"message": "Location deleted"}
