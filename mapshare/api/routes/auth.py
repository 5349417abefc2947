from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from mapshare.core.auth import get_current_user_id
from mapshare.core.db import get_db
from mapshare.core.validation import validate_display_name
from mapshare.schemas.profile import (
    CheckAdminResponse,
    ProfileResponse,
    ProfileUpdateRequest,
)
from mapshare.services import profiles

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/check-admin", response_model=CheckAdminResponse)
def check_admin(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    admin = profiles.is_admin(db, str(user_id))
    logger.info(f"Admin check for user {user_id}: {admin}")
    return {"data": {"isAdmin": admin}}


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    return {"data": profiles.get_or_create_profile(db, str(user_id))}


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    payload: ProfileUpdateRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    errors = validate_display_name(payload.display_name)
    if errors:
        raise HTTPException(status_code=400, detail=", ".join(errors))

    profile = profiles.update_profile(
        db,
        str(user_id),
        display_name=payload.display_name,
        avatar_url=payload.avatar_url,
    )
    return {"data": profile}
