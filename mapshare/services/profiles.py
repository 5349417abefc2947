from typing import Optional

from fastapi import Depends, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from mapshare.core.auth import get_current_user_id, get_optional_user_id
from mapshare.core.db import get_db
from mapshare.models.profile import Profile, UserRole
from mapshare.schemas.enums import AppRole


# ---------- ROLES ----------

def is_admin(db: Session, user_id: Optional[str]) -> bool:
    if not user_id:
        return False
    row = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role == AppRole.admin)
        .first()
    )
    return row is not None


def grant_role(db: Session, user_id: str, role: AppRole = AppRole.admin) -> UserRole:
    existing = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role == role)
        .first()
    )
    if existing:
        return existing

    row = UserRole(user_id=user_id, role=role)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def require_admin(
    db: Session = Depends(get_db),
    user_id=Depends(get_current_user_id),
) -> str:
    uid = str(user_id)
    if not is_admin(db, uid):
        raise HTTPException(status_code=403, detail="Admin access required")
    return uid


def get_viewer(
    db: Session = Depends(get_db),
    user_id=Depends(get_optional_user_id),
) -> tuple[Optional[str], bool]:
    """(viewer_id, is_admin) for endpoints that also serve anonymous callers."""
    uid = str(user_id) if user_id else None
    return uid, is_admin(db, uid)


# ---------- PROFILES ----------

def get_or_create_profile(db: Session, user_id: str) -> Profile:
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    if profile:
        return profile

    profile = Profile(user_id=user_id)
    db.add(profile)
    db.commit()
    db.refresh(profile)

    logger.info(f"Profile created for user {user_id}")
    return profile


def update_profile(
    db: Session,
    user_id: str,
    display_name: Optional[str] = None,
    avatar_url: Optional[str] = None,
) -> Profile:
    profile = get_or_create_profile(db, user_id)

    if display_name is not None:
        profile.display_name = display_name.strip()
    if avatar_url is not None:
        profile.avatar_url = avatar_url

    db.commit()
    db.refresh(profile)

    logger.info(f"Profile updated for user {user_id}")
    return profile
