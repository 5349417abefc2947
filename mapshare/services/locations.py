from typing import List, Optional

from loguru import logger
from sqlalchemy import or_
from sqlalchemy.orm import Session

from mapshare.models.location import Location
from mapshare.schemas.enums import LocationStatus


# ---------- VISIBILITY ----------

def _visible_query(db: Session, viewer_id: Optional[str], is_admin: bool):
    q = db.query(Location)
    if is_admin:
        return q
    if viewer_id:
        return q.filter(
            or_(
                Location.status == LocationStatus.approved,
                Location.created_by == viewer_id,
            )
        )
    return q.filter(Location.status == LocationStatus.approved)


def list_locations(db: Session, viewer_id: Optional[str], is_admin: bool) -> List[Location]:
    return (
        _visible_query(db, viewer_id, is_admin)
        .order_by(Location.created_at.desc())
        .all()
    )


def get_location(db: Session, location_id: str, viewer_id: Optional[str], is_admin: bool) -> Location:
    loc = (
        _visible_query(db, viewer_id, is_admin)
        .filter(Location.id == location_id)
        .first()
    )
    if not loc:
        raise LookupError("Location not found")
    return loc


# ---------- MODERATION WORKFLOW ----------

def create_location(
    db: Session,
    created_by: str,
    name: str,
    latitude: float,
    longitude: float,
    description: Optional[str] = None,
) -> Location:
    loc = Location(
        name=name.strip(),
        description=(description or "").strip() or None,
        latitude=latitude,
        longitude=longitude,
        status=LocationStatus.pending,
        created_by=created_by,
    )
    db.add(loc)
    db.commit()
    db.refresh(loc)

    logger.info(f"Location created: {loc.id} by user {created_by}")
    return loc


def set_location_status(db: Session, location_id: str, status: LocationStatus, admin_id: str) -> Location:
    loc = db.query(Location).filter(Location.id == location_id).first()
    if not loc:
        raise LookupError("Location not found")

    loc.status = status
    db.commit()
    db.refresh(loc)

    logger.info(f"Location {location_id} status updated to {status.value} by admin {admin_id}")
    return loc


def delete_location(db: Session, location_id: str, admin_id: str) -> None:
    loc = db.query(Location).filter(Location.id == location_id).first()
    if not loc:
        raise LookupError("Location not found")

    db.delete(loc)
    db.commit()

    logger.info(f"Location {location_id} deleted by admin {admin_id}")
