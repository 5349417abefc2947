"""Single-row-per-user presence store on top of ``live_locations``."""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy import case, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from mapshare.models.live_location import LiveLocation
from mapshare.models.profile import Profile
from mapshare.schemas.enums import PresenceEvent

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"Presence upsert not supported on dialect: {dialect}")
    return insert


def upsert_presence(
    db: Session,
    user_id: str,
    latitude: float,
    longitude: float,
    now: Optional[datetime] = None,
) -> Tuple[LiveLocation, PresenceEvent]:
    """
    Insert or replace the caller's row in one statement.

    Coordinates follow arrival order; ``updated_at`` never moves backwards.
    The event is INSERT only for the statement that actually created the row:
    a conflicting upsert keeps the stored id, so RETURNING tells them apart.
    """
    now = now or datetime.now(timezone.utc)
    new_id = str(uuid.uuid4())

    insert = _insert_for(db)
    stmt = insert(LiveLocation).values(
        id=new_id,
        user_id=user_id,
        latitude=latitude,
        longitude=longitude,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[LiveLocation.user_id],
        set_={
            "latitude": stmt.excluded.latitude,
            "longitude": stmt.excluded.longitude,
            "updated_at": case(
                (stmt.excluded.updated_at > LiveLocation.updated_at, stmt.excluded.updated_at),
                else_=LiveLocation.updated_at,
            ),
        },
    ).returning(LiveLocation.id)

    row_id = db.execute(stmt).scalar_one()
    db.commit()

    record = db.execute(
        select(LiveLocation).where(LiveLocation.user_id == user_id)
    ).scalar_one()

    event = PresenceEvent.insert if row_id == new_id else PresenceEvent.update
    logger.info(f"Live location {event.value.lower()} for user {user_id}")
    return record, event


def delete_presence(db: Session, user_id: str) -> bool:
    """Remove the caller's row. Returns False when there was nothing to remove."""
    deleted = (
        db.query(LiveLocation)
        .filter(LiveLocation.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()

    logger.info(f"Live location stopped for user {user_id} (rows={deleted})")
    return deleted > 0


def list_presence(db: Session) -> List[Dict[str, Any]]:
    rows = db.execute(
        select(LiveLocation, Profile.id, Profile.display_name)
        .outerjoin(Profile, Profile.user_id == LiveLocation.user_id)
    ).all()

    out: List[Dict[str, Any]] = []
    for loc, profile_id, display_name in rows:
        out.append(
            {
                "id": loc.id,
                "user_id": loc.user_id,
                "latitude": loc.latitude,
                "longitude": loc.longitude,
                "updated_at": loc.updated_at,
                "profile": {"display_name": display_name} if profile_id is not None else None,
            }
        )
    return out
