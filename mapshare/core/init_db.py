from typing import Iterable

from loguru import logger
from mapshare.core.config import ADMIN_USER_IDS
from mapshare.core.db import engine, Base, session_scope
from mapshare.services.profiles import grant_role

# Import all models so SQLAlchemy registers them
from mapshare.models.live_location import LiveLocation
from mapshare.models.location import Location
from mapshare.models.profile import Profile, UserRole


def seed_admins(user_ids: Iterable[str]) -> int:
    """Grant the admin role to ``user_ids``. Already-granted ids are skipped."""
    granted = 0
    with session_scope() as db:
        for user_id in user_ids:
            grant_role(db, user_id)
            granted += 1
    if granted:
        logger.info(f"Admin role ensured for {granted} user(s)")
    return granted


def init_db():
    logger.info("Creating database tables")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
    seed_admins(ADMIN_USER_IDS)
