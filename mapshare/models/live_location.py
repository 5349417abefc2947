import uuid

from sqlalchemy import Column, String, Float, DateTime, Index

from mapshare.core.db import Base

class LiveLocation(Base):
    __tablename__ = "live_locations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # one row per sharing user
    user_id = Column(String, unique=True, nullable=False, index=True)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_live_locations_updated_at", "updated_at"),
    )
