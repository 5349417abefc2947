import uuid

from sqlalchemy import Column, String, Float, DateTime, Enum, func

from mapshare.core.db import Base
from mapshare.schemas.enums import LocationStatus


class Location(Base):
    __tablename__ = "locations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    status = Column(
        Enum(LocationStatus, name="location_status_enum"),
        nullable=False,
        default=LocationStatus.pending,
    )

    created_by = Column(String, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
