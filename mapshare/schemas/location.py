from typing import List, Optional

from pydantic import BaseModel

from mapshare.schemas.base import TimestampedSchema
from mapshare.schemas.enums import LocationStatus


class LocationCreateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class LocationStatusRequest(BaseModel):
    status: str


class LocationOut(TimestampedSchema):
    id: str
    name: str
    description: Optional[str] = None
    latitude: float
    longitude: float
    status: LocationStatus
    created_by: Optional[str] = None


class LocationResponse(BaseModel):
    data: LocationOut
    message: Optional[str] = None


class LocationListResponse(BaseModel):
    data: List[LocationOut]
