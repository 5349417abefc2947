from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from mapshare.schemas.base import BaseSchema


class LiveLocationUpdateRequest(BaseModel):
    # bounds are checked by the route so the error text matches the other endpoints
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ProfileSummary(BaseModel):
    display_name: Optional[str] = None


class LiveLocationOut(BaseSchema):
    id: str
    user_id: str
    latitude: float
    longitude: float
    updated_at: datetime
    profile: Optional[ProfileSummary] = None


class LiveLocationResponse(BaseModel):
    data: LiveLocationOut


class LiveLocationListResponse(BaseModel):
    data: List[LiveLocationOut]
