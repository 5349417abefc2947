from typing import Optional
from pydantic import BaseModel

from mapshare.schemas.base import TimestampedSchema

class ProfileOut(TimestampedSchema):
    id: str
    user_id: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

class ProfileResponse(BaseModel):
    data: ProfileOut

class ProfileUpdateRequest(BaseModel):
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

class CheckAdminData(BaseModel):
    isAdmin: bool

class CheckAdminResponse(BaseModel):
    data: CheckAdminData
