from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, constr


class MagicLinkRequest(BaseModel):
    email: EmailStr


class MagicLinkResponse(BaseModel):
    message: str
    # Only filled in development
    token: Optional[str] = None
    url: Optional[str] = None


class UserOut(BaseModel):
    id: str
    email: str
    display_name: str
    avatar_url: Optional[str] = None


class ProfileOut(UserOut):
    auth_provider: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProfileUpdate(BaseModel):
    display_name: str
    avatar_url: Optional[str] = None


class VerifyResponse(BaseModel):
    token: str
    user: UserOut
    is_new_user: bool
    device_id: Optional[str] = None
    device_token: Optional[str] = None


class SessionResponse(BaseModel):
    user: UserOut


class DeviceRefreshRequest(BaseModel):
    device_id: str
    device_token: str


class DeviceRefreshResponse(BaseModel):
    token: str
    device_id: str
    device_token: str
    user_id: str


class DeviceOut(BaseModel):
    id: str
    device_name: str
    created_at: datetime
    last_seen: datetime
    expires_at: datetime
    revoked: bool


class DeviceListOut(BaseModel):
    devices: List[DeviceOut]


class DeviceRename(BaseModel):
    device_name: constr(strip_whitespace=True, min_length=1, max_length=100)


class MessageOut(BaseModel):
    message: str
