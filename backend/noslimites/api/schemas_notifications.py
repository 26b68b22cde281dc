from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class NotificationOut(BaseModel):
    id: str
    type: str
    title: str
    message: str
    related_user_id: Optional[str] = None
    related_relationship_id: Optional[str] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationListOut(BaseModel):
    notifications: List[NotificationOut]


class UnreadCountOut(BaseModel):
    count: int


class ReadAllOut(BaseModel):
    message: str
    updated: int
