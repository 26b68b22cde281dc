from .db import Base
from .auth_models import User, MagicLink, Session, Device
from .relationship_models import Relationship, BlockedUser
from .limit_models import LimitCategory, LimitSubcategory, Limit, UserLimit
from .notification_models import Notification

__all__ = [
    "Base",
    "User",
    "MagicLink",
    "Session",
    "Device",
    "Relationship",
    "BlockedUser",
    "LimitCategory",
    "LimitSubcategory",
    "Limit",
    "UserLimit",
    "Notification",
]
