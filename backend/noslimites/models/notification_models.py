from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index

from .db import Base, utcnow, new_id

RELATION_REQUEST = "relation_request"
RELATION_ACCEPTED = "relation_accepted"
NEW_COMMON_LIMIT = "new_common_limit"
LIMIT_REMOVED = "limit_removed"
RELATION_DELETED = "relation_deleted"

NOTIFICATION_TYPES = (
    RELATION_REQUEST,
    RELATION_ACCEPTED,
    NEW_COMMON_LIMIT,
    LIMIT_REMOVED,
    RELATION_DELETED,
)


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    related_user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    related_relationship_id = Column(String(36), ForeignKey("relationships.id", ondelete="CASCADE"), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
