from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint

from .db import Base, utcnow, new_id

STATUS_PENDING = "pending"
STATUS_ACCEPTED = "accepted"
STATUS_DECLINED = "declined"
STATUS_BLOCKED = "blocked"


class Relationship(Base):
    """Pairing between an inviter and (once accepted) an invitee."""

    __tablename__ = "relationships"

    id = Column(String(36), primary_key=True, default=new_id)
    inviter_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    invitee_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    invitation_token = Column(String, nullable=False, unique=True, index=True)
    status = Column(String(16), nullable=False, default=STATUS_PENDING)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def has_party(self, user_id: str) -> bool:
        return user_id in (self.inviter_id, self.invitee_id)

    def partner_of(self, user_id: str):
        return self.invitee_id if self.inviter_id == user_id else self.inviter_id


class BlockedUser(Base):
    __tablename__ = "blocked_users"
    __table_args__ = (UniqueConstraint("blocker_id", "blocked_id", name="uq_blocked_users_pair"),)

    id = Column(String(36), primary_key=True, default=new_id)
    blocker_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    blocked_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
