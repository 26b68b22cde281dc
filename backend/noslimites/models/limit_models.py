from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .db import Base, utcnow, new_id


class LimitCategory(Base):
    __tablename__ = "limit_categories"

    id = Column(String(36), primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    icon = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    sort_order = Column(Integer, nullable=True)

    subcategories = relationship(
        "LimitSubcategory",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="LimitSubcategory.sort_order",
    )


class LimitSubcategory(Base):
    __tablename__ = "limit_subcategories"

    id = Column(String(36), primary_key=True)
    category_id = Column(String(36), ForeignKey("limit_categories.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    sort_order = Column(Integer, nullable=True)

    category = relationship("LimitCategory", back_populates="subcategories")
    limits = relationship(
        "Limit",
        back_populates="subcategory",
        cascade="all, delete-orphan",
        order_by="Limit.sort_order",
    )


class Limit(Base):
    __tablename__ = "limits"

    id = Column(String(36), primary_key=True)
    subcategory_id = Column(String(36), ForeignKey("limit_subcategories.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    sort_order = Column(Integer, nullable=True)

    subcategory = relationship("LimitSubcategory", back_populates="limits")


class UserLimit(Base):
    """One user's choice on one limit within one relationship. Never returned to the partner."""

    __tablename__ = "user_limits"
    __table_args__ = (
        UniqueConstraint("user_id", "relationship_id", "limit_id", name="uq_user_limits_user_rel_limit"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    relationship_id = Column(String(36), ForeignKey("relationships.id", ondelete="CASCADE"), nullable=False, index=True)
    limit_id = Column(String(36), ForeignKey("limits.id", ondelete="CASCADE"), nullable=False, index=True)
    is_accepted = Column(Boolean, nullable=False, default=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
