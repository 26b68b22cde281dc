"""
Notification emitter and feed queries.

Notifications are written inside the caller's transaction: the emitter never
commits, so a rolled-back transition leaves no notification behind.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from ..errors import NotFound, Forbidden
from ..models.db import as_utc
from ..models.notification_models import (
    Notification,
    NOTIFICATION_TYPES,
    RELATION_ACCEPTED,
    NEW_COMMON_LIMIT,
    LIMIT_REMOVED,
    RELATION_DELETED,
)

logger = logging.getLogger(__name__)


def emit(
    db: Session,
    *,
    user_id: str,
    type: str,
    title: str,
    message: str,
    related_user_id: Optional[str] = None,
    related_relationship_id: Optional[str] = None,
) -> Notification:
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type}")
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        related_user_id=related_user_id,
        related_relationship_id=related_relationship_id,
        is_read=False,
    )
    db.add(notification)
    logger.info("Notification %s queued for user %s", type, user_id)
    return notification


def relation_accepted(db: Session, *, inviter_id: str, accepter_id: str, accepter_name: str, relationship_id: str):
    return emit(
        db,
        user_id=inviter_id,
        type=RELATION_ACCEPTED,
        title="Invitation acceptée",
        message=f"{accepter_name or 'Un utilisateur'} a accepté votre invitation.",
        related_user_id=accepter_id,
        related_relationship_id=relationship_id,
    )


def relation_deleted(db: Session, *, recipient_id: str, deleter_id: str, deleter_name: str):
    # No relationship reference: the relationship row is about to disappear
    return emit(
        db,
        user_id=recipient_id,
        type=RELATION_DELETED,
        title="Relation supprimée",
        message=f"{deleter_name or 'Un utilisateur'} a mis fin à votre relation.",
        related_user_id=deleter_id,
    )


def new_common_limit(db: Session, *, recipient_id: str, partner_id: str, partner_name: str, limit_name: str, relationship_id: str):
    return emit(
        db,
        user_id=recipient_id,
        type=NEW_COMMON_LIMIT,
        title="Nouvelle limite commune",
        message=f"Vous avez une nouvelle limite en commun avec {partner_name or 'votre partenaire'} : {limit_name}.",
        related_user_id=partner_id,
        related_relationship_id=relationship_id,
    )


def limit_removed(db: Session, *, recipient_id: str, partner_id: str, partner_name: str, limit_name: str, relationship_id: str):
    return emit(
        db,
        user_id=recipient_id,
        type=LIMIT_REMOVED,
        title="Limite retirée",
        message=f"{partner_name or 'Votre partenaire'} a retiré une limite commune : {limit_name}.",
        related_user_id=partner_id,
        related_relationship_id=relationship_id,
    )


def list_notifications(
    db: Session,
    user_id: str,
    *,
    unread_only: bool = False,
    since: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Notification]:
    """Recipient's feed, newest first. ``since`` supports client polling."""
    qs = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        qs = qs.filter(Notification.is_read.is_(False))
    if since is not None:
        qs = qs.filter(Notification.created_at > as_utc(since).astimezone(timezone.utc))
    return (
        qs.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def unread_count(db: Session, user_id: str) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .count()
    )


def mark_read(db: Session, notification_id: str, user_id: str) -> Notification:
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise NotFound("Notification non trouvée.")
    if notification.user_id != user_id:
        raise Forbidden()
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: str) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return updated
