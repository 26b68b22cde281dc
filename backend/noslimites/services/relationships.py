"""
Relationship lifecycle: pending -> accepted | declined, accepted -> blocked.

Transitions that depend on the current status are applied with a conditional
UPDATE on that status, so double submissions resolve to one outcome.
"""
import logging
import secrets
from typing import List, Optional, Tuple

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session, aliased

from ..errors import NotFound, Forbidden, SelfInvitation, Blocked, Conflict
from ..models.auth_models import User
from ..models.limit_models import UserLimit
from ..models.relationship_models import (
    Relationship,
    BlockedUser,
    STATUS_PENDING,
    STATUS_ACCEPTED,
    STATUS_DECLINED,
    STATUS_BLOCKED,
)
from ..models.db import utcnow
from . import notifications

logger = logging.getLogger(__name__)

PAIR_CONFLICT_MESSAGE = "Vous avez déjà une relation avec cette personne."


def _display_name(db: Session, user_id: Optional[str]) -> Optional[str]:
    if not user_id:
        return None
    user = db.query(User).filter(User.id == user_id).first()
    return user.display_name if user else None


def is_blocked_between(db: Session, user_a: str, user_b: str) -> bool:
    return (
        db.query(BlockedUser)
        .filter(
            or_(
                and_(BlockedUser.blocker_id == user_a, BlockedUser.blocked_id == user_b),
                and_(BlockedUser.blocker_id == user_b, BlockedUser.blocked_id == user_a),
            )
        )
        .first()
        is not None
    )


def get_for_party(db: Session, relationship_id: str, user_id: str) -> Relationship:
    """Load a relationship the caller belongs to. Non-parties get Forbidden."""
    rel = db.query(Relationship).filter(Relationship.id == relationship_id).first()
    if rel is None:
        raise NotFound("Relation non trouvée.")
    if not rel.has_party(user_id):
        raise Forbidden("Accès interdit. Vous ne faites pas partie de cette relation.")
    return rel


def list_relationships(db: Session, user_id: str) -> List[Tuple[Relationship, Optional[User]]]:
    rels = (
        db.query(Relationship)
        .filter(or_(Relationship.inviter_id == user_id, Relationship.invitee_id == user_id))
        .order_by(Relationship.created_at.desc())
        .all()
    )
    result = []
    for rel in rels:
        partner_id = rel.partner_of(user_id)
        partner = db.query(User).filter(User.id == partner_id).first() if partner_id else None
        result.append((rel, partner))
    return result


def create_invitation(db: Session, inviter_id: str) -> Relationship:
    rel = Relationship(
        inviter_id=inviter_id,
        invitee_id=None,
        invitation_token=secrets.token_urlsafe(24),
        status=STATUS_PENDING,
    )
    db.add(rel)
    db.commit()
    db.refresh(rel)
    logger.info("Invitation %s created by %s", rel.id, inviter_id)
    return rel


def lookup_invitation(db: Session, token: str) -> Tuple[Relationship, User]:
    """Public landing info for an invitation token."""
    rel = db.query(Relationship).filter(Relationship.invitation_token == token).first()
    if rel is None:
        raise NotFound("Invitation non trouvée ou expirée.")
    inviter = db.query(User).filter(User.id == rel.inviter_id).first()
    return rel, inviter


def _accepted_between(user_a: str, user_b: str, exclude_id: str):
    """EXISTS clause: another accepted relationship already links the two users."""
    other = aliased(Relationship)
    return (
        select(other.id)
        .where(
            other.id != exclude_id,
            other.status == STATUS_ACCEPTED,
            or_(
                and_(other.inviter_id == user_a, other.invitee_id == user_b),
                and_(other.inviter_id == user_b, other.invitee_id == user_a),
            ),
        )
        .exists()
    )


def _lock_pair(db: Session, user_a: str, user_b: str) -> None:
    # Row locks serialize accepts for one pair on PostgreSQL; SQLite already
    # serializes writers and ignores FOR UPDATE
    (
        db.query(User.id)
        .filter(User.id.in_([user_a, user_b]))
        .order_by(User.id)
        .with_for_update()
        .all()
    )


def accept_invitation(db: Session, token: str, accepter_id: str) -> Tuple[Relationship, bool]:
    """
    Accept an invitation. Returns ``(relationship, already_accepted)``.

    Accepting again as the same invitee is a no-op success, so a double click
    never creates a second relationship or a second notification.
    """
    rel = db.query(Relationship).filter(Relationship.invitation_token == token).first()
    if rel is None:
        raise NotFound("Invitation non trouvée ou expirée.")
    if rel.inviter_id == accepter_id:
        raise SelfInvitation()
    if rel.status == STATUS_ACCEPTED and rel.invitee_id == accepter_id:
        return rel, True
    if is_blocked_between(db, rel.inviter_id, accepter_id):
        raise Blocked()
    if rel.status != STATUS_PENDING:
        raise Conflict("Cette invitation n'est plus disponible.")
    if db.query(_accepted_between(rel.inviter_id, accepter_id, rel.id)).scalar():
        raise Conflict(PAIR_CONFLICT_MESSAGE)

    try:
        _lock_pair(db, rel.inviter_id, accepter_id)
        # The pair check is repeated inside the UPDATE so that two invitations
        # from the same inviter accepted at once yield a single relationship
        result = db.execute(
            update(Relationship)
            .where(
                Relationship.id == rel.id,
                Relationship.status == STATUS_PENDING,
                ~_accepted_between(rel.inviter_id, accepter_id, rel.id),
            )
            .values(invitee_id=accepter_id, status=STATUS_ACCEPTED, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            db.refresh(rel)
            if rel.status == STATUS_ACCEPTED and rel.invitee_id == accepter_id:
                return rel, True
            if rel.status == STATUS_PENDING:
                raise Conflict(PAIR_CONFLICT_MESSAGE)
            raise Conflict("Cette invitation a déjà été acceptée.")

        notifications.relation_accepted(
            db,
            inviter_id=rel.inviter_id,
            accepter_id=accepter_id,
            accepter_name=_display_name(db, accepter_id),
            relationship_id=rel.id,
        )
        db.commit()
    except Conflict:
        raise
    except Exception:
        db.rollback()
        raise

    db.refresh(rel)
    logger.info("Invitation %s accepted by %s", rel.id, accepter_id)
    return rel, False


def decline_invitation(db: Session, token: str, decliner_id: str) -> Relationship:
    rel = db.query(Relationship).filter(Relationship.invitation_token == token).first()
    if rel is None:
        raise NotFound("Invitation non trouvée ou expirée.")
    if rel.inviter_id == decliner_id:
        raise SelfInvitation("Vous ne pouvez pas refuser votre propre invitation.")
    if rel.status == STATUS_DECLINED:
        return rel

    result = db.execute(
        update(Relationship)
        .where(Relationship.id == rel.id, Relationship.status == STATUS_PENDING)
        .values(status=STATUS_DECLINED, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(rel)
    if result.rowcount != 1 and rel.status != STATUS_DECLINED:
        raise Conflict("Cette invitation n'est plus disponible.")
    logger.info("Invitation %s declined", rel.id)
    return rel


def delete_relationship(db: Session, relationship_id: str, requester_id: str) -> None:
    rel = get_for_party(db, relationship_id, requester_id)
    partner_id = rel.partner_of(requester_id)
    try:
        db.query(UserLimit).filter(UserLimit.relationship_id == rel.id).delete(synchronize_session=False)
        db.delete(rel)
        if partner_id:
            notifications.relation_deleted(
                db,
                recipient_id=partner_id,
                deleter_id=requester_id,
                deleter_name=_display_name(db, requester_id),
            )
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Relationship %s deleted by %s", relationship_id, requester_id)


def block_user(db: Session, relationship_id: str, blocker_id: str) -> Relationship:
    """Block the partner: erase both users' choices for this pairing and record the block."""
    rel = get_for_party(db, relationship_id, blocker_id)
    blocked_id = rel.partner_of(blocker_id)
    if not blocked_id or rel.status not in (STATUS_ACCEPTED, STATUS_BLOCKED):
        raise Conflict("Seule une relation acceptée peut être bloquée.")

    try:
        exists = (
            db.query(BlockedUser)
            .filter(BlockedUser.blocker_id == blocker_id, BlockedUser.blocked_id == blocked_id)
            .first()
        )
        if exists is None:
            db.add(BlockedUser(blocker_id=blocker_id, blocked_id=blocked_id))
        rel.status = STATUS_BLOCKED
        db.query(UserLimit).filter(UserLimit.relationship_id == rel.id).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(rel)
    logger.info("User %s blocked %s (relationship %s)", blocker_id, blocked_id, rel.id)
    return rel
