"""
Limit choices and the common-limit matcher.

Privacy rule for every read path in this module: a user only ever receives
their own ``user_limits`` rows. The partner's data is only reachable through
``get_common_limits``, which returns a limit (and the partner's note on it)
only when both parties accepted it.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session, aliased

from ..config import NOTE_MAX_LENGTH
from ..errors import NotFound, Conflict, ValidationError
from ..models.auth_models import User
from ..models.db import dialect_insert, new_id, utcnow
from ..models.limit_models import Limit, LimitSubcategory, LimitCategory, UserLimit
from ..models.relationship_models import Relationship, STATUS_ACCEPTED
from . import notifications
from .relationships import get_for_party

logger = logging.getLogger(__name__)


@dataclass
class ChoiceUpdate:
    limit_id: str
    is_accepted: bool


@dataclass
class CommonLimit:
    limit_id: str
    name: str
    description: Optional[str]
    subcategory_id: str
    subcategory_name: str
    category_id: str
    category_name: str
    my_note: Optional[str]
    partner_note: Optional[str]


def _require_writable(rel: Relationship) -> None:
    if rel.status != STATUS_ACCEPTED:
        raise Conflict("Les limites ne sont modifiables que dans une relation acceptée.")


def _ensure_limits_exist(db: Session, limit_ids: Iterable[str]) -> Dict[str, Limit]:
    wanted = set(limit_ids)
    if not wanted:
        return {}
    found = {lim.id: lim for lim in db.query(Limit).filter(Limit.id.in_(wanted)).all()}
    missing = wanted - set(found)
    if missing:
        raise NotFound(f"Limite inconnue : {sorted(missing)[0]}")
    return found


def _choice(db: Session, user_id: str, relationship_id: str, limit_id: str) -> Optional[UserLimit]:
    return (
        db.query(UserLimit)
        .filter(
            UserLimit.user_id == user_id,
            UserLimit.relationship_id == relationship_id,
            UserLimit.limit_id == limit_id,
        )
        .first()
    )


def _upsert_row(db: Session, user_id: str, relationship_id: str, limit_id: str, column: str, **values) -> None:
    """
    Insert a choice row, or overwrite ``column`` on the existing one. A
    concurrent insert of the same (user, relationship, limit) turns into an
    update instead of a second row or an integrity error.
    """
    insert = dialect_insert(db)
    now = utcnow()
    stmt = insert(UserLimit.__table__).values(
        id=new_id(),
        user_id=user_id,
        relationship_id=relationship_id,
        limit_id=limit_id,
        created_at=now,
        updated_at=now,
        **values,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "relationship_id", "limit_id"],
        set_={column: stmt.excluded[column], "updated_at": stmt.excluded.updated_at},
    )
    db.execute(stmt)


def _clean_note(note: Optional[str]) -> str:
    cleaned = (note or "").strip()
    if not cleaned:
        raise ValidationError("La note ne peut pas être vide. Supprimez-la pour l'effacer.")
    if len(cleaned) > NOTE_MAX_LENGTH:
        raise ValidationError(f"La note ne peut pas dépasser {NOTE_MAX_LENGTH} caractères.")
    return cleaned


def get_my_choices(db: Session, user_id: str, relationship_id: str) -> List[UserLimit]:
    """The caller's own rows for this relationship, nothing else."""
    get_for_party(db, relationship_id, user_id)
    return (
        db.query(UserLimit)
        .filter(UserLimit.user_id == user_id, UserLimit.relationship_id == relationship_id)
        .order_by(UserLimit.created_at.asc(), UserLimit.limit_id.asc())
        .all()
    )


def upsert_choices(db: Session, user_id: str, relationship_id: str, updates: List[ChoiceUpdate]) -> List[UserLimit]:
    """
    Apply a batch of accept/unaccept toggles in one transaction.

    Within a batch the last entry for a limit wins. Notifications go to the
    partner when a toggle creates a new match or breaks an existing one.
    """
    rel = get_for_party(db, relationship_id, user_id)
    _require_writable(rel)

    latest: Dict[str, bool] = {}
    for item in updates:
        latest.pop(item.limit_id, None)
        latest[item.limit_id] = bool(item.is_accepted)
    limits_by_id = _ensure_limits_exist(db, latest)

    partner_id = rel.partner_of(user_id)
    me = db.query(User).filter(User.id == user_id).first()
    my_name = me.display_name if me else None

    try:
        for limit_id, is_accepted in latest.items():
            mine = _choice(db, user_id, rel.id, limit_id)
            was_accepted = bool(mine and mine.is_accepted)

            if mine is None:
                if is_accepted:
                    _upsert_row(db, user_id, rel.id, limit_id, "is_accepted", is_accepted=True)
            elif not is_accepted and not mine.note:
                db.delete(mine)
            else:
                mine.is_accepted = is_accepted
            db.flush()

            if was_accepted == is_accepted:
                continue
            theirs = _choice(db, partner_id, rel.id, limit_id)
            if not (theirs and theirs.is_accepted):
                continue

            limit_name = limits_by_id[limit_id].name
            if is_accepted:
                notifications.new_common_limit(
                    db,
                    recipient_id=partner_id,
                    partner_id=user_id,
                    partner_name=my_name,
                    limit_name=limit_name,
                    relationship_id=rel.id,
                )
            else:
                notifications.limit_removed(
                    db,
                    recipient_id=partner_id,
                    partner_id=user_id,
                    partner_name=my_name,
                    limit_name=limit_name,
                    relationship_id=rel.id,
                )
        db.commit()
    except Exception:
        db.rollback()
        raise

    return get_my_choices(db, user_id, relationship_id)


def upsert_note(db: Session, user_id: str, relationship_id: str, limit_id: str, note: str) -> UserLimit:
    """Set the caller's private note. Empty or whitespace-only notes are rejected."""
    rel = get_for_party(db, relationship_id, user_id)
    cleaned = _clean_note(note)
    _require_writable(rel)
    _ensure_limits_exist(db, [limit_id])

    try:
        # A first note creates an unaccepted row; an existing row keeps its acceptance
        _upsert_row(db, user_id, rel.id, limit_id, "note", is_accepted=False, note=cleaned)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return _choice(db, user_id, rel.id, limit_id)


def delete_note(db: Session, user_id: str, relationship_id: str, limit_id: str) -> Optional[UserLimit]:
    """
    Clear the caller's note. Returns the remaining row, or None when the row
    was removed because it no longer carried an acceptance either.
    """
    rel = get_for_party(db, relationship_id, user_id)
    _require_writable(rel)
    _ensure_limits_exist(db, [limit_id])

    mine = _choice(db, user_id, rel.id, limit_id)
    if mine is None:
        return None
    if not mine.is_accepted:
        db.delete(mine)
        db.commit()
        return None
    mine.note = None
    db.commit()
    db.refresh(mine)
    return mine


def get_common_limits(db: Session, relationship_id: str, caller_id: str) -> List[CommonLimit]:
    """
    Limits both parties accepted, with both notes on those limits only.

    One self-join on (relationship_id, limit_id) with ``is_accepted`` required
    on both sides: a partner row is never loaded unless it matches.
    """
    rel = get_for_party(db, relationship_id, caller_id)
    partner_id = rel.partner_of(caller_id)
    if not partner_id:
        return []

    mine = aliased(UserLimit)
    theirs = aliased(UserLimit)
    rows = (
        db.query(
            Limit.id,
            Limit.name,
            Limit.description,
            LimitSubcategory.id,
            LimitSubcategory.name,
            LimitCategory.id,
            LimitCategory.name,
            mine.note,
            theirs.note,
        )
        .select_from(mine)
        .join(
            theirs,
            and_(
                theirs.relationship_id == mine.relationship_id,
                theirs.limit_id == mine.limit_id,
                theirs.user_id == partner_id,
                theirs.is_accepted.is_(True),
            ),
        )
        .join(Limit, Limit.id == mine.limit_id)
        .join(LimitSubcategory, LimitSubcategory.id == Limit.subcategory_id)
        .join(LimitCategory, LimitCategory.id == LimitSubcategory.category_id)
        .filter(
            mine.relationship_id == rel.id,
            mine.user_id == caller_id,
            mine.is_accepted.is_(True),
        )
        .order_by(LimitCategory.sort_order, LimitSubcategory.sort_order, Limit.sort_order)
        .all()
    )
    return [
        CommonLimit(
            limit_id=r[0],
            name=r[1],
            description=r[2],
            subcategory_id=r[3],
            subcategory_name=r[4],
            category_id=r[5],
            category_name=r[6],
            my_note=r[7],
            partner_note=r[8],
        )
        for r in rows
    ]
