"""Relationship, invitation and limit-choice endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..db import get_db
from ..frontend_url import resolve_frontend_base_url
from ..models.auth_models import User
from ..models.relationship_models import Relationship
from ..services import relationships, matching
from .auth import get_current_user
from .schemas_auth import MessageOut
from .schemas_relationships import (
    PartnerOut,
    RelationshipOut,
    RelationshipListOut,
    InvitationCreated,
    InvitationInfo,
    AcceptOut,
    ChoicesUpdate,
    ChoiceOut,
    ChoiceListOut,
    NoteIn,
    NoteDeleted,
    CommonLimitOut,
    CommonLimitListOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/relationships", tags=["relationships"])


def _partner_out(user: Optional[User]) -> Optional[PartnerOut]:
    if user is None:
        return None
    return PartnerOut(id=user.id, display_name=user.display_name, avatar_url=user.avatar_url)


def _rel_out(rel: Relationship, viewer_id: str, partner: Optional[User]) -> RelationshipOut:
    return RelationshipOut(
        id=rel.id,
        status=rel.status,
        is_inviter=rel.inviter_id == viewer_id,
        partner=_partner_out(partner),
        created_at=rel.created_at,
        updated_at=rel.updated_at,
    )


def _partner(db: Session, rel: Relationship, viewer_id: str) -> Optional[User]:
    partner_id = rel.partner_of(viewer_id)
    if not partner_id:
        return None
    return db.query(User).filter(User.id == partner_id).first()


@router.get("", response_model=RelationshipListOut)
def list_relationships(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = relationships.list_relationships(db, user.id)
    return RelationshipListOut(relationships=[_rel_out(rel, user.id, partner) for rel, partner in rows])


@router.post("/invite", response_model=InvitationCreated, status_code=201)
def create_invitation(request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rel = relationships.create_invitation(db, user.id)
    base_url = resolve_frontend_base_url(request)
    return InvitationCreated(
        id=rel.id,
        invitation_token=rel.invitation_token,
        invite_url=f"{base_url}/invite/{rel.invitation_token}",
        status=rel.status,
    )


@router.get("/invite/{token}", response_model=InvitationInfo)
def get_invitation(token: str, db: Session = Depends(get_db)):
    """Public landing data for an invitation link (no authentication)."""
    rel, inviter = relationships.lookup_invitation(db, token)
    return InvitationInfo(id=rel.id, status=rel.status, inviter=_partner_out(inviter))


@router.post("/accept/{token}", response_model=AcceptOut)
def accept_invitation(token: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rel, already = relationships.accept_invitation(db, token, user.id)
    message = "Vous êtes déjà en relation." if already else "Invitation acceptée !"
    return AcceptOut(
        message=message,
        relationship=_rel_out(rel, user.id, _partner(db, rel, user.id)),
        already_accepted=already,
    )


@router.post("/decline/{token}", response_model=RelationshipOut)
def decline_invitation(token: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rel = relationships.decline_invitation(db, token, user.id)
    return _rel_out(rel, user.id, _partner(db, rel, user.id))


@router.get("/{relationship_id}", response_model=RelationshipOut)
def get_relationship(relationship_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rel = relationships.get_for_party(db, relationship_id, user.id)
    return _rel_out(rel, user.id, _partner(db, rel, user.id))


@router.delete("/{relationship_id}", response_model=MessageOut)
def delete_relationship(relationship_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    relationships.delete_relationship(db, relationship_id, user.id)
    return MessageOut(message="Relation supprimée.")


@router.post("/{relationship_id}/block", response_model=RelationshipOut)
def block_user(relationship_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rel = relationships.block_user(db, relationship_id, user.id)
    return _rel_out(rel, user.id, _partner(db, rel, user.id))


# ---- Limit choices ----

@router.get("/{relationship_id}/limits", response_model=ChoiceListOut)
def get_my_limits(relationship_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """The caller's own choices. The partner's choices are never returned here."""
    rows = matching.get_my_choices(db, user.id, relationship_id)
    return ChoiceListOut(limits=[ChoiceOut.model_validate(r) for r in rows])


@router.put("/{relationship_id}/limits", response_model=ChoiceListOut)
def update_my_limits(
    relationship_id: str,
    payload: ChoicesUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updates = [matching.ChoiceUpdate(limit_id=c.limit_id, is_accepted=c.is_accepted) for c in payload.limits]
    rows = matching.upsert_choices(db, user.id, relationship_id, updates)
    return ChoiceListOut(limits=[ChoiceOut.model_validate(r) for r in rows])


@router.put("/{relationship_id}/limits/{limit_id}/note", response_model=ChoiceOut)
def set_note(
    relationship_id: str,
    limit_id: str,
    payload: NoteIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    row = matching.upsert_note(db, user.id, relationship_id, limit_id, payload.note)
    return ChoiceOut.model_validate(row)


@router.delete("/{relationship_id}/limits/{limit_id}/note", response_model=NoteDeleted)
def delete_note(
    relationship_id: str,
    limit_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    row = matching.delete_note(db, user.id, relationship_id, limit_id)
    return NoteDeleted(
        message="Note supprimée.",
        limit=ChoiceOut.model_validate(row) if row is not None else None,
    )


@router.get("/{relationship_id}/common-limits", response_model=CommonLimitListOut)
def get_common_limits(relationship_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    common = matching.get_common_limits(db, relationship_id, user.id)
    items = [CommonLimitOut(**c.__dict__) for c in common]
    return CommonLimitListOut(common_limits=items, count=len(items))
