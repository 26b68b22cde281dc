import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..config import DISPLAY_NAME_MAX_LENGTH
from ..db import get_db
from ..errors import ValidationError
from ..models.auth_models import User
from .auth import get_current_user
from .schemas_auth import ProfileOut, ProfileUpdate, MessageOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile", tags=["profile"])


def _to_out(user: User) -> ProfileOut:
    return ProfileOut(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        avatar_url=user.avatar_url,
        auth_provider=user.auth_provider,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


@router.get("", response_model=ProfileOut)
def get_profile(user: User = Depends(get_current_user)):
    return _to_out(user)


@router.put("", response_model=ProfileOut)
def update_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    name = payload.display_name.strip()
    if not name or len(name) > DISPLAY_NAME_MAX_LENGTH:
        raise ValidationError(
            f"Le nom d'affichage doit contenir entre 1 et {DISPLAY_NAME_MAX_LENGTH} caractères."
        )
    user.display_name = name
    if "avatar_url" in payload.model_fields_set:
        user.avatar_url = payload.avatar_url
    db.commit()
    db.refresh(user)
    return _to_out(user)


@router.delete("", response_model=MessageOut)
def delete_account(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Delete the account and everything it owns (cascading foreign keys)."""
    user_id = user.id
    db.delete(user)
    db.commit()
    logger.info("Account %s deleted", user_id)
    return MessageOut(message="Compte supprimé.")
