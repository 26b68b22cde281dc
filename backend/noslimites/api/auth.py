"""Authentication endpoints: magic links, sessions and device refresh."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from .. import config
from ..auth.email import get_email_provider
from ..auth.session import verify_session, revoke_session
from ..db import get_db
from ..errors import Unauthenticated
from ..frontend_url import resolve_frontend_base_url
from ..models.auth_models import User
from ..services import magic_links, devices
from .schemas_auth import (
    MagicLinkRequest,
    MagicLinkResponse,
    VerifyResponse,
    SessionResponse,
    DeviceRefreshRequest,
    DeviceRefreshResponse,
    MessageOut,
    UserOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

bearer = HTTPBearer(auto_error=False)


def get_bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> str:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the authenticated user, or raise Unauthenticated."""
    user_id = verify_session(db, token)
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise Unauthenticated("Utilisateur non trouvé.")
    return user


def user_out(user: User) -> UserOut:
    return UserOut(id=user.id, email=user.email, display_name=user.display_name, avatar_url=user.avatar_url)


@router.post("/magic-link", response_model=MagicLinkResponse)
def request_magic_link(
    payload: MagicLinkRequest,
    request: Request,
    db: Session = Depends(get_db),
    email_provider=Depends(get_email_provider),
):
    """
    Request a sign-in link. The answer is the same whether or not the email
    already has an account.
    """
    issued = magic_links.issue_magic_link(db, payload.email)

    base_url = resolve_frontend_base_url(request, preferred_base_url=config.MAGIC_LINK_BASE_URL)
    url = f"{base_url}/auth/verify?token={issued.token}"
    email_provider.send_magic_link(issued.email, url, config.MAGIC_LINK_TTL_MINUTES)

    response = MagicLinkResponse(message="Lien magique envoyé ! Vérifiez votre boîte mail.")
    if config.IS_DEVELOPMENT:
        response.token = issued.token
        response.url = url
    return response


@router.get("/verify", response_model=VerifyResponse)
def verify(
    token: str = Query(..., min_length=1, description="Magic link token"),
    device_name: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_db),
):
    """Redeem a magic link: returns a session token and a new device token."""
    login = magic_links.verify_magic_link(db, token, device_name)
    return VerifyResponse(
        token=login.session_token,
        user=user_out(login.user),
        is_new_user=login.is_new_user,
        device_id=login.device_id,
        device_token=login.device_token,
    )


@router.get("/session", response_model=SessionResponse)
def get_session(user: User = Depends(get_current_user)):
    return SessionResponse(user=user_out(user))


@router.post("/logout", response_model=MessageOut)
def logout(
    token: str = Depends(get_bearer_token),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    revoke_session(db, token)
    db.commit()
    logger.info("User %s logged out", user.id)
    return MessageOut(message="Déconnexion réussie.")


@router.post("/device/refresh", response_model=DeviceRefreshResponse)
def refresh_device(payload: DeviceRefreshRequest, db: Session = Depends(get_db)):
    """Exchange a device token for a new session; the device token is rotated."""
    result = devices.refresh_device(db, payload.device_id, payload.device_token)
    return DeviceRefreshResponse(
        token=result.session_token,
        device_id=payload.device_id,
        device_token=result.device_token,
        user_id=result.user_id,
    )
