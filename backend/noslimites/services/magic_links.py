"""
Magic link issuing and redemption.

Tokens are stored as SHA-256 digests. Redemption is a single conditional
UPDATE (``used = false AND expires_at > now``) so two concurrent verifications
of the same token cannot both succeed.
"""
import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..auth.session import create_session
from ..config import MAGIC_LINK_TTL_MINUTES, MAGIC_LINK_MAX_PER_HOUR
from ..errors import NotFound, TokenAlreadyUsed, TokenExpired, RateLimited
from ..models.auth_models import MagicLink, User
from ..models.db import utcnow
from . import devices

logger = logging.getLogger(__name__)

AUTH_PROVIDER_MAGIC_LINK = "magic_link"


def hash_magic_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass
class IssuedLink:
    email: str
    token: str
    expires_at: datetime


@dataclass
class VerifiedLogin:
    user: User
    session_token: str
    is_new_user: bool
    device_id: Optional[str] = None
    device_token: Optional[str] = None


def issue_magic_link(db: Session, email: str) -> IssuedLink:
    """
    Create a one-time link for ``email``.

    No user row is created here: the account only exists after the first
    successful verification, and the caller's response does not depend on
    whether the email is known.
    """
    email = normalize_email(email)

    # Rate limiting: max N requests per hour per email
    one_hour_ago = datetime.now(timezone.utc) - timedelta(hours=1)
    recent_requests = (
        db.query(MagicLink)
        .filter(MagicLink.email == email, MagicLink.created_at >= one_hour_ago)
        .count()
    )
    if recent_requests >= MAGIC_LINK_MAX_PER_HOUR:
        raise RateLimited()

    raw_token = secrets.token_urlsafe(32)
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=MAGIC_LINK_TTL_MINUTES)
    db.add(MagicLink(email=email, token_hash=hash_magic_token(raw_token), expires_at=expires_at, used=False))
    db.commit()

    logger.info("Magic link issued (expires %s)", expires_at.isoformat())
    return IssuedLink(email=email, token=raw_token, expires_at=expires_at)


def _consume(db: Session, token_hash: str) -> MagicLink:
    now = utcnow()
    result = db.execute(
        update(MagicLink)
        .where(
            MagicLink.token_hash == token_hash,
            MagicLink.used.is_(False),
            MagicLink.expires_at > now,
        )
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    link = db.query(MagicLink).filter(MagicLink.token_hash == token_hash).first()
    if result.rowcount == 1:
        return link

    # Lost the conditional update: report why
    if link is None:
        raise NotFound("Lien magique invalide ou expiré.")
    db.refresh(link)
    if link.used:
        raise TokenAlreadyUsed()
    raise TokenExpired()


def verify_magic_link(db: Session, token: str, device_name: Optional[str] = None) -> VerifiedLogin:
    """
    Redeem ``token``: mark it used, upsert the user, open a session and
    register a new device. Everything commits together or not at all.
    """
    try:
        link = _consume(db, hash_magic_token(token))

        user = db.query(User).filter(User.email == link.email).first()
        is_new_user = user is None
        if is_new_user:
            user = User(
                email=link.email,
                display_name=link.email.split("@")[0],  # Temporary name
                auth_provider=AUTH_PROVIDER_MAGIC_LINK,
            )
            db.add(user)
            db.flush()

        session_token = create_session(db, user.id)
        device_id, device_token = devices.issue_device(db, user.id, device_name, commit=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    logger.info("User %s signed in via magic link (new=%s)", user.id, is_new_user)
    return VerifiedLogin(
        user=user,
        session_token=session_token,
        is_new_user=is_new_user,
        device_id=device_id,
        device_token=device_token,
    )
