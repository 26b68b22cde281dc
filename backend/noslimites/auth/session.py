"""Session management using signed JWT bearer tokens.

Two policies are supported (``SESSION_POLICY``):

- ``database``: every issued token is recorded in the ``sessions`` table and
  checked on each request, so logout revokes it immediately.
- ``stateless``: only the signature and expiry are checked. Logout cannot
  revoke a token, so the TTL should stay short.
"""
import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from sqlalchemy.orm import Session as DbSession

from .. import config
from ..errors import Unauthenticated
from ..models.auth_models import Session
from ..models.db import as_utc


def hash_session_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_session(db: DbSession, user_id: str) -> str:
    """Issue a session token for ``user_id``. Does not commit."""
    now = datetime.now(timezone.utc)
    expires = now + timedelta(minutes=config.SESSION_TTL_MINUTES)
    payload = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": int(expires.timestamp()),
        "jti": uuid.uuid4().hex,
    }
    token = jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)

    if config.SESSION_POLICY == "database":
        db.add(Session(user_id=user_id, token_hash=hash_session_token(token), expires_at=expires))
    return token


def decode_session_token(token: str) -> Optional[dict]:
    """Verify signature and expiry. Returns the payload or None."""
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return payload


def verify_session(db: DbSession, token: str) -> str:
    """Return the user id behind ``token`` or raise Unauthenticated."""
    payload = decode_session_token(token)
    if payload is None:
        raise Unauthenticated("Session expirée ou invalide. Veuillez vous reconnecter.")

    if config.SESSION_POLICY == "database":
        row = db.query(Session).filter(Session.token_hash == hash_session_token(token)).first()
        if row is None:
            raise Unauthenticated("Session expirée ou invalide. Veuillez vous reconnecter.")
        if as_utc(row.expires_at) < datetime.now(timezone.utc):
            raise Unauthenticated("Session expirée. Veuillez vous reconnecter.")

    return payload["sub"]


def revoke_session(db: DbSession, token: str) -> bool:
    """Delete the persisted session for ``token``. No-op under the stateless policy."""
    if config.SESSION_POLICY != "database":
        return False
    deleted = db.query(Session).filter(Session.token_hash == hash_session_token(token)).delete()
    return deleted > 0
