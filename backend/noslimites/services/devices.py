"""
Per-device refresh tokens.

Only an HMAC-SHA256 digest of the current token is stored. Every refresh
rotates the token: the stored digest is replaced through a conditional UPDATE
on the previous digest, so a replayed (or concurrently reused) token no longer
matches.
"""
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..auth.session import create_session
from ..config import (
    DEVICE_TOKEN_SECRET,
    DEVICE_TOKEN_EXPIRY_DAYS,
    MAX_DEVICES_PER_USER,
    DEFAULT_DEVICE_NAME,
)
from ..errors import InvalidOrRevoked, TokenExpired, NotFound, Forbidden, ValidationError
from ..models.auth_models import Device
from ..models.db import as_utc, new_id, utcnow

logger = logging.getLogger(__name__)


def hash_device_token(token: str) -> str:
    return hmac.new(DEVICE_TOKEN_SECRET.encode(), token.encode(), hashlib.sha256).hexdigest()


def generate_device_token() -> str:
    return secrets.token_urlsafe(48)


def _new_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=DEVICE_TOKEN_EXPIRY_DAYS)


@dataclass
class RefreshResult:
    user_id: str
    session_token: str
    device_token: str


def issue_device(db: Session, user_id: str, device_name: Optional[str] = None, commit: bool = True) -> Tuple[str, str]:
    """Register a device for ``user_id`` and return ``(device_id, plaintext_token)``."""
    active = (
        db.query(Device)
        .filter(Device.user_id == user_id, Device.revoked.is_(False))
        .order_by(Device.last_seen.asc())
        .all()
    )
    # Evict least recently seen devices until there is room for one more
    overflow = len(active) - MAX_DEVICES_PER_USER + 1
    for device in active[:max(overflow, 0)]:
        device.revoked = True
        logger.info("Device %s evicted for user %s (device cap reached)", device.id, user_id)

    token = generate_device_token()
    device = Device(
        id=new_id(),
        user_id=user_id,
        device_name=(device_name or "").strip() or DEFAULT_DEVICE_NAME,
        refresh_token_hash=hash_device_token(token),
        expires_at=_new_expiry(),
        last_seen=utcnow(),
        revoked=False,
    )
    db.add(device)
    if commit:
        db.commit()
    else:
        db.flush()
    return device.id, token


def refresh_device(db: Session, device_id: str, presented_token: str) -> RefreshResult:
    """Rotate the device token and open a new session."""
    old_hash = hash_device_token(presented_token)
    device = (
        db.query(Device)
        .filter(
            Device.id == device_id,
            Device.refresh_token_hash == old_hash,
            Device.revoked.is_(False),
        )
        .first()
    )
    if device is None:
        raise InvalidOrRevoked()

    if as_utc(device.expires_at) < datetime.now(timezone.utc):
        device.revoked = True
        db.commit()
        logger.info("Device %s expired and was revoked", device_id)
        raise TokenExpired("Appareil expiré. Veuillez vous reconnecter.", status_code=401)

    new_token = generate_device_token()
    try:
        result = db.execute(
            update(Device)
            .where(
                Device.id == device_id,
                Device.refresh_token_hash == old_hash,
                Device.revoked.is_(False),
            )
            .values(
                refresh_token_hash=hash_device_token(new_token),
                last_seen=utcnow(),
                expires_at=_new_expiry(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Another request rotated this token first
            raise InvalidOrRevoked()

        session_token = create_session(db, device.user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Device %s rotated", device_id)
    return RefreshResult(user_id=device.user_id, session_token=session_token, device_token=new_token)


def _owned_device(db: Session, device_id: str, user_id: str) -> Device:
    device = db.query(Device).filter(Device.id == device_id).first()
    if device is None:
        raise NotFound("Appareil non trouvé.")
    if device.user_id != user_id:
        raise Forbidden()
    return device


def revoke_device(db: Session, device_id: str, user_id: str) -> None:
    device = _owned_device(db, device_id, user_id)
    device.revoked = True
    db.commit()
    logger.info("Device %s revoked by its owner", device_id)


def rename_device(db: Session, device_id: str, user_id: str, device_name: str) -> Device:
    name = (device_name or "").strip()
    if not name:
        raise ValidationError("Nom d'appareil requis.")
    device = _owned_device(db, device_id, user_id)
    device.device_name = name
    db.commit()
    db.refresh(device)
    return device


def list_devices(db: Session, user_id: str) -> List[Device]:
    return (
        db.query(Device)
        .filter(Device.user_id == user_id)
        .order_by(Device.last_seen.desc())
        .all()
    )
