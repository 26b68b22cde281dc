from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.auth_models import User, Device
from ..services import devices
from .auth import get_current_user
from .schemas_auth import DeviceOut, DeviceListOut, DeviceRename, MessageOut

router = APIRouter(prefix="/devices", tags=["devices"])


def _to_out(d: Device) -> DeviceOut:
    # Never expose the token hash
    return DeviceOut(
        id=d.id,
        device_name=d.device_name,
        created_at=d.created_at,
        last_seen=d.last_seen,
        expires_at=d.expires_at,
        revoked=bool(d.revoked),
    )


@router.get("", response_model=DeviceListOut)
def list_devices(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return DeviceListOut(devices=[_to_out(d) for d in devices.list_devices(db, user.id)])


@router.put("/{device_id}", response_model=DeviceOut)
def rename_device(
    device_id: str,
    payload: DeviceRename,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _to_out(devices.rename_device(db, device_id, user.id, payload.device_name))


@router.delete("/{device_id}", response_model=MessageOut)
def revoke_device(device_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    devices.revoke_device(db, device_id, user.id)
    return MessageOut(message="Appareil révoqué.")
