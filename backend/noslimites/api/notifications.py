from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.auth_models import User
from ..services import notifications
from .auth import get_current_user
from .schemas_notifications import NotificationOut, NotificationListOut, UnreadCountOut, ReadAllOut

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListOut)
def list_notifications(
    unread_only: bool = Query(False),
    since: Optional[datetime] = Query(None, description="Only notifications created after this instant"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows = notifications.list_notifications(
        db, user.id, unread_only=unread_only, since=since, limit=limit, offset=offset
    )
    return NotificationListOut(notifications=[NotificationOut.model_validate(n) for n in rows])


@router.get("/unread-count", response_model=UnreadCountOut)
def get_unread_count(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return UnreadCountOut(count=notifications.unread_count(db, user.id))


@router.put("/read-all", response_model=ReadAllOut)
def mark_all_read(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    updated = notifications.mark_all_read(db, user.id)
    return ReadAllOut(message="Toutes les notifications ont été marquées comme lues.", updated=updated)


@router.put("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return NotificationOut.model_validate(notifications.mark_read(db, notification_id, user.id))
