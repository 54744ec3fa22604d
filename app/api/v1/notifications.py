import logging
from datetime import datetime
from typing import Any
from uuid import UUID
from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.api import deps
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.models.communication import Notification
from app.schemas.auth import CurrentUser
from app.schemas.communication import NotificationCreate, NotificationResponse
from app.services import notifier

logger = logging.getLogger(__name__)

router = APIRouter()

LIST_LIMIT = 50


def _visible_to(current_user: CurrentUser):
    # NULL user_id is a global notification
    return or_(Notification.user_id.is_(None), Notification.user_id == current_user.id)


@router.get("/stream")
async def stream_notifications(
    current_user: CurrentUser = Depends(deps.get_stream_user),
) -> StreamingResponse:
    queue = notifier.broker.subscribe(current_user.id)
    return StreamingResponse(
        notifier.broker.stream(settings.SSE_KEEPALIVE_SECONDS, queue=queue),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/")
def list_notifications(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.get_current_user),
) -> Any:
    notifications = (
        db.query(Notification)
        .filter(_visible_to(current_user))
        .order_by(Notification.created_at.desc())
        .limit(LIST_LIMIT)
        .all()
    )
    return {"notifications": [NotificationResponse.model_validate(n) for n in notifications]}


@router.get("/unread/count")
def unread_count(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.get_current_user),
) -> Any:
    count = (
        db.query(Notification)
        .filter(Notification.is_read.is_(False), _visible_to(current_user))
        .count()
    )
    return {"count": count}


@router.put("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.get_current_user),
) -> Any:
    db.query(Notification).filter(
        Notification.is_read.is_(False), _visible_to(current_user)
    ).update(
        {Notification.is_read: True, Notification.updated_at: datetime.utcnow()},
        synchronize_session=False,
    )
    db.commit()
    return {"success": True}


@router.put("/{notification_id}/read")
def mark_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.get_current_user),
) -> Any:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, _visible_to(current_user))
        .first()
    )
    if not notification:
        raise NotFoundError("Notification")
    notification.is_read = True
    notification.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(notification)
    return {"notification": NotificationResponse.model_validate(notification)}


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_notification(
    notification_in: NotificationCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.get_current_user),
) -> Any:
    notification = notifier.create_notification(
        db,
        type=notification_in.type,
        title=notification_in.title,
        message=notification_in.message,
        action_link=notification_in.action_link,
        metadata=notification_in.metadata,
        user_id=notification_in.user_id,
    )
    return {"notification": NotificationResponse.model_validate(notification)}
