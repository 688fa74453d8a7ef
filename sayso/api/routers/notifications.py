"""
Notification Endpoints
GET    /api/notifications            - List the caller's notifications
GET    /api/notifications/business   - List notifications for business accounts
POST   /api/notifications            - Create a notification
POST   /api/notifications/read-all   - Mark every notification read
PATCH  /api/notifications/{id}       - Mark one notification read/unread
DELETE /api/notifications/{id}       - Delete one notification
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..dependencies import get_current_user, get_db, require_business_owner
from ..errors import InvalidRequestError, PermissionDeniedError, ResourceNotFoundError
from ..schemas.notifications import (
    NotificationCreate,
    NotificationCreateResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationsReadAllResponse,
    NotificationUpdate,
)
from ..services.notifications import NOTIFICATION_TYPES, create_notification
from ...db.models import Notification, Profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


def _list_notifications(
    db: Session,
    user: Profile,
    unread: bool,
    notification_type: Optional[str],
    limit: int,
    offset: int,
) -> NotificationListResponse:
    query = db.query(Notification).filter(Notification.user_id == user.user_id)
    if unread:
        query = query.filter(Notification.read == False)  # noqa: E712
    if notification_type and notification_type in NOTIFICATION_TYPES:
        query = query.filter(Notification.type == notification_type)

    rows = (
        query.order_by(desc(Notification.created_at), desc(Notification.id))
        .offset(offset)
        .limit(limit)
        .all()
    )

    unread_count = (
        db.query(Notification)
        .filter(Notification.user_id == user.user_id, Notification.read == False)  # noqa: E712
        .count()
    )

    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in rows],
        count=len(rows),
        unreadCount=unread_count,
    )


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread: bool = Query(False, description="Only unread notifications"),
    type: Optional[str] = Query(None, description="Filter by notification type"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationListResponse:
    """List the caller's notifications, newest first."""
    if current_user.account_role == "business_owner":
        raise PermissionDeniedError("Business account should use /api/notifications/business")

    return _list_notifications(db, current_user, unread, type, limit, offset)


@router.get("/business", response_model=NotificationListResponse)
async def list_business_notifications(
    unread: bool = Query(False),
    type: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: Profile = Depends(require_business_owner),
    db: Session = Depends(get_db),
) -> NotificationListResponse:
    """Notification feed for business-owner accounts."""
    return _list_notifications(db, current_user, unread, type, limit, offset)


@router.post("", response_model=NotificationCreateResponse, status_code=status.HTTP_201_CREATED)
async def post_notification(
    request: NotificationCreate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationCreateResponse:
    """
    Create a notification.

    Users may notify themselves; notifying someone else requires an admin.
    """
    if not request.type or not request.title or not request.message:
        raise InvalidRequestError("Missing required fields: type, title, message")

    if request.type not in NOTIFICATION_TYPES:
        raise InvalidRequestError(
            f"Invalid notification type: {request.type}",
            details={"allowed": sorted(NOTIFICATION_TYPES)},
        )

    recipient_id = request.user_id or current_user.user_id
    if recipient_id != current_user.user_id:
        if not current_user.is_admin:
            raise PermissionDeniedError("You can only create notifications for yourself")
        if db.query(Profile).filter(Profile.user_id == recipient_id).first() is None:
            raise ResourceNotFoundError("User", recipient_id, message="Recipient not found")

    notification_id = create_notification(
        db,
        user_id=recipient_id,
        notification_type=request.type,
        title=request.title,
        message=request.message,
        link=request.link,
        image=request.image,
        image_alt=request.image_alt,
    )
    if notification_id is None:
        raise RuntimeError("Failed to create notification")

    notification = db.query(Notification).filter(Notification.id == notification_id).one()
    return NotificationCreateResponse(
        success=True, notification=NotificationResponse.model_validate(notification)
    )


@router.post("/read-all", response_model=NotificationsReadAllResponse)
async def mark_all_read(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationsReadAllResponse:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == current_user.user_id, Notification.read == False)  # noqa: E712
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.commit()
    return NotificationsReadAllResponse(success=True, updated=updated)


def _own_notification(db: Session, notification_id: UUID, user: Profile) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user.user_id)
        .first()
    )
    if notification is None:
        raise ResourceNotFoundError("Notification", notification_id)
    return notification


@router.patch("/{notification_id}", response_model=NotificationResponse)
async def update_notification(
    notification_id: UUID,
    request: NotificationUpdate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationResponse:
    notification = _own_notification(db, notification_id, current_user)
    notification.read = request.read
    db.commit()
    db.refresh(notification)
    return NotificationResponse.model_validate(notification)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = _own_notification(db, notification_id, current_user)
    db.delete(notification)
    db.commit()
    return {"success": True}
