"""
Notification schemas.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    """A notification as returned to its recipient."""
    id: UUID
    user_id: UUID
    type: str
    title: str
    message: str
    entity_id: Optional[str] = None
    link: Optional[str] = None
    image: Optional[str] = None
    image_alt: Optional[str] = None
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    count: int = Field(..., description="Number of notifications in this page")
    unreadCount: int = Field(..., description="Unread notifications across all pages")


class NotificationCreate(BaseModel):
    """Request to create a notification. Fields are checked in the handler for clearer errors."""
    user_id: Optional[UUID] = Field(None, description="Recipient; defaults to the caller")
    type: Optional[str] = None
    title: Optional[str] = Field(None, max_length=255)
    message: Optional[str] = None
    image: Optional[str] = None
    image_alt: Optional[str] = Field(None, max_length=255)
    link: Optional[str] = Field(None, max_length=500)


class NotificationCreateResponse(BaseModel):
    success: bool
    notification: NotificationResponse


class NotificationUpdate(BaseModel):
    read: bool = True


class NotificationsReadAllResponse(BaseModel):
    success: bool
    updated: int
