from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import Field, model_validator

from app.db.models import NotificationType
from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class NotificationSort(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"


class NotificationItem(BaseModel):
    id: str = Field(..., description="Notification ID")
    application_id: Optional[str] = Field(None, description="Related application ID")
    message: str = Field(..., description="Display text, with the burst count appended")
    notification_type: NotificationType = Field(..., description="Notification type tag")
    count: int = Field(..., description="Number of collapsed events")
    is_read: bool = Field(..., description="Whether notification has been read")
    changed_fields: Optional[Dict[str, Any]] = Field(
        None, description="Changed fields payload for field/status edits"
    )
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class MarkNotificationsReadRequest(BaseModel):
    """Either a single notification ``id`` or ``all: true``."""

    id: Optional[str] = Field(None, description="Notification ID to mark as read")
    all: bool = Field(False, description="Mark every notification as read")

    @model_validator(mode="after")
    def check_target(self):
        if not self.all and not self.id:
            raise ValueError("Provide a notification id or set all to true")
        return self


class NotificationStats(BaseModel):
    unread_count: int = Field(0, description="Count of unread notifications")
    marked_count: int = Field(0, description="Count of notifications marked as read")
