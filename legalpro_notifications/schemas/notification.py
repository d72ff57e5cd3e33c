from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class NotificationType(str, Enum):
    """Well-known notification categories. Used for icon selection only."""
    ORDER_COMPLETED = "order_completed"
    COURSE_PURCHASED = "course_purchased"
    CERTIFICATE_ISSUED = "certificate_issued"
    SERVICE_PURCHASED = "service_purchased"
    APPOINTMENT_SCHEDULED = "appointment_scheduled"
    APPOINTMENT_REMINDER = "appointment_reminder"
    LESSON_COMPLETED = "lesson_completed"
    NEWSLETTER_WELCOME = "newsletter_welcome"


# ============================================================
# Notification Record
# ============================================================

class Notification(BaseModel):
    """
    One user-facing event record.

    Accepts both the backing store's column names (``user_id``,
    ``is_read``...) and the camelCase names the browser client sends
    (``userId``, ``isRead``...).
    """

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str
    user_id: str = Field(..., validation_alias=AliasChoices("user_id", "userId"))
    type: str = NotificationType.NEWSLETTER_WELCOME.value
    title: str
    message: str = ""
    action_url: Optional[str] = Field(None, validation_alias=AliasChoices("action_url", "actionUrl"))
    is_read: bool = Field(False, validation_alias=AliasChoices("is_read", "isRead"))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        validation_alias=AliasChoices("created_at", "createdAt"),
    )

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def coerce_identifier(cls, value):
        """Identifiers are opaque; UUIDs and ints are kept as strings."""
        if value is None:
            return value
        return str(value)

    @field_validator("message", mode="before")
    @classmethod
    def default_message(cls, value):
        return value or ""

    @field_validator("created_at")
    @classmethod
    def ensure_aware(cls, value: datetime) -> datetime:
        """Naive timestamps coming back from the store are UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# ============================================================
# Request Schemas (What client sends)
# ============================================================

class NotificationCreate(BaseModel):
    """
    Schema for producing a new notification.

    Either give ``title``/``message`` directly, or leave them empty and
    pass a catalog ``type`` plus ``value`` to render its template.
    """

    user_id: str = Field(..., min_length=1, description="Owner of the notification")
    type: str = Field(
        NotificationType.NEWSLETTER_WELCOME.value,
        min_length=1,
        max_length=50,
    )
    title: Optional[str] = Field(None, max_length=255)
    message: Optional[str] = Field(None, max_length=2000)
    value: Optional[str] = Field(
        None,
        description="Template argument (order number, course name, date...)",
    )
    action_url: Optional[str] = Field(None, max_length=2048)

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "9b2f0c1e-5d7a-4a55-9d1c-1f6d3f1f0a11",
                "type": "course_purchased",
                "value": "Derecho Laboral Básico",
                "action_url": "/dashboard/courses",
            }
        }


# ============================================================
# Response Schemas (What API returns)
# ============================================================

class NotificationSnapshot(BaseModel):
    """Read-only view of a session's notification store."""
    user_id: Optional[str] = None
    notifications: List[Notification] = Field(default_factory=list)
    unread_count: int = 0
    loading: bool = False


class UnreadCount(BaseModel):
    count: int = 0


class NotificationView(Notification):
    """A notification decorated for the bell dropdown."""
    icon: str
    time_ago: str


class NotificationPanel(BaseModel):
    """Everything the bell dropdown renders in one payload."""
    badge: str = ""
    unread_count: int = 0
    loading: bool = False
    items: List[NotificationView] = Field(default_factory=list)
