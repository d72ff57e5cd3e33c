from sqlalchemy import Column, String, Boolean, Text, Index
from .base import BaseModel


class Notification(BaseModel):
    __tablename__ = "notifications"

    user_id = Column(String(64), nullable=False, index=True)
    type = Column(String(50), nullable=False, default="newsletter_welcome")  # order_completed, course_purchased, ...
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False, default="")
    action_url = Column(String(2048), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_notifications_user_unread", "user_id", "is_read"),
    )
