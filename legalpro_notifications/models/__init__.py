from .base import BaseModel
from .notification import Notification

__all__ = ["BaseModel", "Notification"]
