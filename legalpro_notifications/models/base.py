"""
Base Model Module

Base class for SQLAlchemy models with common fields:
- id: Primary key (opaque string, a UUID4 by default)
- created_at: Timestamp when record was created
- updated_at: Timestamp when record was last updated
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, func

from legalpro_notifications.db.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseModel(Base):
    """
    Abstract base model class that provides common fields for all models.

    Identifiers are stored as strings: the backing store may be Supabase
    (UUID text) or anything else that hands out opaque ids.
    """

    __abstract__ = True

    id = Column(
        String(64),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        nullable=False,
        index=True
    )

    # Set in Python as well so ordering works on every dialect
    created_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False
    )

    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
        nullable=False
    )

    def __repr__(self):
        return f"<{self.__class__.__name__}(id={self.id})>"
