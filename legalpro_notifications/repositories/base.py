"""
Base Repository

Shared lookups and writes for repositories bound to one AsyncSession.
Each write commits immediately: gateways open a session per call, so
there is no outer unit of work to join.
"""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from legalpro_notifications.db.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic primary-key repository.

    Args:
        model: Mapped class the repository reads and writes
        db: Session owned by the caller
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    # -----------------------------
    # Lookup
    # -----------------------------
    async def get_by_id(self, id: Any) -> Optional[ModelType]:
        result = await self.db.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    # -----------------------------
    # Insert
    # -----------------------------
    async def create(self, **fields) -> ModelType:
        """Insert one row and return it with server defaults loaded."""
        row = self.model(**fields)
        self.db.add(row)
        await self.db.commit()
        await self.db.refresh(row)
        return row
