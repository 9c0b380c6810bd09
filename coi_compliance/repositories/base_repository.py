from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Generic, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.utils.logging import get_logger

ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Row access for one table.

    Writes are flushed, never committed: the calling service owns the
    transaction, so a certificate, its extracted rows and its notices land
    together or not at all.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        self.session = session
        self.model = model
        self.logger = LOGGER

    @asynccontextmanager
    async def _logged(self, action: str, record_id: Optional[UUID] = None) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error {action} {self.model.__name__}",
                exc_info=True,
                extra={"record_id": str(record_id) if record_id else None, "error": str(e)},
            )
            raise

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        async with self._logged("loading", id):
            result = await self.session.execute(select(self.model).where(self.model.id == id))
            return result.scalar_one_or_none()

    async def create(self, **fields) -> ModelType:
        """Add a row and flush so its id and server defaults are populated."""
        async with self._logged("creating"):
            instance = self.model(**fields)
            self.session.add(instance)
            await self.session.flush()
            return instance

    async def update(self, id: UUID, **fields) -> Optional[ModelType]:
        """Set known columns on an existing row; None when the id is unknown."""
        instance = await self.get_by_id(id)
        if instance is None:
            return None
        async with self._logged("updating", id):
            for key, value in fields.items():
                if hasattr(instance, key):
                    setattr(instance, key, value)
            if hasattr(instance, "updated_at"):
                instance.updated_at = datetime.now(timezone.utc)
            await self.session.flush()
            return instance

    async def delete(self, id: UUID) -> bool:
        instance = await self.get_by_id(id)
        if instance is None:
            return False
        async with self._logged("deleting", id):
            await self.session.delete(instance)
            await self.session.flush()
            return True
