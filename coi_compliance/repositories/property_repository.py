from typing import List, Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.database.models import Property, PropertyEntity
from coi_compliance.repositories.base_repository import BaseRepository
from coi_compliance.schemas.templates import PropertyEntityPayload


class PropertyRepository(BaseRepository[Property]):
    """Repository for properties and the parties they require on certificates."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Property)

    async def list_entities(self, property_id: UUID) -> List[PropertyEntity]:
        result = await self.session.execute(
            select(PropertyEntity)
            .where(PropertyEntity.property_id == property_id)
            .order_by(PropertyEntity.entity_type, PropertyEntity.entity_name)
        )
        return list(result.scalars().all())

    async def replace_entities(
        self,
        property_id: UUID,
        entities: Sequence[PropertyEntityPayload],
    ) -> List[PropertyEntity]:
        await self.session.execute(
            delete(PropertyEntity).where(PropertyEntity.property_id == property_id)
        )
        rows = [
            PropertyEntity(
                property_id=property_id,
                entity_name=entity.entity_name.strip(),
                entity_address=entity.entity_address.strip() if entity.entity_address else None,
                entity_type=entity.entity_type.value,
            )
            for entity in entities
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return rows
