from typing import AsyncIterator, List, Optional, Union
from uuid import UUID
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.database.models import Tenant, Vendor
from coi_compliance.schemas.compliance import EntityRef
from coi_compliance.schemas.enums import ComplianceStatus, EntityKind
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)

TrackedEntity = Union[Vendor, Tenant]

_MODELS = {EntityKind.VENDOR: Vendor, EntityKind.TENANT: Tenant}


def ref_for(row: TrackedEntity) -> EntityRef:
    kind = EntityKind.VENDOR if isinstance(row, Vendor) else EntityKind.TENANT
    return EntityRef(kind=kind, id=row.id)


class EntityRepository:
    """Uniform access to vendors and tenants through an EntityRef.

    Not a BaseRepository: it spans two tables that share one shape.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, entity: EntityRef, for_update: bool = False) -> Optional[TrackedEntity]:
        model = _MODELS[entity.kind]
        query = select(model).where(model.id == entity.id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def update_compliance_status(self, entity: EntityRef, status: ComplianceStatus) -> None:
        model = _MODELS[entity.kind]
        await self.session.execute(
            update(model)
            .where(model.id == entity.id)
            .values(compliance_status=status.value, updated_at=datetime.now(timezone.utc))
        )

    async def list_by_template(self, template_id: UUID) -> List[TrackedEntity]:
        return await self._list_where("template_id", template_id)

    async def list_by_property(self, property_id: UUID) -> List[TrackedEntity]:
        return await self._list_where("property_id", property_id)

    async def iter_batches(self, batch_size: int = 500) -> AsyncIterator[List[TrackedEntity]]:
        """Every vendor, then every tenant, in id-ordered batches."""
        for model in (Vendor, Tenant):
            last_id: Optional[UUID] = None
            while True:
                query = select(model).order_by(model.id).limit(batch_size)
                if last_id is not None:
                    query = query.where(model.id > last_id)
                result = await self.session.execute(query)
                rows = list(result.scalars().all())
                if rows:
                    yield rows
                if len(rows) < batch_size:
                    break
                last_id = rows[-1].id

    async def _list_where(self, column: str, value: UUID) -> List[TrackedEntity]:
        rows: List[TrackedEntity] = []
        for model in (Vendor, Tenant):
            result = await self.session.execute(
                select(model).where(getattr(model, column) == value)
            )
            rows.extend(result.scalars().all())
        return rows
