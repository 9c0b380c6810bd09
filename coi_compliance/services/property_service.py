"""Property entity management."""

from datetime import date
from typing import Any, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.core.exceptions import AppError, NotFoundError
from coi_compliance.repositories.property_repository import PropertyRepository
from coi_compliance.schemas.templates import PropertyEntityPayload, PropertyEntityResponse
from coi_compliance.services.base_service import BaseService
from coi_compliance.services.compliance.compliance_service import ComplianceService
from coi_compliance.utils.clock import utc_today
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class PropertyService(BaseService):
    """Maintains the additional insureds and certificate holder of a property."""

    def __init__(
        self,
        session: AsyncSession,
        compliance_service: Optional[ComplianceService] = None,
    ):
        super().__init__(session)
        self.property_repo = PropertyRepository(session)
        self.compliance_service = compliance_service or ComplianceService(session)

    async def run(self, *args, **kwargs) -> Any:
        action = kwargs.get("action")

        if action == "replace_entities":
            return await self._replace_entities_logic(
                kwargs["property_id"], kwargs["entities"], kwargs["today"]
            )
        raise AppError(f"Unknown action: {action}")

    async def replace_property_entities(
        self,
        property_id: UUID,
        entities: Sequence[PropertyEntityPayload],
        today: Optional[date] = None,
    ) -> List[PropertyEntityResponse]:
        """Replace the property's entity list and re-evaluate everyone at the property."""
        return await self.execute(
            action="replace_entities",
            property_id=property_id,
            entities=entities,
            today=today or utc_today(),
        )

    async def _replace_entities_logic(
        self,
        property_id: UUID,
        entities: Sequence[PropertyEntityPayload],
        today: date,
    ) -> List[PropertyEntityResponse]:
        if await self.property_repo.get_by_id(property_id) is None:
            raise NotFoundError(f"Property {property_id} not found")

        rows = await self.property_repo.replace_entities(property_id, entities)
        evaluations = await self.compliance_service.reevaluate_property(property_id, today)
        LOGGER.info(
            "Property entities replaced",
            extra={
                "property_id": str(property_id),
                "entities": len(rows),
                "reevaluated": len(evaluations),
            },
        )
        return [PropertyEntityResponse.model_validate(row) for row in rows]
