from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coi_compliance.database.models import (
    RequirementTemplate,
    TemplateCoverageRequirement,
    Tenant,
    Vendor,
)
from coi_compliance.repositories.base_repository import BaseRepository
from coi_compliance.schemas.templates import CoverageRequirementPayload
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class TemplateRepository(BaseRepository[RequirementTemplate]):
    """Repository for requirement templates and their coverage lines."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, RequirementTemplate)

    async def get_with_requirements(self, template_id: UUID) -> Optional[RequirementTemplate]:
        result = await self.session.execute(
            select(RequirementTemplate)
            .options(selectinload(RequirementTemplate.requirements))
            .where(RequirementTemplate.id == template_id)
        )
        return result.scalar_one_or_none()

    async def list_requirements(self, template_id: UUID) -> List[TemplateCoverageRequirement]:
        """Requirement lines in their stored order."""
        result = await self.session.execute(
            select(TemplateCoverageRequirement)
            .where(TemplateCoverageRequirement.template_id == template_id)
            .order_by(TemplateCoverageRequirement.position, TemplateCoverageRequirement.id)
        )
        return list(result.scalars().all())

    async def replace_requirements(
        self,
        template_id: UUID,
        requirements: Sequence[CoverageRequirementPayload],
    ) -> None:
        """Swap the template's lines wholesale (old results cascade away)."""
        await self.session.execute(
            delete(TemplateCoverageRequirement).where(
                TemplateCoverageRequirement.template_id == template_id
            )
        )
        for position, requirement in enumerate(requirements):
            self.session.add(
                TemplateCoverageRequirement(
                    template_id=template_id,
                    position=position,
                    coverage_type=requirement.coverage_type.value,
                    is_required=requirement.is_required,
                    minimum_limit=requirement.minimum_limit,
                    limit_type=requirement.limit_type.value if requirement.limit_type else None,
                    requires_additional_insured=requirement.requires_additional_insured,
                    requires_waiver_of_subrogation=requirement.requires_waiver_of_subrogation,
                )
            )
        await self.session.flush()

    async def get_usage_count(self, template_id: UUID) -> int:
        """Number of vendors and tenants assigned to the template."""
        vendors = await self.session.execute(
            select(func.count()).select_from(Vendor).where(Vendor.template_id == template_id)
        )
        tenants = await self.session.execute(
            select(func.count()).select_from(Tenant).where(Tenant.template_id == template_id)
        )
        return vendors.scalar_one() + tenants.scalar_one()

    async def duplicate(self, source: RequirementTemplate, name: str) -> RequirementTemplate:
        """Copy a template and its lines under a new, editable name."""
        copy = RequirementTemplate(
            name=name,
            description=source.description,
            category=source.category,
            risk_level=source.risk_level,
            is_system_default=False,
        )
        self.session.add(copy)
        await self.session.flush()

        for requirement in await self.list_requirements(source.id):
            self.session.add(
                TemplateCoverageRequirement(
                    template_id=copy.id,
                    position=requirement.position,
                    coverage_type=requirement.coverage_type,
                    is_required=requirement.is_required,
                    minimum_limit=requirement.minimum_limit,
                    limit_type=requirement.limit_type,
                    requires_additional_insured=requirement.requires_additional_insured,
                    requires_waiver_of_subrogation=requirement.requires_waiver_of_subrogation,
                )
            )
        await self.session.flush()
        LOGGER.info(f"Duplicated template {source.id} as {copy.id}")
        return copy
