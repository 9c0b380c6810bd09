"""Requirement template management with cascade re-evaluation."""

from datetime import date
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.core.exceptions import (
    AppError,
    CascadeConfirmationRequired,
    NotFoundError,
    ValidationError,
)
from coi_compliance.database.models import RequirementTemplate
from coi_compliance.repositories.template_repository import TemplateRepository
from coi_compliance.schemas.templates import (
    TemplateResponse,
    TemplateUpdatePayload,
    TemplateUpdateResult,
)
from coi_compliance.services.base_service import BaseService
from coi_compliance.services.compliance.compliance_service import ComplianceService
from coi_compliance.utils.clock import utc_today
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)

SYSTEM_DEFAULT_MESSAGE = "System default templates are read-only. Duplicate it to customize."


class TemplateService(BaseService):
    """Edits, copies and removes requirement templates."""

    def __init__(
        self,
        session: AsyncSession,
        compliance_service: Optional[ComplianceService] = None,
    ):
        super().__init__(session)
        self.template_repo = TemplateRepository(session)
        self.compliance_service = compliance_service or ComplianceService(session)

    async def run(self, *args, **kwargs) -> Any:
        """Route to appropriate handler based on action."""
        action = kwargs.get("action")

        if action == "update":
            return await self._update_logic(
                kwargs["template_id"], kwargs["payload"], kwargs["confirm_cascade"], kwargs["today"]
            )
        elif action == "duplicate":
            return await self._duplicate_logic(kwargs["template_id"])
        elif action == "delete":
            return await self._delete_logic(kwargs["template_id"])
        else:
            raise AppError(f"Unknown action: {action}")

    async def update_template(
        self,
        template_id: UUID,
        payload: TemplateUpdatePayload,
        confirm_cascade: bool = False,
        today: Optional[date] = None,
    ) -> TemplateUpdateResult:
        """Replace a template's fields and requirement lines.

        Every vendor and tenant assigned to the template is re-evaluated in
        the same transaction.

        Raises:
            NotFoundError: Unknown template
            ValidationError: System default template
            CascadeConfirmationRequired: Template is in use and the edit was not confirmed
        """
        return await self.execute(
            action="update",
            template_id=template_id,
            payload=payload,
            confirm_cascade=confirm_cascade,
            today=today or utc_today(),
        )

    async def get_usage_count(self, template_id: UUID) -> int:
        await self._get_template(template_id)
        return await self.template_repo.get_usage_count(template_id)

    async def duplicate_template(self, template_id: UUID) -> TemplateResponse:
        return await self.execute(action="duplicate", template_id=template_id)

    async def delete_template(self, template_id: UUID) -> None:
        await self.execute(action="delete", template_id=template_id)

    async def _get_template(self, template_id: UUID) -> RequirementTemplate:
        template = await self.template_repo.get_with_requirements(template_id)
        if template is None:
            raise NotFoundError(f"Template {template_id} not found")
        return template

    async def _update_logic(
        self,
        template_id: UUID,
        payload: TemplateUpdatePayload,
        confirm_cascade: bool,
        today: date,
    ) -> TemplateUpdateResult:
        template = await self._get_template(template_id)
        if template.is_system_default:
            raise ValidationError(SYSTEM_DEFAULT_MESSAGE)

        affected = await self.template_repo.get_usage_count(template_id)
        if affected and not confirm_cascade:
            raise CascadeConfirmationRequired(
                f"This template is used by {affected} vendors or tenants. "
                "Confirm to re-evaluate their compliance.",
                affected_count=affected,
            )

        await self.template_repo.update(
            template_id,
            name=payload.name,
            description=payload.description,
            risk_level=payload.risk_level,
        )
        await self.template_repo.replace_requirements(template_id, payload.requirements)

        evaluations = await self.compliance_service.reevaluate_template(template_id, today)
        LOGGER.info(
            "Template updated",
            extra={
                "template_id": str(template_id),
                "requirements": len(payload.requirements),
                "reevaluated": len(evaluations),
            },
        )

        # Fresh load so the response carries the replaced lines
        self.session.expire(template)
        template = await self._get_template(template_id)
        return TemplateUpdateResult(
            template=TemplateResponse.model_validate(template),
            reevaluated=len(evaluations),
        )

    async def _duplicate_logic(self, template_id: UUID) -> TemplateResponse:
        source = await self._get_template(template_id)
        copy = await self.template_repo.duplicate(source, f"{source.name} (Custom)")
        self.session.expire(copy)
        return TemplateResponse.model_validate(await self._get_template(copy.id))

    async def _delete_logic(self, template_id: UUID) -> None:
        template = await self._get_template(template_id)
        if template.is_system_default:
            raise ValidationError("System default templates cannot be deleted")

        in_use = await self.template_repo.get_usage_count(template_id)
        if in_use:
            raise ValidationError(
                f"This template is assigned to {in_use} vendors or tenants and cannot be deleted"
            )
        await self.template_repo.delete(template_id)
        LOGGER.info(f"Deleted template {template_id}")
