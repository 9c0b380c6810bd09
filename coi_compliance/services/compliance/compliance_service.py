"""Loads evaluation inputs, persists verdicts and hands off to the scheduler."""

from datetime import date, datetime
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.core.config import settings
from coi_compliance.core.exceptions import NotFoundError
from coi_compliance.database.models import PropertyEntity
from coi_compliance.repositories.certificate_repository import CertificateRepository
from coi_compliance.repositories.compliance_repository import ComplianceRepository
from coi_compliance.repositories.entity_repository import EntityRepository, TrackedEntity, ref_for
from coi_compliance.repositories.notification_repository import NotificationRepository
from coi_compliance.repositories.property_repository import PropertyRepository
from coi_compliance.repositories.template_repository import TemplateRepository
from coi_compliance.schemas.compliance import (
    CertificateInput,
    ComplianceEvaluation,
    CoverageInput,
    EntityInput,
    EntityRef,
    PropertyEntityInput,
    RequirementInput,
)
from coi_compliance.schemas.enums import (
    ComplianceStatus,
    EntityComplianceStatus,
    PropertyEntityType,
)
from coi_compliance.schemas.notifications import NotificationSnapshot
from coi_compliance.services.compliance.compliance_evaluator import evaluate
from coi_compliance.services.notifications.email_templates import format_date
from coi_compliance.services.notifications.notification_writer import NotificationWriter
from coi_compliance.services.notifications.scheduler import plan_notifications
from coi_compliance.utils.clock import utc_now
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class EntityEvaluation(BaseModel):
    """What one re-evaluation changed."""

    entity: EntityRef
    previous_status: Optional[ComplianceStatus] = None
    status: ComplianceStatus
    evaluation: ComplianceEvaluation
    gaps: List[str] = []
    notifications_created: int = 0
    notifications_cancelled: int = 0


def describe_gaps(
    evaluation: ComplianceEvaluation,
    property_entities: Sequence[PropertyEntity],
) -> List[str]:
    """Plain-language gap lines for emails: expiry first, then coverages, then parties."""
    lines: List[str] = []
    if evaluation.overall_status == ComplianceStatus.EXPIRED:
        lines.append(f"Certificate expired on {format_date(evaluation.expired_on)}")
    lines.extend(evaluation.gaps)

    by_id: Dict[UUID, PropertyEntity] = {pe.id: pe for pe in property_entities}
    for row in evaluation.entity_results:
        if row.status == EntityComplianceStatus.MET:
            continue
        party = by_id.get(row.property_entity_id)
        if party is None:
            continue
        if party.entity_type == PropertyEntityType.ADDITIONAL_INSURED.value:
            lines.append(
                f"Your certificate needs to list {party.entity_name} as an Additional Insured"
            )
        else:
            address = f", {party.entity_address}" if party.entity_address else ""
            lines.append(
                f"The Certificate Holder on your COI should be listed as: {party.entity_name}{address}"
            )
    return lines


class ComplianceService:
    """Re-evaluates vendors and tenants.

    Works inside the caller's transaction and never commits; callers are
    BaseService operations that own the unit of work.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.certificate_repo = CertificateRepository(session)
        self.compliance_repo = ComplianceRepository(session)
        self.entity_repo = EntityRepository(session)
        self.notification_repo = NotificationRepository(session)
        self.property_repo = PropertyRepository(session)
        self.template_repo = TemplateRepository(session)
        self.writer = NotificationWriter(session)

    async def reevaluate_entity(
        self,
        entity: EntityRef,
        today: date,
        release_review_hold: bool = False,
        now: Optional[datetime] = None,
    ) -> EntityEvaluation:
        """Evaluate the entity's latest confirmed certificate and persist everything.

        Args:
            entity: Vendor or tenant to evaluate
            today: Calendar date (UTC) the evaluation is made for
            release_review_hold: Replace a manual ``under_review`` status
            now: Timestamp used for token issuance

        Returns:
            EntityEvaluation

        Raises:
            NotFoundError: If the vendor or tenant does not exist
        """
        row = await self.entity_repo.get(entity, for_update=True)
        if row is None:
            raise NotFoundError(f"{entity.kind.value.capitalize()} {entity.id} not found")
        return await self._reevaluate_row(row, today, release_review_hold, now or utc_now())

    async def reevaluate_template(self, template_id: UUID, today: date) -> List[EntityEvaluation]:
        rows = await self.entity_repo.list_by_template(template_id)
        return await self._reevaluate_rows(rows, today)

    async def reevaluate_property(self, property_id: UUID, today: date) -> List[EntityEvaluation]:
        rows = await self.entity_repo.list_by_property(property_id)
        return await self._reevaluate_rows(rows, today)

    async def reevaluate_all(self, today: date) -> List[EntityEvaluation]:
        evaluations: List[EntityEvaluation] = []
        async for rows in self.entity_repo.iter_batches():
            evaluations.extend(await self._reevaluate_rows(rows, today))
        return evaluations

    async def _reevaluate_rows(
        self, rows: Sequence[TrackedEntity], today: date
    ) -> List[EntityEvaluation]:
        now = utc_now()
        return [await self._reevaluate_row(row, today, False, now) for row in rows]

    async def _reevaluate_row(
        self,
        row: TrackedEntity,
        today: date,
        release_review_hold: bool,
        now: datetime,
    ) -> EntityEvaluation:
        entity = ref_for(row)
        certificate = await self.certificate_repo.find_latest_confirmed(entity)

        requirements = []
        if row.template_id is not None:
            requirements = await self.template_repo.list_requirements(row.template_id)

        property_entities: List[PropertyEntity] = []
        property_name = "your property"
        if row.property_id is not None:
            property_entities = await self.property_repo.list_entities(row.property_id)
            prop = await self.property_repo.get_by_id(row.property_id)
            if prop is not None:
                property_name = prop.name

        coverages, stated = [], []
        if certificate is not None:
            coverages = await self.certificate_repo.list_coverages(certificate.id)
            stated = await self.certificate_repo.list_entities(certificate.id)

        evaluation = evaluate(
            CertificateInput.model_validate(certificate) if certificate is not None else None,
            [RequirementInput.model_validate(r) for r in requirements],
            [CoverageInput.model_validate(c) for c in coverages],
            [EntityInput.model_validate(e) for e in stated],
            [PropertyEntityInput.model_validate(pe) for pe in property_entities],
            today=today,
            lookahead_days=settings.compliance.expiration_lookahead_days,
        )

        if certificate is not None:
            await self.compliance_repo.replace_results(
                certificate.id, evaluation.coverage_results, evaluation.entity_results
            )
            certificate.overall_status = evaluation.overall_status.value

        previous = ComplianceStatus(row.compliance_status) if row.compliance_status else None
        status = evaluation.overall_status
        if previous == ComplianceStatus.UNDER_REVIEW and not release_review_hold:
            status = ComplianceStatus.UNDER_REVIEW
        if status != previous:
            await self.entity_repo.update_compliance_status(entity, status)
            row.compliance_status = status.value

        gaps = describe_gaps(evaluation, property_entities)
        history = [
            NotificationSnapshot.model_validate(n)
            for n in await self.notification_repo.list_for_entity(entity)
        ]
        plan = plan_notifications(
            entity=entity,
            previous_status=previous,
            new_status=status,
            certificate_id=certificate.id if certificate is not None else None,
            earliest_expiration=evaluation.earliest_expiration,
            gaps=gaps,
            history=history,
            last_compliant_at=await self.certificate_repo.find_last_compliant_at(entity),
            today=today,
            lead_days=settings.compliance.expiration_warning_lead_days,
            escalation_threshold=settings.compliance.escalation_threshold,
            notifications_paused=row.notifications_paused or not row.contact_email,
            follow_up_interval_days=settings.compliance.follow_up_interval_days,
        )
        created, cancelled = await self.writer.apply(
            plan,
            row,
            property_name,
            now,
            gaps=gaps,
            is_expired=status == ComplianceStatus.EXPIRED,
        )

        LOGGER.info(
            "Entity evaluated",
            extra={
                "entity": entity.key,
                "certificate_id": str(certificate.id) if certificate is not None else None,
                "previous_status": previous.value if previous else None,
                "status": status.value,
            },
        )
        return EntityEvaluation(
            entity=entity,
            previous_status=previous,
            status=status,
            evaluation=evaluation,
            gaps=gaps,
            notifications_created=created,
            notifications_cancelled=cancelled,
        )
