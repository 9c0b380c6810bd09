from typing import List, Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.database.models import ComplianceResult, EntityComplianceResult
from coi_compliance.repositories.base_repository import BaseRepository
from coi_compliance.schemas.compliance import CoverageResultRow, EntityResultRow
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ComplianceRepository(BaseRepository[ComplianceResult]):
    """Repository for per-line compliance verdicts."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ComplianceResult)

    async def replace_results(
        self,
        certificate_id: UUID,
        coverage_results: Sequence[CoverageResultRow],
        entity_results: Sequence[EntityResultRow],
    ) -> None:
        """Delete then insert the certificate's verdicts.

        Runs inside the caller's transaction, so readers see either the old
        set or the new one.
        """
        await self.session.execute(
            delete(ComplianceResult).where(ComplianceResult.certificate_id == certificate_id)
        )
        await self.session.execute(
            delete(EntityComplianceResult).where(
                EntityComplianceResult.certificate_id == certificate_id
            )
        )

        for row in coverage_results:
            self.session.add(
                ComplianceResult(
                    certificate_id=certificate_id,
                    coverage_requirement_id=row.coverage_requirement_id,
                    extracted_coverage_id=row.extracted_coverage_id,
                    status=row.status.value,
                    gap_description=row.gap_description,
                    additional_insured_met=row.additional_insured_met,
                    waiver_of_subrogation_met=row.waiver_of_subrogation_met,
                )
            )
        for row in entity_results:
            self.session.add(
                EntityComplianceResult(
                    certificate_id=certificate_id,
                    property_entity_id=row.property_entity_id,
                    extracted_entity_id=row.extracted_entity_id,
                    status=row.status.value,
                    match_details=row.match_details,
                )
            )
        await self.session.flush()
        LOGGER.info(
            f"Replaced compliance results for certificate {certificate_id}: "
            f"{len(coverage_results)} coverage, {len(entity_results)} entity"
        )

    async def list_results(self, certificate_id: UUID) -> List[ComplianceResult]:
        result = await self.session.execute(
            select(ComplianceResult).where(ComplianceResult.certificate_id == certificate_id)
        )
        return list(result.scalars().all())
