from typing import List, Optional, Sequence
from uuid import UUID
from datetime import datetime, timezone

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.database.models import Certificate, ExtractedCoverage, ExtractedEntity
from coi_compliance.repositories.base_repository import BaseRepository
from coi_compliance.schemas.compliance import EntityRef
from coi_compliance.schemas.enums import ComplianceStatus, ProcessingStatus, UploadSource
from coi_compliance.schemas.extraction import ExtractedCoverageData, ExtractedEntityData
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class CertificateRepository(BaseRepository[Certificate]):
    """Repository for certificates and the rows extracted from them."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Certificate)

    def _owned_by(self, entity: EntityRef):
        return getattr(Certificate, entity.column) == entity.id

    async def create_certificate(
        self,
        entity: EntityRef,
        file_path: str,
        file_hash: str,
        upload_source: UploadSource,
        file_name: Optional[str] = None,
    ) -> Certificate:
        """Create a certificate in ``processing``.

        Args:
            entity: Vendor or tenant the certificate belongs to
            file_path: Storage path of the uploaded PDF
            file_hash: SHA-256 hex digest of the file bytes
            upload_source: pm_upload or portal_upload
            file_name: Original file name

        Returns:
            Created Certificate record
        """
        return await self.create(
            **{entity.column: entity.id},
            file_path=file_path,
            file_name=file_name,
            file_hash=file_hash,
            upload_source=upload_source.value,
            processing_status=ProcessingStatus.PROCESSING.value,
            uploaded_at=datetime.now(timezone.utc),
        )

    async def find_by_hash(self, entity: EntityRef, file_hash: str) -> Optional[Certificate]:
        """Most recent certificate of this entity with the same file hash."""
        result = await self.session.execute(
            select(Certificate)
            .where(self._owned_by(entity), Certificate.file_hash == file_hash)
            .order_by(Certificate.uploaded_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_latest_confirmed(self, entity: EntityRef) -> Optional[Certificate]:
        """Latest review-confirmed certificate; the only one compliance is judged on."""
        result = await self.session.execute(
            select(Certificate)
            .where(
                self._owned_by(entity),
                Certificate.processing_status == ProcessingStatus.REVIEW_CONFIRMED.value,
            )
            .order_by(Certificate.uploaded_at.desc(), Certificate.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_last_compliant_at(self, entity: EntityRef) -> Optional[datetime]:
        """When the entity last had a certificate confirmed as compliant."""
        result = await self.session.execute(
            select(func.max(Certificate.reviewed_at)).where(
                self._owned_by(entity),
                Certificate.overall_status == ComplianceStatus.COMPLIANT.value,
            )
        )
        return result.scalar_one_or_none()

    async def transition_status(
        self,
        certificate_id: UUID,
        expected: ProcessingStatus,
        target: ProcessingStatus,
        **fields,
    ) -> bool:
        """Compare-and-set the processing status.

        Returns:
            True if this call made the move, False if the row was no longer
            in ``expected``
        """
        result = await self.session.execute(
            update(Certificate)
            .where(
                Certificate.id == certificate_id,
                Certificate.processing_status == expected.value,
            )
            .values(processing_status=target.value, **fields)
            .execution_options(synchronize_session="fetch")
        )
        moved = result.rowcount == 1
        if not moved:
            LOGGER.warning(
                "Certificate status compare-and-set lost",
                extra={
                    "certificate_id": str(certificate_id),
                    "expected": expected.value,
                    "target": target.value,
                },
            )
        return moved

    async def store_extraction(
        self,
        certificate_id: UUID,
        coverages: Sequence[ExtractedCoverageData],
        entities: Sequence[ExtractedEntityData],
    ) -> None:
        """Write extracted rows; flushed with the caller's status flip."""
        for position, coverage in enumerate(coverages):
            self.session.add(
                ExtractedCoverage(
                    certificate_id=certificate_id,
                    position=position,
                    coverage_type=coverage.coverage_type.value,
                    carrier_name=coverage.carrier_name,
                    policy_number=coverage.policy_number,
                    limit_amount=coverage.limit_amount,
                    limit_type=coverage.limit_type.value if coverage.limit_type else None,
                    effective_date=coverage.effective_date,
                    expiration_date=coverage.expiration_date,
                    additional_insured_listed=coverage.additional_insured_listed,
                    waiver_of_subrogation=coverage.waiver_of_subrogation,
                )
            )
        for position, entity in enumerate(entities):
            self.session.add(
                ExtractedEntity(
                    certificate_id=certificate_id,
                    position=position,
                    entity_name=entity.entity_name,
                    entity_address=entity.entity_address,
                    entity_type=entity.entity_type.value,
                )
            )
        await self.session.flush()
        LOGGER.info(
            f"Stored {len(coverages)} coverages and {len(entities)} entities "
            f"for certificate {certificate_id}"
        )

    async def list_coverages(self, certificate_id: UUID) -> List[ExtractedCoverage]:
        result = await self.session.execute(
            select(ExtractedCoverage)
            .where(ExtractedCoverage.certificate_id == certificate_id)
            .order_by(ExtractedCoverage.position)
        )
        return list(result.scalars().all())

    async def list_entities(self, certificate_id: UUID) -> List[ExtractedEntity]:
        result = await self.session.execute(
            select(ExtractedEntity)
            .where(ExtractedEntity.certificate_id == certificate_id)
            .order_by(ExtractedEntity.position)
        )
        return list(result.scalars().all())
