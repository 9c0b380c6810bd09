"""Certificate lifecycle: upload, extraction, review confirmation."""

from datetime import date
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.core.config import settings
from coi_compliance.core.exceptions import (
    APIClientError,
    AppError,
    DuplicateWarning,
    ExtractionError,
    InvalidStatusTransitionError,
    NotFoundError,
)
from coi_compliance.database.models import Certificate
from coi_compliance.repositories.certificate_repository import CertificateRepository
from coi_compliance.repositories.entity_repository import EntityRepository
from coi_compliance.schemas.certificates import (
    EXTRACTION_FAILED_MESSAGE,
    CertificateDocumentResponse,
    CertificateResponse,
    ConfirmationOutcome,
    ExtractedCoverageResponse,
    ExtractedEntityResponse,
    ExtractionOutcome,
)
from coi_compliance.schemas.compliance import EntityRef
from coi_compliance.schemas.enums import ProcessingStatus, UploadSource
from coi_compliance.services.base_service import BaseService
from coi_compliance.services.certificates.file_checks import sha256_hex, validate_pdf
from coi_compliance.services.compliance.compliance_service import ComplianceService
from coi_compliance.services.extraction.extractor_client import ExtractorClient
from coi_compliance.services.state_machines import ensure_transition
from coi_compliance.services.storage_service import StorageService
from coi_compliance.utils.clock import utc_now, utc_today
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class CertificateService(BaseService):
    """Drives a certificate through processing -> extracted -> review_confirmed.

    Any extraction problem ends in ``failed`` with the technical reason kept
    on the row; the caller gets a plain-language outcome instead of an error.
    """

    def __init__(
        self,
        session: AsyncSession,
        storage_service: Optional[StorageService] = None,
        extractor: Optional[ExtractorClient] = None,
        compliance_service: Optional[ComplianceService] = None,
    ):
        super().__init__(session)
        self.certificate_repo = CertificateRepository(session)
        self.entity_repo = EntityRepository(session)
        self.storage_service = storage_service or StorageService()
        self.extractor = extractor or ExtractorClient()
        self.compliance_service = compliance_service or ComplianceService(session)

    async def run(self, *args, **kwargs) -> Any:
        """Route to appropriate handler based on action."""
        action = kwargs.get("action")

        if action == "upload":
            return await self.ingest(
                kwargs["entity"],
                kwargs["filename"],
                kwargs["content"],
                duplicate_confirmed=kwargs.get("duplicate_confirmed", False),
                upload_source=UploadSource.PM_UPLOAD,
                max_bytes=settings.portal.internal_max_upload_bytes,
            )
        elif action == "extract":
            return await self.extract_pending(kwargs["certificate_id"])
        elif action == "confirm":
            return await self.confirm_extracted(
                kwargs["certificate_id"],
                kwargs.get("today") or utc_today(),
                kwargs.get("release_review_hold", True),
            )
        else:
            raise AppError(f"Unknown action: {action}")

    async def upload(
        self,
        entity: EntityRef,
        filename: str,
        content: bytes,
        duplicate_confirmed: bool = False,
    ) -> CertificateResponse:
        """Store a PM-uploaded PDF and create its certificate in ``processing``.

        Raises:
            ValidationError: Bad extension, size or content
            DuplicateWarning: Same file already uploaded for this entity
            NotFoundError: Unknown vendor or tenant
        """
        certificate = await self.execute(
            action="upload",
            entity=entity,
            filename=filename,
            content=content,
            duplicate_confirmed=duplicate_confirmed,
        )
        return CertificateResponse.model_validate(certificate)

    async def run_extraction(self, certificate_id: UUID) -> ExtractionOutcome:
        """Extract a ``processing`` certificate; ends in ``extracted`` or ``failed``."""
        return await self.execute(action="extract", certificate_id=certificate_id)

    async def confirm(
        self,
        certificate_id: UUID,
        today: Optional[date] = None,
        release_review_hold: bool = True,
    ) -> ConfirmationOutcome:
        """Confirm a reviewed extraction and evaluate the entity's compliance."""
        return await self.execute(
            action="confirm",
            certificate_id=certificate_id,
            today=today,
            release_review_hold=release_review_hold,
        )

    async def get_certificate(self, certificate_id: UUID) -> Certificate:
        certificate = await self.certificate_repo.get_by_id(certificate_id)
        if certificate is None:
            raise NotFoundError(f"Certificate {certificate_id} not found")
        return certificate

    async def get_document_url(self, certificate_id: UUID) -> CertificateDocumentResponse:
        """Signed link for viewing the uploaded PDF; nothing is written."""
        certificate = await self.get_certificate(certificate_id)
        expires_in = settings.storage.signed_url_ttl
        signed = await self.storage_service.get_signed_url(
            settings.storage.bucket, certificate.file_path, expires_in=expires_in
        )
        return CertificateDocumentResponse(
            certificate_id=certificate.id,
            file_name=certificate.file_name,
            signed_url=signed["signed_url"],
            expires_in=expires_in,
        )

    async def ingest(
        self,
        entity: EntityRef,
        filename: str,
        content: bytes,
        duplicate_confirmed: bool,
        upload_source: UploadSource,
        max_bytes: int,
    ) -> Certificate:
        """Validate, dedupe, store and record an upload. Does not commit."""
        validate_pdf(filename, content, max_bytes)

        if await self.entity_repo.get(entity) is None:
            raise NotFoundError(f"{entity.kind.value.capitalize()} {entity.id} not found")

        file_hash = sha256_hex(content)
        earlier = await self.certificate_repo.find_by_hash(entity, file_hash)
        if earlier is not None and not duplicate_confirmed:
            raise DuplicateWarning(
                f"This file was already uploaded on {earlier.uploaded_at:%b %d, %Y}",
                certificate_id=earlier.id,
                uploaded_at=earlier.uploaded_at,
            )

        path = f"{entity.kind.value}s/{entity.id}/{uuid4()}.pdf"
        await self.storage_service.upload_file(content, bucket=settings.storage.bucket, path=path)

        certificate = await self.certificate_repo.create_certificate(
            entity,
            file_path=path,
            file_hash=file_hash,
            upload_source=upload_source,
            file_name=filename,
        )
        LOGGER.info(
            "Certificate uploaded",
            extra={
                "certificate_id": str(certificate.id),
                "entity": entity.key,
                "upload_source": upload_source.value,
                "duplicate_confirmed": earlier is not None,
            },
        )
        return certificate

    async def extract_pending(self, certificate_id: UUID) -> ExtractionOutcome:
        """Extraction step without commit; the portal runs it with confirmation."""
        certificate = await self.get_certificate(certificate_id)
        ensure_transition(certificate.processing_status, ProcessingStatus.EXTRACTED)

        try:
            document = await self.storage_service.download_file(
                settings.storage.bucket, certificate.file_path
            )
            result = await self.extractor.extract(document, certificate.file_name or "certificate.pdf")
        except (APIClientError, ExtractionError) as e:
            LOGGER.warning(
                "Certificate extraction failed",
                extra={"certificate_id": str(certificate_id), "error": e.message},
            )
            return await self._fail(certificate, e.message)

        if not result.success:
            return await self._fail(certificate, result.error or "Extractor reported failure")

        await self.certificate_repo.store_extraction(certificate.id, result.coverages, result.entities)
        moved = await self.certificate_repo.transition_status(
            certificate.id, ProcessingStatus.PROCESSING, ProcessingStatus.EXTRACTED
        )
        if not moved:
            raise InvalidStatusTransitionError(
                f"Certificate {certificate_id} left processing during extraction"
            )

        LOGGER.info(
            "Certificate extracted",
            extra={
                "certificate_id": str(certificate_id),
                "coverages": len(result.coverages),
                "entities": len(result.entities),
                "confidence": result.confidence,
            },
        )
        return ExtractionOutcome(
            certificate_id=certificate.id,
            status=ProcessingStatus.EXTRACTED,
            confidence=result.confidence,
            coverages=[
                ExtractedCoverageResponse.model_validate(c)
                for c in await self.certificate_repo.list_coverages(certificate.id)
            ],
            entities=[
                ExtractedEntityResponse.model_validate(e)
                for e in await self.certificate_repo.list_entities(certificate.id)
            ],
        )

    async def _fail(self, certificate: Certificate, reason: str) -> ExtractionOutcome:
        await self.certificate_repo.transition_status(
            certificate.id,
            ProcessingStatus.PROCESSING,
            ProcessingStatus.FAILED,
            failure_reason=reason[:2000],
        )
        return ExtractionOutcome(
            certificate_id=certificate.id,
            status=ProcessingStatus.FAILED,
            message=EXTRACTION_FAILED_MESSAGE,
        )

    async def confirm_extracted(
        self,
        certificate_id: UUID,
        today: date,
        release_review_hold: bool,
    ) -> ConfirmationOutcome:
        certificate = await self.get_certificate(certificate_id)
        ensure_transition(certificate.processing_status, ProcessingStatus.REVIEW_CONFIRMED)

        moved = await self.certificate_repo.transition_status(
            certificate.id,
            ProcessingStatus.EXTRACTED,
            ProcessingStatus.REVIEW_CONFIRMED,
            reviewed_at=utc_now(),
        )
        if not moved:
            raise InvalidStatusTransitionError(f"Certificate {certificate_id} is no longer extracted")

        entity = EntityRef.from_ids(certificate.vendor_id, certificate.tenant_id)
        outcome = await self.compliance_service.reevaluate_entity(
            entity, today, release_review_hold=release_review_hold
        )
        return ConfirmationOutcome(
            certificate_id=certificate.id,
            processing_status=ProcessingStatus.REVIEW_CONFIRMED,
            compliance_status=outcome.status,
            gaps=outcome.gaps,
        )
