"""Certificate API schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coi_compliance.schemas.enums import (
    ComplianceStatus,
    CoverageType,
    LimitType,
    ProcessingStatus,
    PropertyEntityType,
    UploadSource,
)

EXTRACTION_FAILED_MESSAGE = (
    "We couldn't read this certificate. It may be a scanned image or corrupted file. "
    "Please upload a clearer PDF or enter the details manually."
)


class CertificateResponse(BaseModel):
    """Certificate metadata."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    vendor_id: Optional[UUID] = None
    tenant_id: Optional[UUID] = None
    file_name: Optional[str] = None
    file_hash: str
    upload_source: UploadSource
    processing_status: ProcessingStatus
    uploaded_at: datetime
    reviewed_at: Optional[datetime] = None
    overall_status: Optional[ComplianceStatus] = None


class ExtractedCoverageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    coverage_type: CoverageType
    carrier_name: Optional[str] = None
    policy_number: Optional[str] = None
    limit_amount: Optional[Decimal] = None
    limit_type: Optional[LimitType] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    additional_insured_listed: Optional[bool] = None
    waiver_of_subrogation: Optional[bool] = None


class ExtractedEntityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    entity_name: str
    entity_address: Optional[str] = None
    entity_type: PropertyEntityType


class ExtractionOutcome(BaseModel):
    """What the caller of an extraction learns.

    Failures carry a plain-language ``message``; the technical reason stays
    on the certificate row.
    """

    certificate_id: UUID
    status: ProcessingStatus
    message: Optional[str] = None
    confidence: Optional[float] = None
    coverages: List[ExtractedCoverageResponse] = Field(default_factory=list)
    entities: List[ExtractedEntityResponse] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == ProcessingStatus.EXTRACTED


class ConfirmationOutcome(BaseModel):
    """Result of confirming a reviewed certificate."""

    certificate_id: UUID
    processing_status: ProcessingStatus
    compliance_status: ComplianceStatus
    gaps: List[str] = Field(default_factory=list)


class CertificateDocumentResponse(BaseModel):
    """Short-lived link to the stored certificate PDF."""

    certificate_id: UUID
    file_name: Optional[str] = None
    signed_url: str
    expires_in: int
