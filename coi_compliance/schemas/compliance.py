"""Typed records consumed and produced by the compliance evaluator.

These are plain value objects: the evaluator never sees ORM rows, so the
same inputs always produce the same outputs regardless of storage.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coi_compliance.schemas.enums import (
    ComplianceResultStatus,
    ComplianceStatus,
    CoverageType,
    EntityComplianceStatus,
    EntityKind,
    LimitType,
    PropertyEntityType,
)


class EntityRef(BaseModel):
    """Reference to the vendor or tenant a record belongs to."""
    model_config = ConfigDict(frozen=True)

    kind: EntityKind
    id: UUID

    @property
    def key(self) -> str:
        return f"{self.kind.value}:{self.id}"

    @property
    def column(self) -> str:
        """Name of the foreign key column holding this entity's id."""
        return "vendor_id" if self.kind == EntityKind.VENDOR else "tenant_id"

    @classmethod
    def from_ids(cls, vendor_id: Optional[UUID], tenant_id: Optional[UUID]) -> "EntityRef":
        """Build a reference from a vendor_id/tenant_id pair (exactly one set)."""
        if (vendor_id is None) == (tenant_id is None):
            raise ValueError("exactly one of vendor_id or tenant_id must be set")
        if vendor_id is not None:
            return cls(kind=EntityKind.VENDOR, id=vendor_id)
        return cls(kind=EntityKind.TENANT, id=tenant_id)


class RequirementInput(BaseModel):
    """One coverage line of a requirement template."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    coverage_type: CoverageType
    is_required: bool = True
    minimum_limit: Optional[Decimal] = None
    limit_type: Optional[LimitType] = None
    requires_additional_insured: bool = False
    requires_waiver_of_subrogation: bool = False


class CoverageInput(BaseModel):
    """One coverage line extracted from a certificate."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: Optional[UUID] = None
    coverage_type: CoverageType
    limit_amount: Optional[Decimal] = None
    limit_type: Optional[LimitType] = None
    expiration_date: Optional[date] = None
    additional_insured_listed: Optional[bool] = None
    waiver_of_subrogation: Optional[bool] = None


class EntityInput(BaseModel):
    """A named party stated on a certificate."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: Optional[UUID] = None
    entity_name: str
    entity_address: Optional[str] = None
    entity_type: PropertyEntityType


class PropertyEntityInput(BaseModel):
    """A party the property requires on every certificate."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    entity_name: str
    entity_address: Optional[str] = None
    entity_type: PropertyEntityType


class CertificateInput(BaseModel):
    """The certificate being evaluated."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    uploaded_at: datetime


class CoverageMatch(BaseModel):
    """Outcome of matching one requirement against the extracted coverages."""

    status: ComplianceResultStatus
    gap_description: Optional[str] = None
    extracted_coverage_id: Optional[UUID] = None
    # None when the sub-check is not required or no coverage matched
    additional_insured_met: Optional[bool] = None
    waiver_of_subrogation_met: Optional[bool] = None

    @property
    def sub_checks_passed(self) -> bool:
        return self.additional_insured_met is not False and self.waiver_of_subrogation_met is not False


class CoverageResultRow(CoverageMatch):
    """Persistable ComplianceResult row."""

    coverage_requirement_id: UUID
    is_required: bool = True

    @property
    def blocks_compliance(self) -> bool:
        if not self.is_required:
            return False
        if self.status in (ComplianceResultStatus.MISSING, ComplianceResultStatus.NOT_MET):
            return True
        return not self.sub_checks_passed


class EntityResultRow(BaseModel):
    """Persistable EntityComplianceResult row."""

    property_entity_id: UUID
    extracted_entity_id: Optional[UUID] = None
    status: EntityComplianceStatus
    match_details: Optional[str] = None


class ComplianceEvaluation(BaseModel):
    """Full verdict for one entity's latest certificate."""

    certificate_id: Optional[UUID] = None
    coverage_results: List[CoverageResultRow] = Field(default_factory=list)
    entity_results: List[EntityResultRow] = Field(default_factory=list)
    overall_status: ComplianceStatus
    optional_met_count: int = 0
    earliest_expiration: Optional[date] = None
    expired_on: Optional[date] = None

    @property
    def gaps(self) -> List[str]:
        """Plain-language gap lines for blocking coverage results."""
        return [
            row.gap_description
            for row in self.coverage_results
            if row.blocks_compliance and row.gap_description
        ]
