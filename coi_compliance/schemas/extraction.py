"""Extractor contract: what the external COI extraction service returns."""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from coi_compliance.schemas.enums import CoverageType, LimitType, PropertyEntityType


class ExtractedCoverageData(BaseModel):
    """Coverage line as reported by the extractor."""
    model_config = ConfigDict(extra="ignore")

    coverage_type: CoverageType
    carrier_name: Optional[str] = None
    policy_number: Optional[str] = None
    limit_amount: Optional[Decimal] = None
    limit_type: Optional[LimitType] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    additional_insured_listed: Optional[bool] = None
    waiver_of_subrogation: Optional[bool] = None


class ExtractedEntityData(BaseModel):
    """Named party as reported by the extractor."""
    model_config = ConfigDict(extra="ignore")

    entity_name: str
    entity_address: Optional[str] = None
    entity_type: PropertyEntityType


class ExtractionResult(BaseModel):
    """Result of one extraction call.

    ``success`` false means the document was readable by the service but
    yielded nothing usable; transport failures raise instead.
    """

    success: bool
    coverages: List[ExtractedCoverageData] = Field(default_factory=list)
    entities: List[ExtractedEntityData] = Field(default_factory=list)
    confidence: Optional[float] = Field(default=None, ge=0, le=100)
    error: Optional[str] = None
