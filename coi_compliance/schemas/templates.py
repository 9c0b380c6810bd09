"""Requirement template and property entity payloads."""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from coi_compliance.schemas.enums import (
    CoverageType,
    LimitType,
    PropertyEntityType,
    TemplateCategory,
)


class CoverageRequirementPayload(BaseModel):
    """One requirement line as submitted by a property manager."""

    coverage_type: CoverageType
    is_required: bool = True
    minimum_limit: Optional[Decimal] = Field(default=None, ge=0)
    limit_type: Optional[LimitType] = None
    requires_additional_insured: bool = False
    requires_waiver_of_subrogation: bool = False

    @model_validator(mode="after")
    def check_limit_shape(self) -> "CoverageRequirementPayload":
        if self.minimum_limit is not None and (
            self.limit_type is None or self.limit_type == LimitType.STATUTORY
        ):
            raise ValueError("minimum_limit must be empty for statutory or untyped limits")
        return self


class TemplateUpdatePayload(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    risk_level: Optional[str] = None
    requirements: List[CoverageRequirementPayload] = Field(default_factory=list)


class CoverageRequirementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    coverage_type: CoverageType
    is_required: bool
    minimum_limit: Optional[Decimal] = None
    limit_type: Optional[LimitType] = None
    requires_additional_insured: bool
    requires_waiver_of_subrogation: bool


class TemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    category: TemplateCategory
    risk_level: Optional[str] = None
    is_system_default: bool
    requirements: List[CoverageRequirementResponse] = Field(default_factory=list)


class TemplateUpdateResult(BaseModel):
    template: TemplateResponse
    reevaluated: int = 0


class PropertyEntityPayload(BaseModel):
    entity_name: str = Field(..., min_length=1)
    entity_address: Optional[str] = None
    entity_type: PropertyEntityType


class PropertyEntitiesPayload(BaseModel):
    entities: List[PropertyEntityPayload] = Field(default_factory=list)


class PropertyEntityResponse(PropertyEntityPayload):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
