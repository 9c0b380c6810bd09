"""SQLAlchemy models for all database tables."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coi_compliance.core.database import Base

_EXACTLY_ONE_OWNER = "(vendor_id IS NULL) <> (tenant_id IS NULL)"


class RequirementTemplate(Base):
    """Named set of coverage requirements assigned to vendors or tenants."""

    __tablename__ = "requirement_templates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String, nullable=False)  # vendor | tenant
    risk_level: Mapped[str | None] = mapped_column(String, nullable=True)
    is_system_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", onupdate=datetime.utcnow
    )

    requirements: Mapped[list["TemplateCoverageRequirement"]] = relationship(
        "TemplateCoverageRequirement",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="TemplateCoverageRequirement.position",
    )


class TemplateCoverageRequirement(Base):
    """One coverage line of a requirement template."""

    __tablename__ = "template_coverage_requirements"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    template_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("requirement_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Stable ordering; the first row per (coverage_type, limit_type) wins
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    coverage_type: Mapped[str] = mapped_column(String, nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    minimum_limit: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    limit_type: Mapped[str | None] = mapped_column(String, nullable=True)
    requires_additional_insured: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    requires_waiver_of_subrogation: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    template: Mapped["RequirementTemplate"] = relationship(
        "RequirementTemplate", back_populates="requirements"
    )


class Property(Base):
    """Managed property whose vendors and tenants must carry insurance."""

    __tablename__ = "properties"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    address: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )

    entities: Mapped[list["PropertyEntity"]] = relationship(
        "PropertyEntity", back_populates="property", cascade="all, delete-orphan"
    )


class PropertyEntity(Base):
    """Party that must appear as certificate holder or additional insured."""

    __tablename__ = "property_entities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    entity_name: Mapped[str] = mapped_column(String, nullable=False)
    entity_address: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)

    property: Mapped["Property"] = relationship("Property", back_populates="entities")


class Vendor(Base):
    """Service vendor working at a property."""

    __tablename__ = "vendors"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    property_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("properties.id"), nullable=True, index=True
    )
    template_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("requirement_templates.id"), nullable=True, index=True
    )
    company_name: Mapped[str] = mapped_column(String, nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String, nullable=True)
    compliance_status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    notifications_paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", onupdate=datetime.utcnow
    )


class Tenant(Base):
    """Lease tenant at a property."""

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    property_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("properties.id"), nullable=True, index=True
    )
    template_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("requirement_templates.id"), nullable=True, index=True
    )
    company_name: Mapped[str] = mapped_column(String, nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String, nullable=True)
    compliance_status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    notifications_paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", onupdate=datetime.utcnow
    )


class Certificate(Base):
    """Uploaded certificate of insurance document."""

    __tablename__ = "certificates"
    __table_args__ = (
        CheckConstraint(_EXACTLY_ONE_OWNER, name="ck_certificates_single_owner"),
        Index("ix_certificates_vendor_hash", "vendor_id", "file_hash"),
        Index("ix_certificates_tenant_hash", "tenant_id", "file_hash"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    vendor_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("vendors.id", ondelete="CASCADE"), nullable=True
    )
    tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True
    )
    file_path: Mapped[str] = mapped_column(String, nullable=False)
    file_name: Mapped[str | None] = mapped_column(String, nullable=True)
    file_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    upload_source: Mapped[str] = mapped_column(String, nullable=False)  # pm_upload | portal_upload
    processing_status: Mapped[str] = mapped_column(
        String, nullable=False, default="processing"
    )  # processing | extracted | review_confirmed | failed
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    overall_status: Mapped[str | None] = mapped_column(String, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", nullable=False
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    coverages: Mapped[list["ExtractedCoverage"]] = relationship(
        "ExtractedCoverage", back_populates="certificate", cascade="all, delete-orphan"
    )
    entities: Mapped[list["ExtractedEntity"]] = relationship(
        "ExtractedEntity", back_populates="certificate", cascade="all, delete-orphan"
    )


class ExtractedCoverage(Base):
    """Coverage line read from a certificate by the extractor."""

    __tablename__ = "extracted_coverages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    certificate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("certificates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    coverage_type: Mapped[str] = mapped_column(String, nullable=False)
    carrier_name: Mapped[str | None] = mapped_column(String, nullable=True)
    policy_number: Mapped[str | None] = mapped_column(String, nullable=True)
    limit_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    limit_type: Mapped[str | None] = mapped_column(String, nullable=True)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    additional_insured_listed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    waiver_of_subrogation: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    certificate: Mapped["Certificate"] = relationship("Certificate", back_populates="coverages")


class ExtractedEntity(Base):
    """Named party stated on a certificate."""

    __tablename__ = "extracted_entities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    certificate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("certificates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    entity_name: Mapped[str] = mapped_column(String, nullable=False)
    entity_address: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)

    certificate: Mapped["Certificate"] = relationship("Certificate", back_populates="entities")


class ComplianceResult(Base):
    """Verdict for one requirement line against one certificate."""

    __tablename__ = "compliance_results"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    certificate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("certificates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    coverage_requirement_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("template_coverage_requirements.id", ondelete="CASCADE"),
        nullable=False,
    )
    extracted_coverage_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("extracted_coverages.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String, nullable=False)  # met | not_met | missing | not_required
    gap_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    additional_insured_met: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    waiver_of_subrogation_met: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    evaluated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )


class EntityComplianceResult(Base):
    """Verdict for one required property party against one certificate."""

    __tablename__ = "entity_compliance_results"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    certificate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("certificates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    property_entity_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("property_entities.id", ondelete="CASCADE"),
        nullable=False,
    )
    extracted_entity_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("extracted_entities.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String, nullable=False)  # met | missing | partial_match
    match_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    evaluated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )


class Notification(Base):
    """Outbound email or in-app notice about an entity's compliance."""

    __tablename__ = "notifications"
    __table_args__ = (
        CheckConstraint(_EXACTLY_ONE_OWNER, name="ck_notifications_single_owner"),
        # NULL target_date rows (manual sends) never collide
        UniqueConstraint("entity_key", "type", "target_date", name="uq_notifications_dedup"),
        Index("ix_notifications_due", "status", "scheduled_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    vendor_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("vendors.id", ondelete="CASCADE"), nullable=True
    )
    tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True
    )
    entity_key: Mapped[str] = mapped_column(String, nullable=False, index=True)
    certificate_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("certificates.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="scheduled")
    target_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    sent_date: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    recipient: Mapped[str | None] = mapped_column(String, nullable=True)
    email_subject: Mapped[str | None] = mapped_column(String, nullable=True)
    email_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )


class UploadPortalToken(Base):
    """Unguessable token granting a vendor or tenant upload access."""

    __tablename__ = "upload_portal_tokens"
    __table_args__ = (
        CheckConstraint(_EXACTLY_ONE_OWNER, name="ck_upload_portal_tokens_single_owner"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    token: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    vendor_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("vendors.id", ondelete="CASCADE"), nullable=True
    )
    tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True
    )
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )


class PortalUploadAttempt(Base):
    """One upload attempt against a portal token (rate-limit ledger)."""

    __tablename__ = "portal_upload_attempts"
    __table_args__ = (
        Index("ix_portal_upload_attempts_token_time", "token_id", "attempted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    token_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("upload_portal_tokens.id", ondelete="CASCADE"),
        nullable=False,
    )
    attempted_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
