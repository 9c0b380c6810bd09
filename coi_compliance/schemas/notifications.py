"""Notification planning records and API schemas."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coi_compliance.schemas.compliance import EntityRef
from coi_compliance.schemas.enums import NotificationStatus, NotificationType


class NotificationSnapshot(BaseModel):
    """Read-only view of an existing notification row used for planning."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    type: NotificationType
    status: NotificationStatus
    certificate_id: Optional[UUID] = None
    target_date: Optional[date] = None
    scheduled_date: date
    expiration_date: Optional[date] = None
    sent_date: Optional[datetime] = None


class NotificationPlan(BaseModel):
    """A notification the scheduler wants to exist."""

    entity: EntityRef
    type: NotificationType
    target_date: Optional[date] = None
    scheduled_date: date
    certificate_id: Optional[UUID] = None
    expiration_date: Optional[date] = None
    lead_days: Optional[int] = None
    gaps: List[str] = Field(default_factory=list)


class SchedulePlan(BaseModel):
    """Everything the scheduler decided for one entity in one pass."""

    to_create: List[NotificationPlan] = Field(default_factory=list)
    to_cancel: List[UUID] = Field(default_factory=list)


class SendResult(BaseModel):
    """Outcome of one outbound email."""

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    dev_mode: bool = False


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    vendor_id: Optional[UUID] = None
    tenant_id: Optional[UUID] = None
    type: NotificationType
    status: NotificationStatus
    target_date: Optional[date] = None
    scheduled_date: date
    sent_date: Optional[datetime] = None
    recipient: Optional[str] = None
    email_subject: Optional[str] = None
    error_message: Optional[str] = None


class EntityTargetRequest(BaseModel):
    """Body naming exactly one vendor or tenant."""

    vendor_id: Optional[UUID] = None
    tenant_id: Optional[UUID] = None


class PortalLinkResponse(BaseModel):
    token: str
    portal_url: str
    expires_at: datetime
    reused: bool = False


class FollowUpResponse(BaseModel):
    notification: NotificationResponse
    portal_url: str


class RunSummary(BaseModel):
    """Totals of one periodic scheduler run."""

    evaluated: int = 0
    scheduled: int = 0
    cancelled: int = 0
    sent: int = 0
    failed: int = 0
