"""Service factories and request helpers shared by the v1 endpoints."""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.core.database import get_async_session as get_session
from coi_compliance.core.exceptions import ValidationError
from coi_compliance.schemas.compliance import EntityRef
from coi_compliance.services.certificates.certificate_service import CertificateService
from coi_compliance.services.notifications.notification_service import NotificationService
from coi_compliance.services.portal.gatekeeper import PortalGatekeeper
from coi_compliance.services.property_service import PropertyService
from coi_compliance.services.template_service import TemplateService

SessionDep = Annotated[AsyncSession, Depends(get_session)]


def entity_ref(vendor_id: Optional[UUID], tenant_id: Optional[UUID]) -> EntityRef:
    try:
        return EntityRef.from_ids(vendor_id, tenant_id)
    except ValueError:
        raise ValidationError("Provide exactly one of vendor_id or tenant_id")


async def get_certificate_service(db_session: SessionDep) -> CertificateService:
    return CertificateService(db_session)


async def get_portal_gatekeeper(db_session: SessionDep) -> PortalGatekeeper:
    return PortalGatekeeper(db_session)


async def get_notification_service(db_session: SessionDep) -> NotificationService:
    return NotificationService(db_session)


async def get_template_service(db_session: SessionDep) -> TemplateService:
    return TemplateService(db_session)


async def get_property_service(db_session: SessionDep) -> PropertyService:
    return PropertyService(db_session)
