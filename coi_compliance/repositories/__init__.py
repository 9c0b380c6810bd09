"""Repository layer modules."""

from coi_compliance.repositories.certificate_repository import CertificateRepository
from coi_compliance.repositories.compliance_repository import ComplianceRepository
from coi_compliance.repositories.entity_repository import EntityRepository
from coi_compliance.repositories.notification_repository import NotificationRepository
from coi_compliance.repositories.portal_token_repository import PortalTokenRepository
from coi_compliance.repositories.property_repository import PropertyRepository
from coi_compliance.repositories.template_repository import TemplateRepository

__all__ = [
    "CertificateRepository",
    "ComplianceRepository",
    "EntityRepository",
    "NotificationRepository",
    "PortalTokenRepository",
    "PropertyRepository",
    "TemplateRepository",
]
