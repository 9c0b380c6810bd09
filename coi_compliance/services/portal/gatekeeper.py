"""Portal upload gatekeeper.

Checks run in a fixed order: token, rate limit, extension, size, magic
bytes, duplicate. The rate-limit attempt is committed before the file is
looked at, so a rejected file still counts against the token.
"""

from datetime import date, datetime, timedelta
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.core.config import settings
from coi_compliance.core.exceptions import AppError, AuthzError, RateLimitError
from coi_compliance.database.models import UploadPortalToken
from coi_compliance.repositories.entity_repository import EntityRepository
from coi_compliance.repositories.notification_repository import NotificationRepository
from coi_compliance.repositories.portal_token_repository import PortalTokenRepository
from coi_compliance.repositories.property_repository import PropertyRepository
from coi_compliance.schemas.certificates import CertificateResponse, ExtractionOutcome
from coi_compliance.schemas.compliance import EntityRef
from coi_compliance.schemas.enums import NotificationStatus, NotificationType, UploadSource
from coi_compliance.services.base_service import BaseService
from coi_compliance.services.certificates.certificate_service import CertificateService
from coi_compliance.services.notifications.email_templates import EmailFields, portal_upload
from coi_compliance.services.portal.portal_links import portal_url
from coi_compliance.utils.clock import utc_now, utc_today
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)

INVALID_LINK_MESSAGE = (
    "This upload link is invalid or has expired. "
    "Please contact your property manager for a new link."
)
RATE_LIMIT_MESSAGE = "Too many upload attempts. Please wait a while and try again."


def is_token_usable(token: Optional[UploadPortalToken], now: datetime) -> bool:
    return token is not None and token.is_active and token.expires_at > now


class PortalGatekeeper(BaseService):
    """Admits anonymous uploads through an unguessable portal token."""

    def __init__(
        self,
        session: AsyncSession,
        certificate_service: Optional[CertificateService] = None,
    ):
        super().__init__(session)
        self.token_repo = PortalTokenRepository(session)
        self.entity_repo = EntityRepository(session)
        self.notification_repo = NotificationRepository(session)
        self.property_repo = PropertyRepository(session)
        self.certificate_service = certificate_service or CertificateService(session)
        self.max_attempts = settings.portal.rate_limit_attempts
        self.window = timedelta(minutes=settings.portal.rate_limit_window_minutes)

    async def run(self, *args, **kwargs) -> Any:
        """Route to appropriate handler based on action."""
        action = kwargs.get("action")

        if action == "admit":
            return await self._admit_logic(kwargs["token"], kwargs["now"])
        elif action == "upload":
            return await self.certificate_service.ingest(
                kwargs["entity"],
                kwargs["filename"],
                kwargs["content"],
                duplicate_confirmed=kwargs.get("duplicate_confirmed", False),
                upload_source=UploadSource.PORTAL_UPLOAD,
                max_bytes=settings.portal.portal_max_upload_bytes,
            )
        elif action == "extract":
            return await self._extract_logic(
                kwargs["token"], kwargs["certificate_id"], kwargs["today"], kwargs["now"]
            )
        else:
            raise AppError(f"Unknown action: {action}")

    async def accept_upload(
        self,
        token: str,
        filename: str,
        content: bytes,
        duplicate_confirmed: bool = False,
        now: Optional[datetime] = None,
    ) -> CertificateResponse:
        """Accept a file uploaded through the portal.

        Args:
            token: Portal token from the link
            filename: Original file name
            content: File bytes
            duplicate_confirmed: Uploader accepted the duplicate warning
            now: Current time, for tests

        Returns:
            The new certificate in ``processing``

        Raises:
            AuthzError: Unknown, inactive or expired token (one generic message)
            RateLimitError: Too many attempts within the window
            ValidationError: Bad extension, size or content
            DuplicateWarning: Same file already uploaded for this entity
        """
        now = now or utc_now()
        entity = await self.execute(action="admit", token=token, now=now)
        certificate = await self.execute(
            action="upload",
            entity=entity,
            filename=filename,
            content=content,
            duplicate_confirmed=duplicate_confirmed,
        )
        return CertificateResponse.model_validate(certificate)

    async def extract(
        self,
        token: str,
        certificate_id: UUID,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> ExtractionOutcome:
        """Extract a portal upload and confirm it straight away.

        Raises:
            AuthzError: Bad token, or the certificate is not the token holder's
        """
        return await self.execute(
            action="extract",
            token=token,
            certificate_id=certificate_id,
            today=today or utc_today(),
            now=now or utc_now(),
        )

    async def _admit_logic(self, token: str, now: datetime) -> EntityRef:
        # Row lock serializes concurrent attempts on one token
        record = await self.token_repo.get_by_token(token, for_update=True)
        if not is_token_usable(record, now):
            LOGGER.info("Rejected portal token", extra={"token_prefix": token[:6]})
            raise AuthzError(INVALID_LINK_MESSAGE)

        attempts = await self.token_repo.count_attempts_since(record.id, now - self.window)
        if attempts >= self.max_attempts:
            LOGGER.warning(
                "Portal upload rate limit hit",
                extra={"token_id": str(record.id), "attempts": attempts},
            )
            raise RateLimitError(RATE_LIMIT_MESSAGE)

        await self.token_repo.record_attempt(record.id, now)
        return EntityRef.from_ids(record.vendor_id, record.tenant_id)

    async def _extract_logic(
        self,
        token: str,
        certificate_id: UUID,
        today: date,
        now: datetime,
    ) -> ExtractionOutcome:
        record = await self.token_repo.get_by_token(token)
        if not is_token_usable(record, now):
            raise AuthzError(INVALID_LINK_MESSAGE)
        entity = EntityRef.from_ids(record.vendor_id, record.tenant_id)

        certificate = await self.certificate_service.certificate_repo.get_by_id(certificate_id)
        if certificate is None or getattr(certificate, entity.column) != entity.id:
            raise AuthzError(INVALID_LINK_MESSAGE)

        outcome = await self.certificate_service.extract_pending(certificate_id)
        if not outcome.succeeded:
            return outcome

        await self.certificate_service.confirm_extracted(
            certificate_id, today, release_review_hold=False
        )
        await self._record_portal_upload(entity, certificate_id, token, today, now)
        return outcome

    async def _record_portal_upload(
        self,
        entity: EntityRef,
        certificate_id: UUID,
        token: str,
        today: date,
        now: datetime,
    ) -> None:
        """In-app notice for the property manager; already delivered when written."""
        row = await self.entity_repo.get(entity)
        property_name = "your property"
        if row.property_id is not None:
            prop = await self.property_repo.get_by_id(row.property_id)
            if prop is not None:
                property_name = prop.name

        content = portal_upload(
            EmailFields(
                entity_name=row.company_name,
                property_name=property_name,
                portal_link=portal_url(token),
            )
        )
        await self.notification_repo.create(
            **{entity.column: entity.id},
            entity_key=entity.key,
            certificate_id=certificate_id,
            type=NotificationType.PORTAL_UPLOAD.value,
            status=NotificationStatus.SENT.value,
            scheduled_date=today,
            sent_date=now,
            email_subject=content.subject,
            email_body=content.body,
        )
