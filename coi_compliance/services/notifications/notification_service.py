"""Notification operations: manual follow-ups, portal links, delivery runs."""

from datetime import date, datetime
from typing import Any, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.core.exceptions import AppError, NotFoundError
from coi_compliance.database.models import Notification
from coi_compliance.repositories.certificate_repository import CertificateRepository
from coi_compliance.repositories.compliance_repository import ComplianceRepository
from coi_compliance.repositories.entity_repository import EntityRepository, TrackedEntity
from coi_compliance.repositories.notification_repository import NotificationRepository
from coi_compliance.repositories.property_repository import PropertyRepository
from coi_compliance.schemas.compliance import EntityRef
from coi_compliance.schemas.enums import (
    ComplianceResultStatus,
    ComplianceStatus,
    NotificationStatus,
    NotificationType,
)
from coi_compliance.schemas.notifications import (
    FollowUpResponse,
    NotificationResponse,
    PortalLinkResponse,
    RunSummary,
)
from coi_compliance.services.base_service import BaseService
from coi_compliance.services.compliance.compliance_service import ComplianceService
from coi_compliance.services.notifications.email_sender import EmailSender
from coi_compliance.services.notifications.email_templates import EmailFields, follow_up_reminder
from coi_compliance.services.portal.portal_links import PortalLinkManager, portal_url
from coi_compliance.services.state_machines import ensure_notification_transition
from coi_compliance.utils.clock import utc_now, utc_today
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)

NO_CONTACT_ERROR = "No contact email on file"
DUE_BATCH_SIZE = 50


class NotificationService(BaseService):
    """Notification operations for property managers and the periodic run."""

    def __init__(
        self,
        session: AsyncSession,
        sender: Optional[EmailSender] = None,
        compliance_service: Optional[ComplianceService] = None,
    ):
        super().__init__(session)
        self.notification_repo = NotificationRepository(session)
        self.entity_repo = EntityRepository(session)
        self.certificate_repo = CertificateRepository(session)
        self.compliance_repo = ComplianceRepository(session)
        self.property_repo = PropertyRepository(session)
        self.links = PortalLinkManager(session)
        self.sender = sender or EmailSender()
        self.compliance_service = compliance_service or ComplianceService(session)

    async def run(self, *args, **kwargs) -> Any:
        """Route to appropriate handler based on action."""
        action = kwargs.get("action")

        if action == "follow_up":
            return await self._follow_up_logic(kwargs["entity"], kwargs["today"], kwargs["now"])
        elif action == "portal_link":
            return await self._portal_link_logic(kwargs["entity"], kwargs["now"])
        elif action == "cancel":
            return await self._cancel_logic(kwargs["notification_id"])
        elif action == "process_due":
            return await self._process_due_logic(kwargs["now"].date(), kwargs["now"])
        elif action == "reevaluate_all":
            return await self.compliance_service.reevaluate_all(kwargs["today"])
        else:
            raise AppError(f"Unknown action: {action}")

    async def send_follow_up(self, entity: EntityRef, now: Optional[datetime] = None) -> FollowUpResponse:
        """Send a manual follow-up reminder with a portal link.

        Always writes a new row, ``sent`` or ``failed``; never deduplicated.
        """
        now = now or utc_now()
        return await self.execute(action="follow_up", entity=entity, today=now.date(), now=now)

    async def generate_portal_link(
        self, entity: EntityRef, now: Optional[datetime] = None
    ) -> PortalLinkResponse:
        """Reuse the entity's live portal token or issue a new one."""
        return await self.execute(action="portal_link", entity=entity, now=now or utc_now())

    async def cancel_notification(self, notification_id: UUID) -> NotificationResponse:
        """scheduled -> cancelled; anything else is an invalid transition."""
        return await self.execute(action="cancel", notification_id=notification_id)

    async def process_due_notifications(self, now: Optional[datetime] = None) -> Tuple[int, int]:
        """Send every scheduled notification due today or earlier.

        Returns:
            (sent, failed) counts
        """
        return await self.execute(action="process_due", now=now or utc_now())

    async def run_scheduler(self, today: Optional[date] = None, now: Optional[datetime] = None) -> RunSummary:
        """Periodic run: re-evaluate everyone, then deliver what is due.

        The two halves commit separately so a delivery problem never rolls
        back fresh evaluations.
        """
        now = now or utc_now()
        today = today or utc_today()
        evaluations = await self.execute(action="reevaluate_all", today=today)
        sent, failed = await self.execute(action="process_due", now=now)

        summary = RunSummary(
            evaluated=len(evaluations),
            scheduled=sum(e.notifications_created for e in evaluations),
            cancelled=sum(e.notifications_cancelled for e in evaluations),
            sent=sent,
            failed=failed,
        )
        LOGGER.info("Scheduler run finished", extra=summary.model_dump())
        return summary

    async def _get_entity(self, entity: EntityRef) -> TrackedEntity:
        row = await self.entity_repo.get(entity)
        if row is None:
            raise NotFoundError(f"{entity.kind.value.capitalize()} {entity.id} not found")
        return row

    async def _property_name(self, row: TrackedEntity) -> str:
        if row.property_id is not None:
            prop = await self.property_repo.get_by_id(row.property_id)
            if prop is not None:
                return prop.name
        return "your property"

    async def _current_gaps(self, entity: EntityRef) -> List[str]:
        certificate = await self.certificate_repo.find_latest_confirmed(entity)
        if certificate is None:
            return []
        results = await self.compliance_repo.list_results(certificate.id)
        gaps = [
            r.gap_description
            for r in results
            if r.gap_description
            and r.status in (ComplianceResultStatus.NOT_MET.value, ComplianceResultStatus.MISSING.value)
        ]
        if certificate.overall_status == ComplianceStatus.EXPIRED.value:
            gaps.insert(0, "Your certificate has expired")
        return gaps

    async def _follow_up_logic(self, entity: EntityRef, today: date, now: datetime) -> FollowUpResponse:
        row = await self._get_entity(entity)
        token, _ = await self.links.get_or_create(entity, now)
        link = portal_url(token.token)

        content = follow_up_reminder(
            EmailFields(
                entity_name=row.company_name,
                property_name=await self._property_name(row),
                portal_link=link,
                gaps=await self._current_gaps(entity),
                is_expired=row.compliance_status == ComplianceStatus.EXPIRED.value,
            )
        )

        if row.contact_email:
            result = await self.sender.send(row.contact_email, content.subject, content.body)
            status = NotificationStatus.SENT if result.success else NotificationStatus.FAILED
            error = result.error
        else:
            status, error = NotificationStatus.FAILED, NO_CONTACT_ERROR

        notification = await self.notification_repo.create(
            **{entity.column: entity.id},
            entity_key=entity.key,
            type=NotificationType.FOLLOW_UP_REMINDER.value,
            status=status.value,
            scheduled_date=today,
            sent_date=now if status == NotificationStatus.SENT else None,
            recipient=row.contact_email,
            email_subject=content.subject,
            email_body=content.body,
            error_message=error,
        )
        LOGGER.info(
            "Manual follow-up recorded",
            extra={"entity": entity.key, "status": status.value},
        )
        return FollowUpResponse(
            notification=NotificationResponse.model_validate(notification),
            portal_url=link,
        )

    async def _portal_link_logic(self, entity: EntityRef, now: datetime) -> PortalLinkResponse:
        await self._get_entity(entity)
        token, reused = await self.links.get_or_create(entity, now)
        return PortalLinkResponse(
            token=token.token,
            portal_url=portal_url(token.token),
            expires_at=token.expires_at,
            reused=reused,
        )

    async def _cancel_logic(self, notification_id: UUID) -> NotificationResponse:
        notification = await self.notification_repo.get_by_id(notification_id)
        if notification is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        ensure_notification_transition(notification.status, NotificationStatus.CANCELLED)
        await self.notification_repo.transition(notification_id, NotificationStatus.CANCELLED)
        return NotificationResponse.model_validate(notification)

    async def _process_due_logic(self, today: date, now: datetime) -> Tuple[int, int]:
        sent = failed = 0
        for notification in await self.notification_repo.list_due(today, limit=DUE_BATCH_SIZE):
            if await self._deliver(notification, now):
                sent += 1
            else:
                failed += 1
        if sent or failed:
            LOGGER.info(f"Processed due notifications: {sent} sent, {failed} failed")
        return sent, failed

    async def _deliver(self, notification: Notification, now: datetime) -> bool:
        """Send one due notification; failures are final, never retried."""
        if not notification.recipient:
            success, error = False, NO_CONTACT_ERROR
        else:
            result = await self.sender.send(
                notification.recipient, notification.email_subject or "", notification.email_body or ""
            )
            success, error = result.success, result.error

        target = NotificationStatus.SENT if success else NotificationStatus.FAILED
        ensure_notification_transition(notification.status, target)
        await self.notification_repo.transition(
            notification.id,
            target,
            sent_date=now if success else None,
            error_message=error,
        )
        if not success:
            LOGGER.warning(
                "Notification delivery failed",
                extra={"notification_id": str(notification.id), "error": error},
            )
        return success
