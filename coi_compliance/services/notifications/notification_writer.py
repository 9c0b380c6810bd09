"""Persists scheduler plans as notification rows."""

from datetime import datetime
from typing import Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.repositories.entity_repository import TrackedEntity, ref_for
from coi_compliance.repositories.notification_repository import NotificationRepository
from coi_compliance.schemas.enums import NotificationStatus
from coi_compliance.schemas.notifications import SchedulePlan
from coi_compliance.services.notifications.email_templates import EmailFields, render
from coi_compliance.services.portal.portal_links import PortalLinkManager, portal_url
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class NotificationWriter:
    """Writes a SchedulePlan inside the caller's transaction."""

    def __init__(self, session: AsyncSession):
        self.notification_repo = NotificationRepository(session)
        self.links = PortalLinkManager(session)

    async def apply(
        self,
        plan: SchedulePlan,
        entity_row: TrackedEntity,
        property_name: str,
        now: datetime,
        gaps: Sequence[str] = (),
        is_expired: bool = False,
    ) -> Tuple[int, int]:
        """Insert planned notifications (skipping existing keys) and cancel obsolete ones.

        Returns:
            (created, cancelled) counts
        """
        cancelled = 0
        for notification_id in plan.to_cancel:
            if await self.notification_repo.transition(notification_id, NotificationStatus.CANCELLED):
                cancelled += 1

        created = 0
        if plan.to_create:
            entity = ref_for(entity_row)
            token, _ = await self.links.get_or_create(entity, now)
            link = portal_url(token.token)
            for item in plan.to_create:
                fields = EmailFields(
                    entity_name=entity_row.company_name,
                    property_name=property_name,
                    portal_link=link,
                    expiration_date=item.expiration_date,
                    days_until_expiration=_days_until(item.expiration_date, item.scheduled_date),
                    gaps=item.gaps or tuple(gaps),
                    is_expired=is_expired,
                )
                content = render(item.type, fields)
                new_id = await self.notification_repo.insert_if_absent(
                    item, entity_row.contact_email, content.subject, content.body
                )
                if new_id is not None:
                    created += 1

        if created or cancelled:
            LOGGER.info(
                "Applied notification plan",
                extra={"entity": f"{entity_row.id}", "notifications_created": created, "notifications_cancelled": cancelled},
            )
        return created, cancelled


def _days_until(expiration, scheduled) -> Optional[int]:
    if expiration is None:
        return None
    return max((expiration - scheduled).days, 0)
