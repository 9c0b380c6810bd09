from typing import Iterable, List, Optional
from uuid import UUID
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.database.models import Notification
from coi_compliance.repositories.base_repository import BaseRepository
from coi_compliance.schemas.compliance import EntityRef
from coi_compliance.schemas.enums import NotificationStatus, NotificationType
from coi_compliance.schemas.notifications import NotificationPlan
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class NotificationRepository(BaseRepository[Notification]):
    """Repository for notification rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Notification)

    async def insert_if_absent(
        self,
        plan: NotificationPlan,
        recipient: Optional[str],
        email_subject: str,
        email_body: str,
    ) -> Optional[UUID]:
        """Insert a scheduled notification unless its dedup key exists.

        Returns:
            The new row id, or None when an equal (entity, type, target_date)
            row was already there
        """
        stmt = (
            insert(Notification)
            .values(
                **{plan.entity.column: plan.entity.id},
                entity_key=plan.entity.key,
                certificate_id=plan.certificate_id,
                type=plan.type.value,
                status=NotificationStatus.SCHEDULED.value,
                target_date=plan.target_date,
                scheduled_date=plan.scheduled_date,
                expiration_date=plan.expiration_date,
                recipient=recipient,
                email_subject=email_subject,
                email_body=email_body,
            )
            .on_conflict_do_nothing(constraint="uq_notifications_dedup")
            .returning(Notification.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_entity(
        self,
        entity: EntityRef,
        types: Optional[Iterable[NotificationType]] = None,
        statuses: Optional[Iterable[NotificationStatus]] = None,
    ) -> List[Notification]:
        query = select(Notification).where(Notification.entity_key == entity.key)
        if types is not None:
            query = query.where(Notification.type.in_([t.value for t in types]))
        if statuses is not None:
            query = query.where(Notification.status.in_([s.value for s in statuses]))
        result = await self.session.execute(query.order_by(Notification.created_at))
        return list(result.scalars().all())

    async def transition(
        self,
        notification_id: UUID,
        target: NotificationStatus,
        **fields,
    ) -> bool:
        """Move a still-scheduled notification; False if it already left ``scheduled``."""
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.status == NotificationStatus.SCHEDULED.value,
            )
            .values(status=target.value, **fields)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    async def list_due(self, today: date, limit: int = 50) -> List[Notification]:
        """Scheduled rows due on or before ``today``, locked against parallel runs."""
        result = await self.session.execute(
            select(Notification)
            .where(
                Notification.status == NotificationStatus.SCHEDULED.value,
                Notification.scheduled_date <= today,
            )
            .order_by(Notification.scheduled_date, Notification.created_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return list(result.scalars().all())
