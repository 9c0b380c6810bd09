from typing import Optional
from uuid import UUID
from datetime import datetime

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.database.models import PortalUploadAttempt, UploadPortalToken
from coi_compliance.repositories.base_repository import BaseRepository
from coi_compliance.schemas.compliance import EntityRef


class PortalTokenRepository(BaseRepository[UploadPortalToken]):
    """Repository for upload portal tokens and their attempt ledger."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, UploadPortalToken)

    async def get_by_token(self, token: str, for_update: bool = False) -> Optional[UploadPortalToken]:
        """Look up a token; ``for_update`` serializes concurrent uploads on it."""
        query = select(UploadPortalToken).where(UploadPortalToken.token == token)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_active(self, entity: EntityRef, now: datetime) -> Optional[UploadPortalToken]:
        result = await self.session.execute(
            select(UploadPortalToken)
            .where(
                getattr(UploadPortalToken, entity.column) == entity.id,
                UploadPortalToken.is_active.is_(True),
                UploadPortalToken.expires_at > now,
            )
            .order_by(UploadPortalToken.expires_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def deactivate_for_entity(self, entity: EntityRef) -> None:
        await self.session.execute(
            update(UploadPortalToken)
            .where(
                getattr(UploadPortalToken, entity.column) == entity.id,
                UploadPortalToken.is_active.is_(True),
            )
            .values(is_active=False)
        )

    async def count_attempts_since(self, token_id: UUID, since: datetime) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(PortalUploadAttempt)
            .where(
                PortalUploadAttempt.token_id == token_id,
                PortalUploadAttempt.attempted_at >= since,
            )
        )
        return result.scalar_one()

    async def record_attempt(self, token_id: UUID, attempted_at: datetime) -> None:
        self.session.add(PortalUploadAttempt(token_id=token_id, attempted_at=attempted_at))
        await self.session.flush()
