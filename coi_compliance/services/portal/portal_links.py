"""Upload portal link issuance."""

import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.core.config import settings
from coi_compliance.database.models import UploadPortalToken
from coi_compliance.repositories.portal_token_repository import PortalTokenRepository
from coi_compliance.schemas.compliance import EntityRef
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)

TOKEN_BYTES = 32


def portal_url(token: str, app_url: Optional[str] = None) -> str:
    base = (app_url or settings.portal.app_url).rstrip("/")
    return f"{base}/portal/{token}"


class PortalLinkManager:
    """Reuses an entity's live portal token or mints a fresh one."""

    def __init__(self, session: AsyncSession, ttl_days: Optional[int] = None):
        self.token_repo = PortalTokenRepository(session)
        self.ttl_days = ttl_days or settings.portal.token_ttl_days

    async def get_or_create(self, entity: EntityRef, now: datetime) -> Tuple[UploadPortalToken, bool]:
        """Return (token, reused).

        An active, unexpired token is reused. Otherwise every remaining
        active token of the entity is deactivated and a new one is created.
        """
        existing = await self.token_repo.find_active(entity, now)
        if existing is not None:
            return existing, True

        await self.token_repo.deactivate_for_entity(entity)
        token = await self.token_repo.create(
            **{entity.column: entity.id},
            token=secrets.token_urlsafe(TOKEN_BYTES),
            expires_at=now + timedelta(days=self.ttl_days),
            is_active=True,
        )
        LOGGER.info(
            "Issued portal token",
            extra={"entity": entity.key, "expires_at": token.expires_at.isoformat()},
        )
        return token, False
