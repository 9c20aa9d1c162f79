"""Platform admin configuration Data Access Object."""

from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.dao.base import BaseDAO
from tenantguard.models.platform_admin import PlatformAdminConfig


class PlatformAdminConfigDAO(BaseDAO[PlatformAdminConfig]):
    """Reads and provisions the singleton platform admin row."""

    def __init__(self, session: AsyncSession):
        super().__init__(PlatformAdminConfig, session)

    async def get_platform_admin_user_id(self) -> Optional[str]:
        result = await self.session.execute(
            select(PlatformAdminConfig.platform_admin_user_id).where(
                PlatformAdminConfig.singleton_key.is_(True)
            )
        )
        return result.scalar_one_or_none()

    async def insert_singleton(self, user_id: str) -> PlatformAdminConfig:
        """
        Insert the singleton row.

        Raises:
            IntegrityError: If the row already exists
        """
        return await self.create(singleton_key=True, platform_admin_user_id=user_id)
