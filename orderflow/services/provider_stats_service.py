# orderflow/services/provider_stats_service.py
# 服務提供者統計 (完成案件數、評分)。都是盡力而為的副作用，失敗只記錄。
import logging
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.repositories.profile_repo import ProviderProfileRepository

logger = logging.getLogger(__name__)


class ProviderStatsService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.profile_repo = ProviderProfileRepository(db)

    async def increment_completed_projects(self, provider_id: str) -> None:
        try:
            profile = await self.profile_repo.increment_completed_projects(provider_id)
            logger.info(f"服務提供者 {provider_id} 完成案件數: {profile.completed_projects}")
        except Exception as e:
            await self.db.rollback()
            logger.error(f"更新完成案件數失敗 (Provider ID: {provider_id}): {e}", exc_info=True)

    async def update_rating(self, provider_id: str, rating: int) -> None:
        try:
            profile = await self.profile_repo.update_rating(provider_id, rating)
            logger.info(f"服務提供者 {provider_id} 評分更新為 {profile.rating} ({profile.total_reviews} 則評價)")
        except Exception as e:
            await self.db.rollback()
            logger.error(f"更新評分失敗 (Provider ID: {provider_id}): {e}", exc_info=True)
