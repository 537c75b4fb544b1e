# orderflow/repositories/profile_repo.py
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from orderflow.models.provider_profile import ProviderProfile


class ProviderProfileRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile_by_user_id(self, user_id: str) -> ProviderProfile | None:
        stmt = select(ProviderProfile).where(ProviderProfile.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def _get_or_create(self, user_id: str) -> ProviderProfile:
        profile = await self.get_profile_by_user_id(user_id)
        if profile is None:
            profile = ProviderProfile(user_id=user_id, completed_projects=0, rating=Decimal("0"), total_reviews=0)
            self.db.add(profile)
        return profile

    async def increment_completed_projects(self, user_id: str) -> ProviderProfile:
        """
        (U) 完成案件數 +1
        """
        profile = await self._get_or_create(user_id)
        profile.completed_projects = (profile.completed_projects or 0) + 1
        await self.db.commit()
        await self.db.refresh(profile)
        return profile

    async def update_rating(self, user_id: str, rating: int) -> ProviderProfile:
        """
        (U) 以新的評分更新平均分數 (累計平均)
        """
        profile = await self._get_or_create(user_id)
        total = profile.total_reviews or 0
        current = Decimal(profile.rating or 0)
        average = (current * total + Decimal(rating)) / (total + 1)
        profile.rating = average.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        profile.total_reviews = total + 1
        await self.db.commit()
        await self.db.refresh(profile)
        return profile
