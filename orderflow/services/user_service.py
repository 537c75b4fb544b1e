from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.core.exceptions import NotFound
from orderflow.models.user import User
from orderflow.repositories.profile_repo import ProviderProfileRepository
from orderflow.repositories.user_repo import UserRepository
from orderflow.schemas.user_schema import ProviderStatsOut, UserMeOut, UserOut


class UserService:
    def __init__(self, db: AsyncSession):
        self.user_repo = UserRepository(db)
        self.profile_repo = ProviderProfileRepository(db)

    async def get_me(self, current_user: User) -> UserMeOut:
        """
        登入者資料；服務提供者附上完成案件數與評分
        """
        user = await self.user_repo.get_user_with_provider_profile(current_user.user_id)
        if not user:
            raise NotFound("使用者不存在")
        profile = user.provider_profile
        return UserMeOut(
            **UserOut.model_validate(user).model_dump(),
            provider_stats=ProviderStatsOut.model_validate(profile) if profile else None,
        )

    async def get_provider_stats(self, user_id: str) -> ProviderStatsOut:
        """雇主挑選報價時查看服務提供者的統計"""
        profile = await self.profile_repo.get_profile_by_user_id(user_id)
        if not profile:
            raise NotFound("服務提供者不存在")
        return ProviderStatsOut.model_validate(profile)
