# orderflow/repositories/user_repo.py
# 使用者查詢：登入、解析操作者，以及服務提供者的統計資料
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from orderflow.models.user import User, UserRoleEnum
from orderflow.models.provider_profile import ProviderProfile

class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_user_by_id(self, user_id: str) -> User | None:
        """
        解析 Token 後取得操作者 (只需要 user_id / role / 名稱)
        """
        stmt = select(User).where(User.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_user_with_provider_profile(self, user_id: str) -> User | None:
        """
        連同服務提供者統計一起載入 (async 下不能 lazy load)
        """
        stmt = (
            select(User)
            .where(User.user_id == user_id)
            .options(selectinload(User.provider_profile))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def create_user(self, user: User) -> User:
        """
        新增使用者；服務提供者一併建立歸零的統計，
        之後訂單完成與評價只需要更新，不必再補建
        """
        if user.role == UserRoleEnum.provider:
            user.provider_profile = ProviderProfile(
                user_id=user.user_id, completed_projects=0, rating=Decimal("0"), total_reviews=0
            )
        self.db.add(user)
        await self.db.commit()
        return user
