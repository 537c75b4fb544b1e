# orderflow/routers/user_router.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from orderflow.core.database import get_db
from orderflow.core.security import get_current_user
from orderflow.models.user import User
from orderflow.schemas.user_schema import ProviderStatsOut, UserMeOut
from orderflow.services.user_service import UserService

router = APIRouter(
    prefix="/users",
    tags=["Users"],
    dependencies=[Depends(get_current_user)]
)

@router.get("/me", response_model=UserMeOut)
async def read_users_me(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await UserService(db).get_me(current_user)

@router.get("/{user_id}/provider-stats", response_model=ProviderStatsOut)
async def read_provider_stats(user_id: str, db: AsyncSession = Depends(get_db)):
    """
    服務提供者的完成案件數、平均評分與評價數
    """
    return await UserService(db).get_provider_stats(user_id)
