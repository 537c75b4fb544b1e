# orderflow/routers/notification_router.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from orderflow.core.database import get_db
from orderflow.models.user import User
from orderflow.core.security import get_current_user
from orderflow.services.notification_service import NotificationService
from orderflow.schemas.notification_schema import MarkAllReadOut, NotificationOut, UnreadSummary

router = APIRouter(
    prefix="/notifications",
    tags=["Notifications"]
)

@router.get(
    "/my",
    response_model=List[NotificationOut],
    summary="獲取我的通知列表"
)
async def get_my_notifications(
    order_id: Optional[str] = Query(None, description="只看某張訂單的通知"),
    unread_only: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    訂單、里程碑、爭議、評價的變化都會產生通知 (新的在前)，前端以輪詢取得。
    """
    service = NotificationService(db)
    return await service.get_my_notifications(
        current_user, order_id=order_id, unread_only=unread_only, limit=limit
    )

@router.get(
    "/my/unread",
    response_model=UnreadSummary,
    summary="未讀數 (依訂單分組)"
)
async def get_unread_summary(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await NotificationService(db).get_unread_summary(current_user)

@router.patch(
    "/my/read-all",
    response_model=MarkAllReadOut,
    summary="全部設為已讀"
)
async def mark_all_as_read(
    order_id: Optional[str] = Query(None, description="只處理某張訂單的通知"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    updated = await NotificationService(db).mark_all_as_read(current_user, order_id=order_id)
    return MarkAllReadOut(updated=updated)

@router.patch(
    "/{notification_id}/read",
    response_model=NotificationOut,
    summary="將通知設為已讀"
)
async def mark_as_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = NotificationService(db)
    return await service.mark_notification_as_read(notification_id, current_user)
