# orderflow/services/notification_service.py

from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional

from orderflow.core.exceptions import Forbidden, NotFound
from orderflow.models.user import User
from orderflow.models.notification import Notification, NotificationTypeEnum
from orderflow.repositories.notification_repo import NotificationRepository
from orderflow.schemas.notification_schema import UnreadSummary

import logging

logger = logging.getLogger(__name__)

class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = NotificationRepository(db)

    async def create_notification(
        self,
        user_id: str,
        type: NotificationTypeEnum,
        title: str,
        link_url: Optional[str] = None,
        message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Notification:
        """
        (內部使用) 供其他 Service 呼叫的介面
        """
        new_notification = Notification(
            user_id=user_id,
            order_id=(metadata or {}).get("order_id"),
            type=type,
            title=title,
            message=message,
            metadata_=metadata,
            link_url=link_url,
            is_read=False
        )
        logger.info(f"建立通知 for User ID: {user_id}, Type: {type.value}, Title: {title}, Link: {link_url}")
        return await self.repo.create_notification(new_notification)

    async def notify(
        self,
        user_id: str,
        type: NotificationTypeEnum,
        title: str,
        message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        link_url: Optional[str] = None
    ) -> Optional[Notification]:
        """
        盡力而為的通知：必須在主要狀態變更提交 *之後* 呼叫。
        失敗只記錄錯誤，不影響已完成的狀態轉移。
        """
        try:
            return await self.create_notification(
                user_id=user_id,
                type=type,
                title=title,
                link_url=link_url,
                message=message,
                metadata=metadata
            )
        except Exception as e:
            logger.error(f"通知發送失敗 (User ID: {user_id}, Type: {type.value}): {e}", exc_info=True)
            return None

    async def get_my_notifications(
        self,
        user: User,
        order_id: Optional[str] = None,
        unread_only: bool = False,
        limit: int = 20
    ) -> List[Notification]:
        """
        (API 用) 獲取當前登入者的通知列表，可依訂單篩選
        """
        return await self.repo.list_notifications_by_user(
            user.user_id, order_id=order_id, unread_only=unread_only, limit=limit
        )

    async def get_unread_summary(self, user: User) -> UnreadSummary:
        counts = await self.repo.count_unread_by_order(user.user_id)
        return UnreadSummary(
            total=sum(counts.values()),
            by_order={order_id: count for order_id, count in counts.items() if order_id},
        )

    async def mark_all_as_read(self, user: User, order_id: Optional[str] = None) -> int:
        updated = await self.repo.mark_all_as_read(user.user_id, order_id=order_id)
        logger.info(f"User {user.user_id} 批次已讀 {updated} 則通知 (order_id={order_id})")
        return updated

    async def mark_notification_as_read(
        self, 
        notification_id: str, 
        user: User
    ) -> Notification:
        """
        (API 用) 將通知設為已讀，並檢查權限
        """
        notification = await self.repo.get_notification_by_id(notification_id)
        
        if not notification:
            raise NotFound("通知不存在")
        
        # (重要) 只能標記自己的通知
        if notification.user_id != user.user_id:
            raise Forbidden("無權操作此通知")
            
        if notification.is_read:
            return notification # 已讀，直接回傳
            
        return await self.repo.mark_as_read(notification)
