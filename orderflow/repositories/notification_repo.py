# orderflow/repositories/notification_repo.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, update
from sqlalchemy.future import select
from typing import Dict, List, Optional
import logging

from orderflow.models.notification import Notification

logger = logging.getLogger(__name__)

class NotificationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_notification(self, notification: Notification) -> Notification:
        """
        (C) 新增一筆通知。
        訂單的狀態變更已經先提交，這裡失敗只回滾通知本身
        """
        try:
            self.db.add(notification)
            await self.db.commit()
            return notification
        except Exception as e:
            await self.db.rollback()
            logger.error(f"建立通知失敗 (order_id={notification.order_id}): {e}", exc_info=True)
            raise

    async def get_notification_by_id(self, notification_id: str) -> Optional[Notification]:
        stmt = select(Notification).where(Notification.notification_id == notification_id)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    def _user_scope(self, user_id: str, order_id: Optional[str], unread_only: bool) -> list:
        conditions = [Notification.user_id == user_id]
        if order_id:
            conditions.append(Notification.order_id == order_id)
        if unread_only:
            conditions.append(Notification.is_read.is_(False))
        return conditions

    async def list_notifications_by_user(
        self,
        user_id: str,
        order_id: Optional[str] = None,
        unread_only: bool = False,
        limit: int = 20
    ) -> List[Notification]:
        """
        (R) 使用者的通知，新的在前；可只看某張訂單或只看未讀
        """
        stmt = (
            select(Notification)
            .where(*self._user_scope(user_id, order_id, unread_only))
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_unread_by_order(self, user_id: str) -> Dict[Optional[str], int]:
        """
        (R) 未讀數，依訂單分組 (不屬於任何訂單的通知歸在 None)
        """
        stmt = (
            select(Notification.order_id, func.count(Notification.notification_id))
            .where(*self._user_scope(user_id, None, True))
            .group_by(Notification.order_id)
        )
        result = await self.db.execute(stmt)
        return {order_id: count for order_id, count in result.all()}

    async def mark_as_read(self, notification: Notification) -> Notification:
        notification.is_read = True
        await self.db.commit()
        return notification

    async def mark_all_as_read(self, user_id: str, order_id: Optional[str] = None) -> int:
        """
        (U) 批次已讀，回傳更新筆數
        """
        stmt = (
            update(Notification)
            .where(*self._user_scope(user_id, order_id, True))
            .values(is_read=True)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount
