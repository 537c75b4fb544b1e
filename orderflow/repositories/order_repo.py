# orderflow/repositories/order_repo.py

import logging
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.sql.expression import exists

from orderflow.core.config import settings
from orderflow.core.exceptions import AlreadyExists, Conflict
from orderflow.models.order import Order, OrderStatusEnum

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OrderRepository:
    """
    封裝對 'orders' 聚合 (含里程碑、付款排程、爭議、評價) 的存取
    """
    def __init__(self, db: AsyncSession):
        self.db = db

    def _get_common_order_options(self):
        """
        (效能關鍵)
        OrderOut 需要的所有子紀錄一次載入，避免 N+1 與 async lazy load
        """
        return [
            selectinload(Order.milestones),
            selectinload(Order.payment_schedule),
            selectinload(Order.disputes),
            selectinload(Order.reviews),
        ]

    def _apply_filters(self, stmt, client_id=None, provider_id=None, statuses=None):
        if client_id:
            stmt = stmt.where(Order.client_id == client_id)
        if provider_id:
            stmt = stmt.where(Order.provider_id == provider_id)
        if statuses:
            stmt = stmt.where(Order.status.in_(list(statuses)))
        return stmt

    async def create_order(self, order: Order) -> Order:
        """
        (C) 新增訂單 (連同 Session 中其他變更，例如報價狀態，一起提交)
        quote_id 是 unique，同時建立時由資料庫擋下第二筆
        """
        self.db.add(order)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise AlreadyExists("此報價已建立訂單")
        return order

    async def check_order_exists_by_quote(self, quote_id: str) -> bool:
        """
        (R) 檢查是否已有訂單關聯到此 quote_id
        """
        stmt = select(exists().where(Order.quote_id == quote_id))
        result = await self.db.execute(stmt)
        return result.scalar()

    async def get_order_by_id(self, order_id: str) -> Optional[Order]:
        """
        (R) 透過 ID 獲取訂單聚合。
        populate_existing 確保重試時拿到資料庫最新的快照，而不是 Session 中的舊物件
        """
        stmt = (
            select(Order)
            .where(Order.order_id == order_id)
            .options(*self._get_common_order_options())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def list_orders(
        self,
        client_id: Optional[str] = None,
        provider_id: Optional[str] = None,
        statuses: Optional[Sequence[OrderStatusEnum]] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[Order], int]:
        """
        (R) 分頁列出訂單 (依建立時間降序)，回傳 (訂單, 總筆數)
        """
        stmt = self._apply_filters(select(Order), client_id, provider_id, statuses)
        stmt = (
            stmt.order_by(Order.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .options(*self._get_common_order_options())
        )
        result = await self.db.execute(stmt)
        orders = list(result.scalars().all())
        total = await self.count_orders(client_id, provider_id, statuses)
        return orders, total

    async def count_orders(
        self,
        client_id: Optional[str] = None,
        provider_id: Optional[str] = None,
        statuses: Optional[Sequence[OrderStatusEnum]] = None
    ) -> int:
        stmt = self._apply_filters(select(func.count(Order.order_id)), client_id, provider_id, statuses)
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def sum_amount(
        self,
        provider_id: Optional[str] = None,
        statuses: Optional[Sequence[OrderStatusEnum]] = None
    ) -> Decimal:
        """服務提供者收入：已完成訂單的金額總和"""
        stmt = self._apply_filters(select(func.sum(Order.amount)), None, provider_id, statuses)
        result = await self.db.execute(stmt)
        return Decimal(result.scalar() or 0)

    async def stats_by_status(self) -> List[Tuple[OrderStatusEnum, int, Decimal]]:
        """(管理員) 各狀態的訂單數與總金額"""
        stmt = (
            select(Order.status, func.count(Order.order_id), func.sum(Order.amount))
            .group_by(Order.status)
        )
        result = await self.db.execute(stmt)
        return [(row[0], row[1], Decimal(row[2] or 0)) for row in result.all()]

    async def list_disputed_orders(self) -> List[Order]:
        """(管理員) 爭議中的訂單，最新提出的爭議排前面"""
        stmt = (
            select(Order)
            .where(Order.status == OrderStatusEnum.disputed)
            .options(*self._get_common_order_options())
        )
        result = await self.db.execute(stmt)
        orders = list(result.scalars().all())
        orders.sort(key=lambda o: o.dispute.raised_at if o.dispute else o.updated_at, reverse=True)
        return orders

    async def commit_with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        (U) 單一聚合的原子寫入。

        operation 必須自己重新載入訂單、驗證前置條件、套用變更；
        提交時若 version 不符 (其他請求已先寫入)，回滾後重新執行 operation，
        讓驗證以最新快照重跑，而不是直接覆寫。
        """
        attempts = max(1, settings.ORDER_WRITE_MAX_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            try:
                result = await operation()
                await self.db.commit()
                return result
            except StaleDataError:
                await self.db.rollback()
                logger.warning(f"訂單寫入衝突，重新載入並驗證 (第 {attempt}/{attempts} 次)")
            except Exception:
                await self.db.rollback()
                raise
        raise Conflict("訂單同時被其他操作更新，請稍後再試")
