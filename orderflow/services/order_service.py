# orderflow/services/order_service.py

from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import logging
import math
import uuid

from orderflow.core.exceptions import AlreadyExists, Forbidden, InvalidState, LimitExceeded, NotFound
from orderflow.models.notification import NotificationTypeEnum
from orderflow.models.order import Order, OrderStatusEnum
from orderflow.models.user import User, UserRoleEnum
from orderflow.repositories.order_repo import OrderRepository
from orderflow.repositories.quote_repo import QuoteRepository
from orderflow.schemas.order_schema import (
    AdminOrderListOut, ClientOrderListOut, OrderCounts, OrderCreate, OrderOut,
    OrderStatusStat, Pagination, ProviderOrderListOut
)
from orderflow.services.milestone_service import MilestoneService
from orderflow.services.notification_service import NotificationService
from orderflow.services.provider_stats_service import ProviderStatsService
from orderflow.services.order_workflow import (
    Actor, Party, client_link, load_order, provider_link, resolve_party, transition_order
)
from orderflow.utils.milestone_plan import derive_default_milestones, to_money
from orderflow.utils.order_state_machine import TransitionTrigger

logger = logging.getLogger(__name__)

ACTIVE_ORDER_STATUSES = (OrderStatusEnum.pending, OrderStatusEnum.in_progress, OrderStatusEnum.review)

# 不能再被接受的報價狀態
CLOSED_QUOTE_STATUSES = ("declined", "withdrawn")


def order_to_out(order: Order) -> OrderOut:
    return OrderOut.model_validate(order)


def build_pagination(total: int, page: int, limit: int) -> Pagination:
    return Pagination(total=total, page=page, pages=math.ceil(total / limit) if limit else 0)


class OrderService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.order_repo = OrderRepository(db)
        self.quote_repo = QuoteRepository(db)
        self.milestone_service = MilestoneService(db)
        self.stats_service = ProviderStatsService(db)
        self.notification_service = NotificationService(db)

    # --- 建立 ---
    async def create_order_from_quote(self, quote_id: str, data: OrderCreate, user: User) -> OrderOut:
        """
        由已接受的報價建立訂單 (status = pending)。
        沒有指定里程碑時，依報價金額產生預設的三段式里程碑。
        """
        user = Actor.of(user)
        quote = await self.quote_repo.get_quote_by_id_with_rfq(quote_id)
        if not quote:
            raise NotFound("報價不存在")

        rfq = quote.rfq
        if rfq.client_id != user.user_id and user.role != UserRoleEnum.admin:
            raise Forbidden("你無權接受此報價")
        if quote.status in CLOSED_QUOTE_STATUSES:
            raise InvalidState(f"此報價狀態為 {quote.status}，無法建立訂單")

        if await self.order_repo.check_order_exists_by_quote(quote_id):
            raise AlreadyExists("此報價已建立訂單")

        now = datetime.now()
        amount = to_money(quote.amount)

        if data.milestones:
            plan = [
                {
                    "title": m.title,
                    "description": m.description,
                    "amount": to_money(m.amount),
                    "due_date": m.due_date,
                }
                for m in data.milestones
            ]
            planned_total = sum((m["amount"] for m in plan), Decimal("0"))
            if planned_total > amount:
                raise LimitExceeded(f"里程碑金額總和 ({planned_total}) 超過訂單金額 ({amount})")
        else:
            plan = derive_default_milestones(amount, now=now)

        # 步驟 1: 建立訂單與里程碑 / 付款排程
        new_order = Order(
            order_id=str(uuid.uuid4()),
            quote_id=quote.quote_id,
            rfq_id=rfq.rfq_id,
            client_id=rfq.client_id,
            provider_id=quote.provider_id,
            title=rfq.title,
            description=rfq.description,
            amount=amount,
            status=OrderStatusEnum.pending,
            progress=0,
            start_date=data.start_date or now,
            created_at=now,
            updated_at=now,
        )
        for item in plan:
            self.milestone_service.append_milestone(
                new_order,
                title=item["title"],
                description=item["description"],
                amount=item["amount"],
                due_date=item["due_date"],
            )
        new_order.deadline = new_order.milestones[-1].due_date

        # 步驟 2: 報價 / 需求單回填 (與訂單同一個交易)
        quote.status = "accepted"
        quote.responded_at = now
        quote.order_id = new_order.order_id
        rfq.status = "completed"
        rfq.selected_quote_id = quote.quote_id
        rfq.selected_provider_id = quote.provider_id

        created_order = await self.order_repo.create_order(new_order)
        order_id = created_order.order_id
        logger.info(f"訂單 {order_id} 已由報價 {quote_id} 建立 (金額 {amount}，{len(plan)} 個里程碑)")

        # 步驟 3: 提交之後才通知
        await self.notification_service.notify(
            user_id=created_order.provider_id,
            type=NotificationTypeEnum.order_started,
            title=f"新訂單「{created_order.title}」已建立",
            message=f"{user.display_name} 接受了你的報價",
            metadata={"order_id": order_id, "quote_id": quote_id, "amount": float(amount)},
            link_url=provider_link(created_order),
        )

        return order_to_out(await load_order(self.order_repo, order_id))

    # --- 查詢 ---
    async def get_order_details(self, order_id: str, user: User) -> OrderOut:
        order = await load_order(self.order_repo, order_id)
        resolve_party(order, user)
        return order_to_out(order)

    async def get_client_orders(
        self, user: User, status: Optional[OrderStatusEnum] = None, page: int = 1, limit: int = 10
    ) -> ClientOrderListOut:
        """
        (雇主) 我的訂單，附上進行中 / 已完成數量
        """
        orders, total = await self.order_repo.list_orders(
            client_id=user.user_id,
            statuses=[status] if status else None,
            page=page,
            limit=limit
        )
        counts = OrderCounts(
            active=await self.order_repo.count_orders(client_id=user.user_id, statuses=ACTIVE_ORDER_STATUSES),
            completed=await self.order_repo.count_orders(client_id=user.user_id, statuses=[OrderStatusEnum.completed]),
        )
        return ClientOrderListOut(
            orders=[order_to_out(o) for o in orders],
            pagination=build_pagination(total, page, limit),
            counts=counts,
        )

    async def get_provider_orders(
        self, user: User, status: Optional[OrderStatusEnum] = None, page: int = 1, limit: int = 10
    ) -> ProviderOrderListOut:
        """
        (服務提供者) 我的訂單，附上已完成訂單的收入總和
        """
        orders, total = await self.order_repo.list_orders(
            provider_id=user.user_id,
            statuses=[status] if status else None,
            page=page,
            limit=limit
        )
        earnings = await self.order_repo.sum_amount(
            provider_id=user.user_id, statuses=[OrderStatusEnum.completed]
        )
        return ProviderOrderListOut(
            orders=[order_to_out(o) for o in orders],
            pagination=build_pagination(total, page, limit),
            earnings=float(earnings),
        )

    async def get_all_orders(
        self, status: Optional[OrderStatusEnum] = None, page: int = 1, limit: int = 20
    ) -> AdminOrderListOut:
        """
        (管理員) 所有訂單與各狀態統計
        """
        orders, total = await self.order_repo.list_orders(
            statuses=[status] if status else None,
            page=page,
            limit=limit
        )
        stats = [
            OrderStatusStat(status=s, count=count, total_value=float(value))
            for s, count, value in await self.order_repo.stats_by_status()
        ]
        return AdminOrderListOut(
            orders=[order_to_out(o) for o in orders],
            pagination=build_pagination(total, page, limit),
            stats=stats,
        )

    async def get_disputed_orders(self) -> List[OrderOut]:
        """(管理員) 爭議中的訂單"""
        return [order_to_out(o) for o in await self.order_repo.list_disputed_orders()]

    # --- 狀態更新 ---
    async def update_order_status(self, order_id: str, target: OrderStatusEnum, user: User) -> OrderOut:
        """
        雙方 / 管理員明確更新訂單狀態 (manual)，依狀態機驗證
        """
        user = Actor.of(user)

        async def operation():
            order = await load_order(self.order_repo, order_id)
            party = resolve_party(order, user)
            previous = transition_order(order, target, TransitionTrigger.manual)
            return order, party, previous

        order, party, previous = await self.order_repo.commit_with_retry(operation)
        target = OrderStatusEnum(target)

        if party == Party.client:
            recipients = [(order.provider_id, provider_link(order))]
        elif party == Party.provider:
            recipients = [(order.client_id, client_link(order))]
        else:
            recipients = [(order.client_id, client_link(order)), (order.provider_id, provider_link(order))]

        title = order.title

        if target == OrderStatusEnum.completed:
            await self.stats_service.increment_completed_projects(order.provider_id)

        for recipient_id, link in recipients:
            await self.notification_service.notify(
                user_id=recipient_id,
                type=NotificationTypeEnum.order_status_change,
                title=f"訂單「{title}」狀態已更新為 {target.value}",
                message=f"{user.display_name} 將訂單狀態由 {previous.value} 改為 {target.value}",
                metadata={"order_id": order_id, "from": previous.value, "to": target.value},
                link_url=link,
            )

        return order_to_out(await load_order(self.order_repo, order_id))
