# orderflow/services/dispute_service.py
# 爭議處理：提出爭議會凍結訂單，只有管理員能裁決並決定訂單的下一個狀態

from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
import logging
import uuid

from orderflow.core.exceptions import Conflict, Forbidden, InvalidState, InvalidTransition
from orderflow.models.dispute import Dispute, DisputeStatusEnum, REFUND_RESOLUTION
from orderflow.models.notification import NotificationTypeEnum
from orderflow.models.order import OrderStatusEnum
from orderflow.models.user import User, UserRoleEnum
from orderflow.repositories.order_repo import OrderRepository
from orderflow.schemas.dispute_schema import DisputeCreate, DisputeResolve
from orderflow.schemas.order_schema import OrderOut
from orderflow.services.notification_service import NotificationService
from orderflow.services.provider_stats_service import ProviderStatsService
from orderflow.services.order_workflow import (
    Actor, Party, client_link, load_order, provider_link, require_party, transition_order
)
from orderflow.utils.order_state_machine import TransitionTrigger

logger = logging.getLogger(__name__)


def resolution_target(resolution: str, progress: int) -> OrderStatusEnum:
    """
    refund -> cancelled
    其他任何裁決 (continue 或自訂文字) -> 已全部核准就 completed，否則恢復 in-progress
    """
    if resolution.strip().lower() == REFUND_RESOLUTION:
        return OrderStatusEnum.cancelled
    if progress == 100:
        return OrderStatusEnum.completed
    return OrderStatusEnum.in_progress


class DisputeService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.order_repo = OrderRepository(db)
        self.stats_service = ProviderStatsService(db)
        self.notification_service = NotificationService(db)

    async def raise_dispute(self, order_id: str, data: DisputeCreate, user: User) -> OrderOut:
        """
        (雙方) 提出爭議，訂單進入 disputed，通知另一方
        """
        user = Actor.of(user)

        async def operation():
            order = await load_order(self.order_repo, order_id)
            party = require_party(order, user, [Party.client, Party.provider], "只有訂單雙方可以提出爭議")

            if order.status == OrderStatusEnum.disputed:
                raise Conflict("此訂單已有處理中的爭議")
            if order.is_terminal:
                raise InvalidTransition(f"訂單已{OrderStatusEnum(order.status).value}，無法提出爭議")

            order.disputes.append(Dispute(
                dispute_id=str(uuid.uuid4()),
                raised_by=user.user_id,
                reason=data.reason,
                description=data.description,
                raised_at=datetime.now(),
                status=DisputeStatusEnum.pending,
            ))
            transition_order(order, OrderStatusEnum.disputed, TransitionTrigger.dispute_raised)
            return order, party

        order, party = await self.order_repo.commit_with_retry(operation)
        logger.warning(f"訂單 {order_id} 被提出爭議 (by {party.value} {user.user_id}): {data.reason}")

        if party == Party.client:
            recipient_id, link = order.provider_id, provider_link(order)
        else:
            recipient_id, link = order.client_id, client_link(order)

        await self.notification_service.notify(
            user_id=recipient_id,
            type=NotificationTypeEnum.dispute_raised,
            title=f"訂單「{order.title}」被提出爭議",
            message=f"{user.display_name}: {data.reason}",
            metadata={"order_id": order_id, "reason": data.reason},
            link_url=link,
        )

        return OrderOut.model_validate(await load_order(self.order_repo, order_id))

    async def resolve_dispute(self, order_id: str, data: DisputeResolve, user: User) -> OrderOut:
        """
        (管理員) 裁決爭議，依裁決結果決定訂單流向，通知雙方
        """
        user = Actor.of(user)
        if user.role != UserRoleEnum.admin:
            raise Forbidden("只有管理員可以裁決爭議")

        async def operation():
            order = await load_order(self.order_repo, order_id)
            dispute = order.dispute
            if order.status != OrderStatusEnum.disputed or dispute is None or not dispute.is_active:
                raise InvalidState("此訂單沒有處理中的爭議")

            dispute.status = DisputeStatusEnum.resolved
            dispute.resolved_at = datetime.now()
            dispute.resolved_by = user.user_id
            dispute.resolution = data.resolution
            dispute.resolution_notes = data.notes

            target = resolution_target(data.resolution, order.progress)
            transition_order(order, target, TransitionTrigger.dispute_resolved)
            return order, target

        order, target = await self.order_repo.commit_with_retry(operation)
        logger.info(f"訂單 {order_id} 爭議已裁決: {data.resolution} -> {target.value}")

        recipients = [(order.client_id, client_link(order)), (order.provider_id, provider_link(order))]
        provider_id, title = order.provider_id, order.title

        if target == OrderStatusEnum.completed:
            await self.stats_service.increment_completed_projects(provider_id)

        for recipient_id, link in recipients:
            await self.notification_service.notify(
                user_id=recipient_id,
                type=NotificationTypeEnum.dispute_resolved,
                title=f"訂單「{title}」的爭議已裁決",
                message=data.notes,
                metadata={"order_id": order_id, "resolution": data.resolution, "order_status": target.value},
                link_url=link,
            )

        return OrderOut.model_validate(await load_order(self.order_repo, order_id))
