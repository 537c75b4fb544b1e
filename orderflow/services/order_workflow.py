# orderflow/services/order_workflow.py
# 訂單聚合的共用規則：身分判定、鎖定檢查、狀態轉移、進度推導後的自動推進
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from orderflow.core.exceptions import Conflict, Forbidden, InvalidState, NotFound
from orderflow.models.milestone import Milestone
from orderflow.models.order import Order, OrderStatusEnum
from orderflow.models.user import User, UserRoleEnum
from orderflow.repositories.order_repo import OrderRepository
from orderflow.utils.order_state_machine import TransitionTrigger, assert_transition
from orderflow.utils.progress import all_delivered, calculate_progress

logger = logging.getLogger(__name__)


class Party(str, enum.Enum):
    client = "client"
    provider = "provider"
    admin = "admin"


@dataclass(frozen=True)
class Actor:
    """
    操作者快照。rollback 會讓 Session 中所有 ORM 物件過期 (包含 current_user)，
    重試與副作用之後仍需要的欄位先取出來
    """
    user_id: str
    role: UserRoleEnum
    display_name: str

    @classmethod
    def of(cls, user) -> "Actor":
        if isinstance(user, Actor):
            return user
        return cls(user_id=user.user_id, role=UserRoleEnum(user.role), display_name=user.display_name)


def client_link(order: Order) -> str:
    return f"/client/orders/{order.order_id}"


def provider_link(order: Order) -> str:
    return f"/provider/orders/{order.order_id}"


async def load_order(order_repo: OrderRepository, order_id: str) -> Order:
    order = await order_repo.get_order_by_id(order_id)
    if not order:
        raise NotFound("訂單不存在")
    return order


def get_milestone(order: Order, milestone_id: str) -> Milestone:
    milestone = order.find_milestone(milestone_id)
    if not milestone:
        raise NotFound("里程碑不存在")
    return milestone


def resolve_party(order: Order, user: User) -> Party:
    """
    判定操作者在此訂單中的身分 (雙方優先於管理員)
    """
    if user.user_id == order.client_id:
        return Party.client
    if user.user_id == order.provider_id:
        return Party.provider
    if user.role == UserRoleEnum.admin:
        return Party.admin
    raise Forbidden("你無權操作此訂單")


def require_party(order: Order, user: User, allowed: Iterable[Party], detail: Optional[str] = None) -> Party:
    party = resolve_party(order, user)
    if party not in set(allowed):
        raise Forbidden(detail or f"你的身分 ({party.value}) 無權執行此操作")
    return party


def ensure_milestones_unlocked(order: Order) -> None:
    """
    爭議中 -> Conflict (等待裁決)；已結案 -> InvalidState (不可變)
    """
    if order.status == OrderStatusEnum.disputed:
        raise Conflict("訂單爭議處理中，暫停所有里程碑操作")
    if order.is_terminal:
        raise InvalidState(f"訂單已{'完成' if order.status == OrderStatusEnum.completed else '取消'}，無法再變更")


def transition_order(order: Order, target: OrderStatusEnum, trigger: TransitionTrigger) -> OrderStatusEnum:
    """
    唯一修改 order.status 的地方。回傳轉移前的狀態。
    """
    previous = OrderStatusEnum(order.status)
    target = OrderStatusEnum(target)
    assert_transition(previous, target, trigger)

    if target == OrderStatusEnum.completed:
        # completed <=> 進度 100
        if order.progress != 100:
            raise InvalidState(f"訂單進度為 {order.progress}%，尚有里程碑未核准，無法標記完成")
        order.completed_date = datetime.now()

    order.status = target
    order.touch()
    logger.info(f"訂單 {order.order_id} 狀態轉移: {previous.value} -> {target.value} ({trigger.value})")
    return previous


def recalculate_progress(order: Order) -> int:
    order.progress = calculate_progress(m.status for m in order.milestones)
    return order.progress


def advance_after_delivery(order: Order) -> None:
    """
    里程碑交付後：
    - 訂單仍在 pending -> 視為開工 (in-progress)
    - 所有里程碑都已交付 -> 進入驗收 (review)
    """
    if order.status == OrderStatusEnum.pending:
        transition_order(order, OrderStatusEnum.in_progress, TransitionTrigger.auto)
    if order.status == OrderStatusEnum.in_progress and all_delivered(m.status for m in order.milestones):
        transition_order(order, OrderStatusEnum.review, TransitionTrigger.auto)


def advance_after_approval(order: Order) -> bool:
    """
    里程碑核准後重新計算進度；進度 100 時訂單自動完成。
    回傳訂單是否因此進入 completed。
    """
    if recalculate_progress(order) != 100:
        return False
    if order.status == OrderStatusEnum.in_progress:
        transition_order(order, OrderStatusEnum.review, TransitionTrigger.auto)
    if order.status == OrderStatusEnum.review:
        transition_order(order, OrderStatusEnum.completed, TransitionTrigger.auto)
        return True
    return False
