# orderflow/utils/order_state_machine.py
# 訂單狀態機：唯一的轉移表，所有狀態變更都必須經過這裡驗證
import enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from orderflow.core.exceptions import Conflict, InvalidTransition
from orderflow.models.order import OrderStatusEnum, TERMINAL_ORDER_STATUSES


class TransitionTrigger(str, enum.Enum):
    manual = "manual"                       # 雙方 / 管理員明確更新狀態
    auto = "auto"                           # 里程碑變化自動推進
    dispute_raised = "dispute_raised"       # 任一方提出爭議
    dispute_resolved = "dispute_resolved"   # 管理員裁決爭議


S = OrderStatusEnum
T = TransitionTrigger

# (目前狀態, 目標狀態) -> 允許的觸發方式
ORDER_TRANSITIONS: Dict[Tuple[OrderStatusEnum, OrderStatusEnum], FrozenSet[TransitionTrigger]] = {
    (S.pending, S.in_progress): frozenset({T.manual, T.auto}),
    (S.pending, S.cancelled): frozenset({T.manual}),
    (S.in_progress, S.review): frozenset({T.manual, T.auto}),
    (S.in_progress, S.cancelled): frozenset({T.manual}),
    (S.review, S.completed): frozenset({T.manual, T.auto}),
    (S.review, S.in_progress): frozenset({T.manual}),
    (S.disputed, S.in_progress): frozenset({T.dispute_resolved}),
    (S.disputed, S.cancelled): frozenset({T.dispute_resolved}),
    (S.disputed, S.completed): frozenset({T.dispute_resolved}),
}

# 任何非終止、非爭議中的狀態都可以進入爭議
for _status in S:
    if _status not in TERMINAL_ORDER_STATUSES and _status != S.disputed:
        ORDER_TRANSITIONS[(_status, S.disputed)] = frozenset({T.dispute_raised})


def is_transition_allowed(
    current: OrderStatusEnum,
    target: OrderStatusEnum,
    trigger: Optional[TransitionTrigger] = None
) -> bool:
    """
    (current, target) 是否在轉移表中；有給 trigger 時一併檢查觸發方式
    """
    triggers = ORDER_TRANSITIONS.get((S(current), S(target)))
    if triggers is None:
        return False
    return trigger is None or trigger in triggers


def allowed_targets(current: OrderStatusEnum, trigger: Optional[TransitionTrigger] = None) -> List[OrderStatusEnum]:
    return [
        target for (source, target), triggers in ORDER_TRANSITIONS.items()
        if source == S(current) and (trigger is None or trigger in triggers)
    ]


def assert_transition(
    current: OrderStatusEnum,
    target: OrderStatusEnum,
    trigger: TransitionTrigger
) -> None:
    """
    驗證狀態轉移。
    - 不在轉移表中 -> InvalidTransition
    - 在表中但觸發方式不符：爭議中的訂單 -> Conflict，其餘 -> InvalidTransition
    """
    current = S(current)
    target = S(target)
    triggers = ORDER_TRANSITIONS.get((current, target))

    if triggers is None:
        raise InvalidTransition(f"不合法的狀態轉移: {current.value} -> {target.value}")

    if trigger not in triggers:
        if current == S.disputed:
            raise Conflict("訂單爭議處理中，需由管理員裁決後才能變更狀態")
        raise InvalidTransition(
            f"狀態轉移 {current.value} -> {target.value} 不能以 {T(trigger).value} 方式觸發"
        )
