# orderflow/utils/progress.py
# 進度計算：只看「已核准 (已付款)」的里程碑，不看已交付的
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from orderflow.models.milestone import DELIVERED_MILESTONE_STATUSES, MilestoneStatusEnum


def calculate_progress(milestone_statuses: Iterable[str]) -> int:
    """
    progress = 100 * 已核准數 / 里程碑總數，四捨五入 (.5 一律進位)，沒有里程碑時為 0
    """
    statuses = list(milestone_statuses)
    if not statuses:
        return 0
    approved_count = sum(1 for s in statuses if s == MilestoneStatusEnum.approved)
    ratio = Decimal(100 * approved_count) / len(statuses)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def all_delivered(milestone_statuses: Iterable[str]) -> bool:
    """所有里程碑都已交付 (completed 或 approved)"""
    statuses = list(milestone_statuses)
    return bool(statuses) and all(s in DELIVERED_MILESTONE_STATUSES for s in statuses)
