# orderflow/utils/milestone_plan.py
# 沒有指定里程碑時，依報價金額產生預設的三段式里程碑
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

CENT = Decimal("0.01")

# (標題, 說明, 金額比例, 幾天後到期)
DEFAULT_MILESTONE_PLAN = (
    ("Project Initiation", "Project kickoff and requirements finalization", Decimal("0.20"), 7),
    ("Development Phase", "Main development work", Decimal("0.50"), 21),
    ("Testing & Delivery", "Quality assurance and final delivery", Decimal("0.30"), 30),
)


def to_money(value) -> Decimal:
    """轉成兩位小數的 Decimal (float 先轉字串避免二進位誤差)"""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def derive_default_milestones(total_amount, now: Optional[datetime] = None) -> List[Dict]:
    """
    20% / 50% / 30% 拆分。
    最後一段取餘數，讓總和剛好等於訂單金額。
    """
    total = to_money(total_amount)
    now = now or datetime.now()

    milestones = []
    allocated = Decimal("0")
    for index, (title, description, ratio, days) in enumerate(DEFAULT_MILESTONE_PLAN):
        if index == len(DEFAULT_MILESTONE_PLAN) - 1:
            amount = total - allocated
        else:
            amount = to_money(total * ratio)
            allocated += amount
        milestones.append({
            "title": title,
            "description": description,
            "amount": amount,
            "due_date": now + timedelta(days=days),
            "status": "pending",
        })
    return milestones
