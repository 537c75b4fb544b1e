from datetime import datetime, timedelta
from decimal import Decimal

from orderflow.utils.milestone_plan import derive_default_milestones, to_money


def test_default_split_for_round_amount():
    now = datetime(2024, 1, 1, 9, 0)
    plan = derive_default_milestones(1000, now=now)

    assert [m["title"] for m in plan] == ["Project Initiation", "Development Phase", "Testing & Delivery"]
    assert [m["amount"] for m in plan] == [Decimal("200.00"), Decimal("500.00"), Decimal("300.00")]
    assert [m["due_date"] for m in plan] == [now + timedelta(days=d) for d in (7, 21, 30)]
    assert all(m["status"] == "pending" for m in plan)


def test_last_milestone_takes_the_remainder():
    plan = derive_default_milestones(Decimal("333.33"))
    amounts = [m["amount"] for m in plan]

    assert amounts[:2] == [Decimal("66.67"), Decimal("166.67")]
    assert sum(amounts) == Decimal("333.33")


def test_to_money_avoids_float_artifacts():
    assert to_money(0.1 + 0.2) == Decimal("0.30")
    assert to_money("10.005") == Decimal("10.01")
