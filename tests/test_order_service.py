from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select, update

from orderflow.core.exceptions import (
    AlreadyExists, Conflict, Forbidden, InvalidState, InvalidTransition, LimitExceeded, NotFound
)
from orderflow.models.milestone import MilestoneStatusEnum
from orderflow.models.notification import Notification, NotificationTypeEnum
from orderflow.models.order import Order, OrderStatusEnum
from orderflow.models.quote import Quote, Rfq
from orderflow.schemas.milestone_schema import MilestoneCreate
from orderflow.schemas.order_schema import OrderCreate
from orderflow.services.order_service import OrderService
from orderflow.utils.order_state_machine import ORDER_TRANSITIONS


async def create_order(db_session, users, quote, **kwargs):
    service = OrderService(db_session)
    return await service.create_order_from_quote(quote.quote_id, OrderCreate(**kwargs), users["client"])


async def force_status(db_session, order_id, status, progress=None):
    order = (await db_session.execute(select(Order).where(Order.order_id == order_id))).scalars().first()
    order.status = status
    if progress is not None:
        order.progress = progress
    order.touch()
    await db_session.commit()


@pytest.mark.asyncio
async def test_create_order_with_default_milestones(db_session, users, quote):
    order = await create_order(db_session, users, quote)

    assert order.status == OrderStatusEnum.pending
    assert order.progress == 0
    assert order.amount == 1000
    assert order.client_id == users["client"].user_id
    assert order.provider_id == users["provider"].user_id
    assert [m.amount for m in order.milestones] == [200, 500, 300]
    assert all(m.status == MilestoneStatusEnum.pending for m in order.milestones)
    assert order.deadline == order.milestones[-1].due_date

    # 每個里程碑一筆 pending 的付款排程
    assert [p.milestone_id for p in order.payment_schedule] == [m.milestone_id for m in order.milestones]
    assert all(p.status == "pending" for p in order.payment_schedule)
    assert order.payment_status == "pending"
    assert order.escrow_balance == 1000


@pytest.mark.asyncio
async def test_create_order_updates_quote_and_notifies_provider(db_session, users, quote):
    order = await create_order(db_session, users, quote)

    stored_quote = (await db_session.execute(select(Quote).where(Quote.quote_id == quote.quote_id))).scalars().first()
    rfq = (await db_session.execute(select(Rfq).where(Rfq.rfq_id == stored_quote.rfq_id))).scalars().first()
    assert stored_quote.status == "accepted"
    assert stored_quote.order_id == order.order_id
    assert rfq.status == "completed"
    assert rfq.selected_provider_id == users["provider"].user_id

    notifications = (await db_session.execute(
        select(Notification).where(Notification.user_id == users["provider"].user_id)
    )).scalars().all()
    assert [n.type for n in notifications] == [NotificationTypeEnum.order_started]


@pytest.mark.asyncio
async def test_create_order_with_explicit_milestones(db_session, users, quote):
    due = datetime.now() + timedelta(days=10)
    order = await create_order(db_session, users, quote, milestones=[
        MilestoneCreate(title="Design", amount=400, due_date=due),
        MilestoneCreate(title="Build", amount=600, due_date=due + timedelta(days=10)),
    ])

    assert [m.title for m in order.milestones] == ["Design", "Build"]
    assert order.deadline == due + timedelta(days=10)


@pytest.mark.asyncio
async def test_explicit_milestones_cannot_exceed_amount(db_session, users, quote):
    due = datetime.now() + timedelta(days=10)
    with pytest.raises(LimitExceeded):
        await create_order(db_session, users, quote, milestones=[
            MilestoneCreate(title="Design", amount=800, due_date=due),
            MilestoneCreate(title="Build", amount=300, due_date=due),
        ])


@pytest.mark.asyncio
async def test_duplicate_order_for_quote(db_session, users, quote):
    await create_order(db_session, users, quote)

    with pytest.raises(AlreadyExists) as exc_info:
        await create_order(db_session, users, quote)
    # AlreadyExists 同時也是 Conflict
    assert isinstance(exc_info.value, Conflict)
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_missing_quote(db_session, users):
    service = OrderService(db_session)
    with pytest.raises(NotFound):
        await service.create_order_from_quote("no-such-quote", OrderCreate(), users["client"])


@pytest.mark.asyncio
async def test_only_rfq_owner_can_accept(db_session, users, quote):
    service = OrderService(db_session)
    with pytest.raises(Forbidden):
        await service.create_order_from_quote(quote.quote_id, OrderCreate(), users["outsider"])


@pytest.mark.asyncio
async def test_withdrawn_quote_cannot_become_order(db_session, users, quote):
    await db_session.execute(update(Quote).where(Quote.quote_id == quote.quote_id).values(status="withdrawn"))
    await db_session.commit()

    with pytest.raises(InvalidState):
        await create_order(db_session, users, quote)


@pytest.mark.asyncio
async def test_order_details_visible_to_parties_and_admin_only(db_session, users, quote):
    order = await create_order(db_session, users, quote)
    service = OrderService(db_session)

    for role in ("client", "provider", "admin"):
        details = await service.get_order_details(order.order_id, users[role])
        assert details.order_id == order.order_id

    with pytest.raises(Forbidden):
        await service.get_order_details(order.order_id, users["outsider"])


@pytest.mark.asyncio
async def test_manual_status_flow(db_session, users, quote):
    order = await create_order(db_session, users, quote)
    service = OrderService(db_session)

    updated = await service.update_order_status(order.order_id, OrderStatusEnum.in_progress, users["provider"])
    assert updated.status == OrderStatusEnum.in_progress

    updated = await service.update_order_status(order.order_id, OrderStatusEnum.review, users["provider"])
    assert updated.status == OrderStatusEnum.review

    # 進度不到 100 不能完成
    with pytest.raises(InvalidState):
        await service.update_order_status(order.order_id, OrderStatusEnum.completed, users["client"])

    updated = await service.update_order_status(order.order_id, OrderStatusEnum.in_progress, users["client"])
    assert updated.status == OrderStatusEnum.in_progress


@pytest.mark.asyncio
async def test_outsider_cannot_update_status(db_session, users, quote):
    order = await create_order(db_session, users, quote)
    service = OrderService(db_session)

    with pytest.raises(Forbidden):
        await service.update_order_status(order.order_id, OrderStatusEnum.cancelled, users["outsider"])


@pytest.mark.asyncio
@pytest.mark.parametrize("current", list(OrderStatusEnum))
async def test_pairs_outside_table_leave_status_unchanged(db_session, users, quote, current):
    order = await create_order(db_session, users, quote)
    await force_status(db_session, order.order_id, current)
    service = OrderService(db_session)

    for target in OrderStatusEnum:
        if (current, target) in ORDER_TRANSITIONS:
            continue
        with pytest.raises(InvalidTransition):
            await service.update_order_status(order.order_id, target, users["client"])
        details = await service.get_order_details(order.order_id, users["client"])
        assert details.status == current


@pytest.mark.asyncio
async def test_admin_status_change_notifies_both_parties(db_session, users, quote):
    order = await create_order(db_session, users, quote)
    service = OrderService(db_session)

    await service.update_order_status(order.order_id, OrderStatusEnum.cancelled, users["admin"])

    notifications = (await db_session.execute(
        select(Notification).where(Notification.type == NotificationTypeEnum.order_status_change)
    )).scalars().all()
    assert {n.user_id for n in notifications} == {users["client"].user_id, users["provider"].user_id}


@pytest.mark.asyncio
async def test_order_lists(db_session, users, quote):
    order = await create_order(db_session, users, quote)
    await force_status(db_session, order.order_id, OrderStatusEnum.completed, progress=100)
    service = OrderService(db_session)

    client_list = await service.get_client_orders(users["client"])
    assert client_list.pagination.total == 1
    assert client_list.counts.completed == 1
    assert client_list.counts.active == 0

    provider_list = await service.get_provider_orders(users["provider"])
    assert provider_list.earnings == 1000

    admin_list = await service.get_all_orders()
    assert [(s.status, s.count) for s in admin_list.stats] == [(OrderStatusEnum.completed, 1)]

    assert (await service.get_client_orders(users["client"], status=OrderStatusEnum.pending)).orders == []
    assert Decimal(str(admin_list.stats[0].total_value)) == Decimal("1000")
