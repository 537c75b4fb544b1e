import pytest

from orderflow.core.exceptions import Forbidden
from orderflow.models.notification import NotificationTypeEnum
from orderflow.models.order import OrderStatusEnum
from orderflow.schemas.notification_schema import NotificationOut
from orderflow.schemas.order_schema import OrderCreate
from orderflow.services.notification_service import NotificationService
from orderflow.services.order_service import OrderService


@pytest.fixture
async def order(db_session, users, quote):
    service = OrderService(db_session)
    created = await service.create_order_from_quote(quote.quote_id, OrderCreate(), users["client"])
    # 服務提供者開工 -> 雇主收到狀態變更通知
    return await service.update_order_status(created.order_id, OrderStatusEnum.in_progress, users["provider"])


@pytest.fixture
def notifications(db_session):
    return NotificationService(db_session)


@pytest.mark.asyncio
async def test_order_events_are_linked_to_the_order(notifications, order, users):
    received = await notifications.get_my_notifications(users["provider"], order_id=order.order_id)
    assert [n.type for n in received] == [NotificationTypeEnum.order_started]
    assert received[0].order_id == order.order_id

    out = NotificationOut.model_validate(received[0])
    assert out.metadata.order_id == order.order_id
    assert out.model_dump()["metadata"]["quote_id"] == "quote-1"


@pytest.mark.asyncio
async def test_status_change_metadata_carries_both_states(notifications, order, users):
    [change] = await notifications.get_my_notifications(users["client"], order_id=order.order_id)
    assert change.type == NotificationTypeEnum.order_status_change
    assert change.metadata_["from"] == "pending"
    assert change.metadata_["to"] == "in-progress"


@pytest.mark.asyncio
async def test_unread_summary_groups_by_order(notifications, order, users):
    await notifications.create_notification(
        user_id=users["provider"].user_id,
        type=NotificationTypeEnum.review_received,
        title="Profile reviewed",
    )

    summary = await notifications.get_unread_summary(users["provider"])
    assert summary.total == 2
    assert summary.by_order == {order.order_id: 1}


@pytest.mark.asyncio
async def test_mark_all_read_is_scoped_to_user_and_order(notifications, order, users):
    await notifications.create_notification(
        user_id=users["provider"].user_id,
        type=NotificationTypeEnum.review_received,
        title="Profile reviewed",
    )

    assert await notifications.mark_all_as_read(users["provider"], order_id=order.order_id) == 1

    unread = await notifications.get_my_notifications(users["provider"], unread_only=True)
    assert [n.order_id for n in unread] == [None]
    # 雇主的通知不受影響
    assert (await notifications.get_unread_summary(users["client"])).total == 1


@pytest.mark.asyncio
async def test_cannot_mark_someone_elses_notification(notifications, order, users):
    [mine] = await notifications.get_my_notifications(users["provider"])
    with pytest.raises(Forbidden):
        await notifications.mark_notification_as_read(mine.notification_id, users["client"])

    read = await notifications.mark_notification_as_read(mine.notification_id, users["provider"])
    assert read.is_read is True
