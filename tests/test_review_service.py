from decimal import Decimal

import pytest
from sqlalchemy import select

from orderflow.core.exceptions import AlreadyExists, Forbidden, InvalidState
from orderflow.models.order import OrderStatusEnum
from orderflow.models.provider_profile import ProviderProfile
from orderflow.schemas.milestone_schema import MilestoneApprove, MilestoneComplete
from orderflow.schemas.order_schema import OrderCreate
from orderflow.schemas.review_schema import ReviewCreate
from orderflow.services.milestone_service import MilestoneService
from orderflow.services.order_service import OrderService
from orderflow.services.review_service import ReviewService


@pytest.fixture
async def completed_order(db_session, users, quote):
    orders = OrderService(db_session)
    milestones = MilestoneService(db_session)
    order = await orders.create_order_from_quote(quote.quote_id, OrderCreate(), users["client"])
    for m in order.milestones:
        await milestones.complete_milestone(order.order_id, m.milestone_id, MilestoneComplete(), users["provider"])
    for m in order.milestones:
        await milestones.approve_milestone(order.order_id, m.milestone_id, MilestoneApprove(), users["client"])
    completed = await orders.get_order_details(order.order_id, users["client"])
    assert completed.status == OrderStatusEnum.completed
    return completed


async def provider_profile(db_session, users):
    return (await db_session.execute(
        select(ProviderProfile).where(ProviderProfile.user_id == users["provider"].user_id)
    )).scalars().first()


@pytest.mark.asyncio
async def test_second_client_review_is_rejected(db_session, completed_order, users):
    service = ReviewService(db_session)
    review = await service.leave_review(
        completed_order.order_id,
        ReviewCreate(rating=5, comment="Great work", categories={"communication": 5, "quality": 5}),
        users["client"],
    )
    assert review.reviewer_role == "client"
    assert review.rating == 5

    with pytest.raises(AlreadyExists):
        await service.leave_review(completed_order.order_id, ReviewCreate(rating=1), users["client"])


@pytest.mark.asyncio
async def test_both_parties_review_once(db_session, completed_order, users):
    service = ReviewService(db_session)
    await service.leave_review(completed_order.order_id, ReviewCreate(rating=4), users["client"])
    await service.leave_review(completed_order.order_id, ReviewCreate(rating=5), users["provider"])

    details = await OrderService(db_session).get_order_details(completed_order.order_id, users["admin"])
    assert details.client_review.rating == 4
    assert details.provider_review.rating == 5


@pytest.mark.asyncio
async def test_client_review_updates_provider_rating(db_session, completed_order, users):
    await ReviewService(db_session).leave_review(completed_order.order_id, ReviewCreate(rating=4), users["client"])

    profile = await provider_profile(db_session, users)
    assert profile.total_reviews == 1
    assert Decimal(profile.rating) == Decimal("4.00")
    assert profile.completed_projects == 1


@pytest.mark.asyncio
async def test_provider_review_does_not_touch_rating(db_session, completed_order, users):
    await ReviewService(db_session).leave_review(completed_order.order_id, ReviewCreate(rating=2), users["provider"])

    profile = await provider_profile(db_session, users)
    assert profile.total_reviews == 0


@pytest.mark.asyncio
async def test_review_requires_completed_order(db_session, users, quote):
    order = await OrderService(db_session).create_order_from_quote(quote.quote_id, OrderCreate(), users["client"])
    with pytest.raises(InvalidState):
        await ReviewService(db_session).leave_review(order.order_id, ReviewCreate(rating=5), users["client"])


@pytest.mark.asyncio
async def test_admin_and_outsiders_cannot_review(db_session, completed_order, users):
    service = ReviewService(db_session)
    with pytest.raises(Forbidden):
        await service.leave_review(completed_order.order_id, ReviewCreate(rating=5), users["admin"])
    with pytest.raises(Forbidden):
        await service.leave_review(completed_order.order_id, ReviewCreate(rating=5), users["outsider"])
