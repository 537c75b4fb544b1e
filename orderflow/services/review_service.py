# orderflow/services/review_service.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from datetime import datetime
import logging
import uuid

from orderflow.core.exceptions import AlreadyExists, InvalidState
from orderflow.models.notification import NotificationTypeEnum
from orderflow.models.order import OrderStatusEnum
from orderflow.models.review import OrderReview
from orderflow.models.user import User
from orderflow.repositories.order_repo import OrderRepository
from orderflow.schemas.review_schema import ReviewCreate, ReviewOut
from orderflow.services.notification_service import NotificationService
from orderflow.services.provider_stats_service import ProviderStatsService
from orderflow.services.order_workflow import Actor, Party, client_link, load_order, provider_link, require_party

logger = logging.getLogger(__name__)


class ReviewService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.order_repo = OrderRepository(db)
        self.stats_service = ProviderStatsService(db)
        self.notification_service = NotificationService(db)

    async def leave_review(self, order_id: str, data: ReviewCreate, user: User) -> ReviewOut:
        """
        (雙方) 訂單完成後評價，每一方只能評價一次。
        雇主的評價會更新服務提供者的平均評分。
        """
        user = Actor.of(user)

        async def operation():
            order = await load_order(self.order_repo, order_id)
            party = require_party(order, user, [Party.client, Party.provider], "只有訂單雙方可以評價")
            if order.status != OrderStatusEnum.completed:
                raise InvalidState("訂單完成後才能評價")

            existing = order.client_review if party == Party.client else order.provider_review
            if existing is not None:
                raise AlreadyExists("你已經評價過此訂單")

            review = OrderReview(
                review_id=str(uuid.uuid4()),
                reviewer_id=user.user_id,
                reviewer_role=party.value,
                rating=data.rating,
                comment=data.comment,
                categories=data.categories,
                submitted_at=datetime.now(),
            )
            order.reviews.append(review)
            order.touch()
            return order, party, review

        try:
            order, party, review = await self.order_repo.commit_with_retry(operation)
        except IntegrityError:
            # (order_id, reviewer_role) unique，同時送出時由資料庫擋下第二筆
            raise AlreadyExists("你已經評價過此訂單")

        review_out = ReviewOut.model_validate(review)
        logger.info(f"訂單 {order_id} 收到 {party.value} 評價: {data.rating} 顆星")

        if party == Party.client:
            recipient_id, link = order.provider_id, provider_link(order)
        else:
            recipient_id, link = order.client_id, client_link(order)
        provider_id, title = order.provider_id, order.title

        if party == Party.client:
            await self.stats_service.update_rating(provider_id, data.rating)

        await self.notification_service.notify(
            user_id=recipient_id,
            type=NotificationTypeEnum.review_received,
            title=f"你在訂單「{title}」收到了評價",
            message=data.comment,
            metadata={"order_id": order_id, "rating": data.rating},
            link_url=link,
        )

        return review_out
