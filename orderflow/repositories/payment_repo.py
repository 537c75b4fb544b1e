# orderflow/repositories/payment_repo.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import Optional

from orderflow.models.payment import Payment


class PaymentRepository:
    """
    金流閘道付款紀錄的查詢 (訂單引擎只讀取並標記完成)
    """
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_payment_by_order_and_milestone(
        self, order_id: str, milestone_id: str
    ) -> Optional[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.order_id == order_id, Payment.milestone_id == milestone_id)
            .order_by(Payment.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()
