# orderflow/repositories/quote_repo.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import joinedload
from typing import Optional

from orderflow.models.quote import Quote


class QuoteRepository:
    """
    報價 / 需求單目錄 (外部協作者)：只提供建立訂單所需的讀取
    """
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_quote_by_id_with_rfq(self, quote_id: str) -> Optional[Quote]:
        stmt = (
            select(Quote)
            .where(Quote.quote_id == quote_id)
            .options(joinedload(Quote.rfq))
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()
