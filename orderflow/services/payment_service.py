# orderflow/services/payment_service.py
# 付款排程協調：每個里程碑一筆排程，只有「核准里程碑」會把它變成 paid
import logging
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.core.exceptions import InvalidState
from orderflow.models.milestone import Milestone
from orderflow.models.order import Order
from orderflow.models.payment_schedule import PaymentScheduleEntry, PaymentScheduleStatusEnum
from orderflow.models.user import User
from orderflow.repositories.order_repo import OrderRepository
from orderflow.repositories.payment_repo import PaymentRepository
from orderflow.schemas.milestone_schema import PaymentScheduleEntryOut, PaymentScheduleOut
from orderflow.services.order_workflow import load_order, resolve_party

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.order_repo = OrderRepository(db)
        self.payment_repo = PaymentRepository(db)

    def add_schedule_entry(self, order: Order, milestone: Milestone) -> PaymentScheduleEntry:
        """
        與里程碑同時建立，金額相同，狀態 pending
        """
        entry = PaymentScheduleEntry(
            entry_id=str(uuid.uuid4()),
            milestone_id=milestone.milestone_id,
            milestone=milestone,
            position=milestone.position,
            amount=milestone.amount,
            status=PaymentScheduleStatusEnum.pending,
        )
        order.payment_schedule.append(entry)
        return entry

    def sync_entry_amount(self, order: Order, milestone: Milestone) -> None:
        """里程碑金額修改時，尚未付款的排程跟著調整"""
        entry = order.find_schedule_entry(milestone.milestone_id)
        if entry is None:
            self.add_schedule_entry(order, milestone)
            return
        if entry.status == PaymentScheduleStatusEnum.paid:
            raise InvalidState("此里程碑款項已釋放，金額不可修改")
        entry.amount = milestone.amount

    async def release_for_milestone(self, order: Order, milestone: Milestone) -> PaymentScheduleEntry:
        """
        (唯一寫入 paid 的路徑) 由核准里程碑呼叫，與核准在同一個交易中提交。
        - 排程 pending -> paid，不會重複釋放
        - 若金流閘道有對應的付款紀錄，標記為 completed (交給閘道放款)
        """
        entry = order.find_schedule_entry(milestone.milestone_id)
        if entry is None:
            logger.warning(f"訂單 {order.order_id} 的里程碑 {milestone.milestone_id} 缺少付款排程，補建")
            entry = self.add_schedule_entry(order, milestone)

        if entry.status == PaymentScheduleStatusEnum.paid:
            raise InvalidState("此里程碑款項已釋放")

        entry.status = PaymentScheduleStatusEnum.paid
        entry.paid_at = datetime.now()

        payment = await self.payment_repo.find_payment_by_order_and_milestone(
            order.order_id, milestone.milestone_id
        )
        if payment:
            payment.mark_completed()
            logger.info(f"金流紀錄 {payment.payment_id} 已標記完成")

        logger.info(f"訂單 {order.order_id} 里程碑 {milestone.milestone_id} 款項 {Decimal(entry.amount)} 已釋放")
        return entry

    async def get_payment_schedule(self, order_id: str, user: User) -> PaymentScheduleOut:
        """
        (雙方 / 管理員) 檢視付款排程與付款摘要
        """
        order = await load_order(self.order_repo, order_id)
        resolve_party(order, user)
        return PaymentScheduleOut(
            entries=[PaymentScheduleEntryOut.model_validate(p) for p in order.payment_schedule],
            total_paid=order.total_paid,
            escrow_balance=order.escrow_balance,
            payment_status=order.payment_status,
        )
