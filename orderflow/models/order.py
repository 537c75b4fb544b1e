# orderflow/models/order.py

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
    Column, String, TEXT, DECIMAL, TIMESTAMP, INT, ForeignKey, Enum, CHAR
)
from sqlalchemy.orm import relationship
from orderflow.core.database import Base
from orderflow.models.milestone import Milestone
from orderflow.models.payment_schedule import PaymentScheduleEntry, PaymentScheduleStatusEnum
from orderflow.models.dispute import Dispute, REFUND_RESOLUTION
from orderflow.models.review import OrderReview


class OrderStatusEnum(str, enum.Enum):
    pending = "pending"
    in_progress = "in-progress"
    review = "review"
    completed = "completed"
    cancelled = "cancelled"
    disputed = "disputed"


TERMINAL_ORDER_STATUSES = (OrderStatusEnum.completed, OrderStatusEnum.cancelled)


class Order(Base):
    """
    一個雇主與一個服務提供者之間的合約 (聚合根)。
    里程碑、付款排程、爭議、評價都是 Order 擁有的子紀錄，
    所有變更都透過 Order 一次寫入 (version 欄位做樂觀鎖)。
    """
    __tablename__ = "orders"

    order_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # --- 來源 (不可變) ---
    quote_id = Column(CHAR(36), ForeignKey("quotes.quote_id", ondelete="RESTRICT"), unique=True, nullable=False, index=True)
    rfq_id = Column(CHAR(36), ForeignKey("rfqs.rfq_id", ondelete="RESTRICT"), nullable=False, index=True)
    client_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False, index=True)
    provider_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False, index=True)

    # --- 合約內容 ---
    title = Column(String(255), nullable=False)
    description = Column(TEXT)
    amount = Column(DECIMAL(10, 2), nullable=False)

    # --- 狀態管理 ---
    status = Column(
        Enum(OrderStatusEnum, values_callable=lambda obj: [e.value for e in obj], name="order_status_enum"),
        default=OrderStatusEnum.pending,
        nullable=False,
        index=True
    )
    # 由已核准里程碑推導，不可直接設定
    progress = Column(INT, default=0, nullable=False)

    # --- 時程 ---
    start_date = Column(TIMESTAMP, nullable=True)
    deadline = Column(TIMESTAMP, nullable=True)
    completed_date = Column(TIMESTAMP, nullable=True)

    version = Column(INT, nullable=False)
    created_at = Column(TIMESTAMP, default=datetime.now)
    updated_at = Column(TIMESTAMP, default=datetime.now)

    __mapper_args__ = {"version_id_col": version}

    # --- 子紀錄 (以 milestone_id 定址) ---
    milestones = relationship(
        "Milestone",
        order_by="Milestone.position",
        cascade="all, delete-orphan",
    )
    payment_schedule = relationship(
        "PaymentScheduleEntry",
        order_by="PaymentScheduleEntry.position",
        cascade="all, delete-orphan",
    )
    disputes = relationship(
        "Dispute",
        order_by="Dispute.raised_at",
        cascade="all, delete-orphan",
    )
    reviews = relationship(
        "OrderReview",
        cascade="all, delete-orphan",
    )

    # 關聯回 User
    client = relationship("User", foreign_keys=[client_id])
    provider = relationship("User", foreign_keys=[provider_id])

    # --- 查找輔助 ---
    def find_milestone(self, milestone_id: str) -> Optional[Milestone]:
        return next((m for m in self.milestones if m.milestone_id == milestone_id), None)

    def find_schedule_entry(self, milestone_id: str) -> Optional[PaymentScheduleEntry]:
        return next((p for p in self.payment_schedule if p.milestone_id == milestone_id), None)

    def touch(self) -> None:
        """標記聚合已變更，讓 version 檢查一定發生"""
        self.updated_at = datetime.now()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    @property
    def milestone_amount_total(self) -> Decimal:
        return sum((Decimal(m.amount) for m in self.milestones), Decimal("0"))

    @property
    def dispute(self) -> Optional[Dispute]:
        """最新一筆爭議 (唯一決定流向的那筆)"""
        return self.disputes[-1] if self.disputes else None

    @property
    def client_review(self) -> Optional[OrderReview]:
        return next((r for r in self.reviews if r.reviewer_role == "client"), None)

    @property
    def provider_review(self) -> Optional[OrderReview]:
        return next((r for r in self.reviews if r.reviewer_role == "provider"), None)

    # --- 付款摘要 (推導值) ---
    @property
    def total_paid(self) -> Decimal:
        return sum(
            (Decimal(p.amount) for p in self.payment_schedule if p.status == PaymentScheduleStatusEnum.paid),
            Decimal("0")
        )

    @property
    def escrow_balance(self) -> Decimal:
        return Decimal(self.amount) - self.total_paid

    @property
    def payment_status(self) -> str:
        if (
            self.status == OrderStatusEnum.cancelled
            and self.dispute is not None
            and self.dispute.resolution == REFUND_RESOLUTION
        ):
            return "refunded"
        paid_count = sum(1 for p in self.payment_schedule if p.status == PaymentScheduleStatusEnum.paid)
        if paid_count == 0:
            return "pending"
        if paid_count == len(self.payment_schedule):
            return "completed"
        return "partial"
