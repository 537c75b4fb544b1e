# orderflow/models/payment.py
# 金流閘道的付款紀錄 (外部協作者)。訂單引擎只在里程碑核准時將其標記為完成。
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DECIMAL, TIMESTAMP, ForeignKey, Enum, CHAR, JSON
from orderflow.core.database import Base

PaymentStatusEnum = Enum(
    'pending', 'processing', 'completed', 'failed', 'refunded',
    name="payment_status_enum"
)
PaymentMethodEnum = Enum('stripe', 'paypal', 'bank-transfer', name="payment_method_enum")


class Payment(Base):
    __tablename__ = "payments"

    payment_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False, index=True)
    order_id = Column(CHAR(36), ForeignKey("orders.order_id", ondelete="RESTRICT"), nullable=True, index=True)
    milestone_id = Column(CHAR(36), nullable=True, index=True)

    amount = Column(DECIMAL(10, 2), nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    payment_method = Column(PaymentMethodEnum, default='stripe', nullable=False)
    # 閘道端的交易編號 (stripe payment intent / paypal transaction ...)
    gateway_reference = Column(String(255))

    status = Column(PaymentStatusEnum, default='pending', nullable=False, index=True)
    metadata_ = Column("metadata", JSON)

    created_at = Column(TIMESTAMP, default=datetime.now)
    completed_at = Column(TIMESTAMP, nullable=True)

    def mark_completed(self) -> None:
        """里程碑核准 -> 通知閘道端放款"""
        self.status = 'completed'
        self.completed_at = datetime.now()
