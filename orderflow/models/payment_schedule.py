# orderflow/models/payment_schedule.py

import enum
import uuid
from sqlalchemy import Column, DECIMAL, TIMESTAMP, INT, ForeignKey, Enum, CHAR
from sqlalchemy.orm import relationship
from orderflow.core.database import Base


class PaymentScheduleStatusEnum(str, enum.Enum):
    pending = "pending"
    paid = "paid"


class PaymentScheduleEntry(Base):
    """
    每個里程碑對應一筆款項釋放紀錄 (1:1，以 milestone_id 對應)。
    只會因為里程碑被核准而變成 paid，不會回到 pending。
    """
    __tablename__ = "payment_schedule_entries"

    entry_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(CHAR(36), ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True)
    milestone_id = Column(
        CHAR(36), ForeignKey("order_milestones.milestone_id", ondelete="CASCADE"),
        unique=True, nullable=False, index=True
    )
    position = Column(INT, nullable=False)

    amount = Column(DECIMAL(10, 2), nullable=False)
    status = Column(
        Enum(PaymentScheduleStatusEnum, values_callable=lambda obj: [e.value for e in obj], name="payment_schedule_status_enum"),
        default=PaymentScheduleStatusEnum.pending,
        nullable=False
    )
    paid_at = Column(TIMESTAMP, nullable=True)

    # 單向關聯，只在建立時指派，讓 flush 先寫入里程碑
    milestone = relationship("Milestone", lazy="raise")
