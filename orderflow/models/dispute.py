# orderflow/models/dispute.py

import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, TEXT, TIMESTAMP, ForeignKey, Enum, CHAR
from orderflow.core.database import Base


class DisputeStatusEnum(str, enum.Enum):
    pending = "pending"
    resolved = "resolved"


# 只有 refund 會讓訂單取消，其餘 (包含 continue 與任何自訂文字) 都恢復進行
REFUND_RESOLUTION = "refund"
CONTINUE_RESOLUTION = "continue"


class Dispute(Base):
    """
    訂單爭議紀錄。保留所有歷史，但只有最新一筆決定訂單的流向。
    """
    __tablename__ = "order_disputes"

    dispute_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(CHAR(36), ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True)

    raised_by = Column(CHAR(36), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False)
    reason = Column(String(255), nullable=False)
    description = Column(TEXT, nullable=False)
    raised_at = Column(TIMESTAMP, default=datetime.now, nullable=False)

    status = Column(
        Enum(DisputeStatusEnum, values_callable=lambda obj: [e.value for e in obj], name="dispute_status_enum"),
        default=DisputeStatusEnum.pending,
        nullable=False
    )
    resolved_at = Column(TIMESTAMP, nullable=True)
    resolved_by = Column(CHAR(36), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=True)
    resolution = Column(String(100), nullable=True)
    resolution_notes = Column(TEXT)

    @property
    def is_active(self) -> bool:
        return self.status == DisputeStatusEnum.pending
