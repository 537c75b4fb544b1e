# orderflow/models/milestone.py

import enum
import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, TEXT, DECIMAL, TIMESTAMP, INT, BOOLEAN, JSON, ForeignKey, Enum, CHAR
)
from orderflow.core.database import Base


class MilestoneStatusEnum(str, enum.Enum):
    pending = "pending"
    in_progress = "in-progress"
    completed = "completed"
    approved = "approved"


# 已交付 (計算「全部完成」時，已核准的里程碑也算交付)
DELIVERED_MILESTONE_STATUSES = (MilestoneStatusEnum.completed, MilestoneStatusEnum.approved)


class Milestone(Base):
    """
    訂單內的一個交付單位。
    只隸屬於 Order，以 milestone_id 定址，不持有反向關聯。
    """
    __tablename__ = "order_milestones"

    milestone_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(CHAR(36), ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True)
    # 在訂單中的排序 (0 起算)
    position = Column(INT, nullable=False)

    title = Column(String(255), nullable=False)
    description = Column(TEXT)
    amount = Column(DECIMAL(10, 2), nullable=False)
    due_date = Column(TIMESTAMP, nullable=True)

    status = Column(
        Enum(MilestoneStatusEnum, values_callable=lambda obj: [e.value for e in obj], name="milestone_status_enum"),
        default=MilestoneStatusEnum.pending,
        nullable=False
    )
    completed_date = Column(TIMESTAMP, nullable=True)
    approved_date = Column(TIMESTAMP, nullable=True)

    # [{filename, path, size, content_type, uploaded_at}]
    deliverables = Column(JSON, default=list, nullable=False)
    client_approved = Column(BOOLEAN, default=False, nullable=False)
    notes = Column(TEXT)

    created_at = Column(TIMESTAMP, default=datetime.now)
