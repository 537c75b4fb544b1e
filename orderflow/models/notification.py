# orderflow/models/notification.py

import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, TEXT, BOOLEAN, CHAR, ForeignKey, TIMESTAMP, JSON, Enum
from sqlalchemy.orm import relationship
from orderflow.core.database import Base


class NotificationTypeEnum(str, enum.Enum):
    order_started = "order_started"
    order_status_change = "order_status_change"
    milestone_added = "milestone_added"
    milestone_updated = "milestone_updated"
    milestone_completed = "milestone_completed"
    milestone_approved = "milestone_approved"
    revision_requested = "revision_requested"
    deliverable_uploaded = "deliverable_uploaded"
    dispute_raised = "dispute_raised"
    dispute_resolved = "dispute_resolved"
    review_received = "review_received"


class Notification(Base):
    __tablename__ = "notifications"

    notification_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    
    # (重要) 關聯到接收通知的 user
    user_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)

    # 訂單事件的通知會記下訂單，方便依訂單篩選與批次已讀
    order_id = Column(CHAR(36), ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=True, index=True)

    type = Column(
        Enum(NotificationTypeEnum, values_callable=lambda obj: [e.value for e in obj], name="notification_type_enum"),
        nullable=False
    )
    title = Column(String(255), nullable=False)
    message = Column(TEXT)
    # e.g. {"order_id": ..., "milestone_id": ...}
    metadata_ = Column("metadata", JSON)
    
    # (關鍵) 點擊通知後要導向的前端 URL
    link_url = Column(String(500)) 
    
    is_read = Column(BOOLEAN, default=False, nullable=False)
    created_at = Column(TIMESTAMP, default=datetime.now)

    # 建立反向關聯
    user = relationship("User")
