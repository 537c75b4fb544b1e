# orderflow/schemas/notification_schema.py

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Dict, Optional

from orderflow.models.notification import NotificationTypeEnum


class OrderEventMetadata(BaseModel):
    """
    訂單事件附帶的資料。常見欄位列在下面，其餘依事件而定：
    order_started 帶 quote_id / amount，order_status_change 帶 from / to，
    deliverable_uploaded 帶 path，dispute_raised 帶 reason，review_received 帶 rating
    """
    model_config = ConfigDict(extra="allow")

    order_id: Optional[str] = None
    milestone_id: Optional[str] = None
    order_status: Optional[str] = None
    progress: Optional[int] = None
    feedback: Optional[str] = None
    resolution: Optional[str] = None


class NotificationOut(BaseModel):
    """
    用於 API 回傳的通知格式
    """
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    notification_id: str
    user_id: str
    order_id: Optional[str] = None
    type: NotificationTypeEnum
    title: str
    message: Optional[str] = None
    # ORM 欄位叫 metadata_ (metadata 是 SQLAlchemy 保留字)
    metadata: Optional[OrderEventMetadata] = Field(None, validation_alias="metadata_")
    link_url: Optional[str] = None
    is_read: bool
    created_at: datetime


class UnreadSummary(BaseModel):
    total: int
    # order_id -> 未讀數 (只列出有未讀的訂單)
    by_order: Dict[str, int]


class MarkAllReadOut(BaseModel):
    updated: int
