# orderflow/schemas/order_schema.py

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime

from orderflow.models.order import OrderStatusEnum
from orderflow.schemas.milestone_schema import MilestoneCreate, MilestoneOut, PaymentScheduleEntryOut
from orderflow.schemas.dispute_schema import DisputeOut
from orderflow.schemas.review_schema import ReviewOut

# --- 1. 由已接受的報價建立訂單 (Input) ---
# 不指定 milestones 時，後端依報價金額產生預設的三段式里程碑
class OrderCreate(BaseModel):
    start_date: Optional[datetime] = None
    milestones: Optional[List[MilestoneCreate]] = Field(None, min_length=1)

# --- 2. 狀態更新 (Input) ---
class OrderStatusUpdate(BaseModel):
    status: OrderStatusEnum # 後端 Service 會以狀態機驗證是否合法

# --- 3. 完整訂單 (Output) ---
class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: str
    quote_id: str
    rfq_id: str
    client_id: str
    provider_id: str
    title: str
    description: Optional[str] = None
    amount: float
    status: OrderStatusEnum
    progress: int
    start_date: Optional[datetime] = None
    deadline: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime

    # 子紀錄
    milestones: List[MilestoneOut]
    payment_schedule: List[PaymentScheduleEntryOut]
    dispute: Optional[DisputeOut] = None
    client_review: Optional[ReviewOut] = None
    provider_review: Optional[ReviewOut] = None

    # 付款摘要 (推導值)
    total_paid: float
    escrow_balance: float
    payment_status: str

# --- 4. 列表 (Output) ---
class Pagination(BaseModel):
    total: int
    page: int
    pages: int

class OrderCounts(BaseModel):
    active: int
    completed: int

class OrderStatusStat(BaseModel):
    status: OrderStatusEnum
    count: int
    total_value: float

class ClientOrderListOut(BaseModel):
    orders: List[OrderOut]
    pagination: Pagination
    counts: OrderCounts

class ProviderOrderListOut(BaseModel):
    orders: List[OrderOut]
    pagination: Pagination
    earnings: float

class AdminOrderListOut(BaseModel):
    orders: List[OrderOut]
    pagination: Pagination
    stats: List[OrderStatusStat]
