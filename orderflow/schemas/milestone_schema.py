# orderflow/schemas/milestone_schema.py

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime

from orderflow.models.milestone import MilestoneStatusEnum
from orderflow.models.order import OrderStatusEnum
from orderflow.models.payment_schedule import PaymentScheduleStatusEnum

# --- 1. 交付物 (檔案參照) ---
class DeliverableRef(BaseModel):
    filename: str = Field(..., max_length=255)
    path: str = Field(..., max_length=500)
    size: Optional[int] = Field(None, ge=0)
    content_type: Optional[str] = None
    uploaded_at: Optional[datetime] = None

# --- 2. 建立里程碑 (Input) ---
# 用於建立訂單時指定里程碑，或進行中追加里程碑
class MilestoneCreate(BaseModel):
    title: str = Field(..., max_length=255)
    description: Optional[str] = None
    amount: float = Field(..., gt=0)
    due_date: datetime

# --- 3. 服務提供者修改里程碑 (Input) ---
class MilestoneUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    amount: Optional[float] = Field(None, gt=0)
    due_date: Optional[datetime] = None
    notes: Optional[str] = None

# --- 4. 里程碑操作 (Input) ---
class MilestoneComplete(BaseModel):
    deliverables: Optional[List[DeliverableRef]] = None

class MilestoneApprove(BaseModel):
    feedback: Optional[str] = None

class RevisionRequest(BaseModel):
    feedback: str = Field(..., min_length=1)

# --- 5. Output ---
class MilestoneOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    milestone_id: str
    position: int
    title: str
    description: Optional[str] = None
    amount: float
    due_date: Optional[datetime] = None
    status: MilestoneStatusEnum
    completed_date: Optional[datetime] = None
    approved_date: Optional[datetime] = None
    deliverables: List[DeliverableRef] = []
    client_approved: bool
    notes: Optional[str] = None

class PaymentScheduleEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    milestone_id: str
    amount: float
    status: PaymentScheduleStatusEnum
    paid_at: Optional[datetime] = None

class MilestoneListOut(BaseModel):
    milestones: List[MilestoneOut]
    progress: int

class MilestoneActionOut(BaseModel):
    """complete / approve / revision 之後回傳里程碑與訂單的最新狀態"""
    milestone: MilestoneOut
    progress: int
    order_status: OrderStatusEnum

class PaymentScheduleOut(BaseModel):
    entries: List[PaymentScheduleEntryOut]
    total_paid: float
    escrow_balance: float
    payment_status: str
