# orderflow/schemas/dispute_schema.py

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

from orderflow.models.dispute import DisputeStatusEnum

class DisputeCreate(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)

class DisputeResolve(BaseModel):
    # "refund" -> 取消訂單；其他任何文字 (例如 "continue") -> 恢復進行
    resolution: str = Field(..., min_length=1, max_length=100)
    notes: str

class DisputeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    dispute_id: str
    raised_by: str
    reason: str
    description: str
    raised_at: datetime
    status: DisputeStatusEnum
    resolved_at: Optional[datetime] = None
    resolution: Optional[str] = None
    resolution_notes: Optional[str] = None
