# orderflow/schemas/review_schema.py

from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, Optional
from datetime import datetime

class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    # 各面向評分，例如 {"communication": 5, "quality": 4}
    categories: Optional[Dict[str, int]] = None

class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    review_id: str
    reviewer_id: str
    reviewer_role: str
    rating: int
    comment: Optional[str] = None
    categories: Optional[Dict[str, int]] = None
    submitted_at: datetime
