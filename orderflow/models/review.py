# orderflow/models/review.py

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, TEXT, TIMESTAMP, INT, JSON, ForeignKey, Enum, CHAR, UniqueConstraint, CheckConstraint
)
from orderflow.core.database import Base

ReviewerRoleEnum = Enum('client', 'provider', name="reviewer_role_enum")


class OrderReview(Base):
    __tablename__ = "order_reviews"
    __table_args__ = (
        # 每一方只能評價一次
        UniqueConstraint("order_id", "reviewer_role", name="uq_order_review_role"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_order_review_rating"),
    )

    review_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(CHAR(36), ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False)
    reviewer_role = Column(ReviewerRoleEnum, nullable=False)

    rating = Column(INT, nullable=False)
    comment = Column(TEXT)
    # 例如 {"communication": 5, "quality": 4}
    categories = Column(JSON)
    submitted_at = Column(TIMESTAMP, default=datetime.now, nullable=False)
