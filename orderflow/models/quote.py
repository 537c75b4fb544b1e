# orderflow/models/quote.py
# 報價 / 需求單 (RFQ)：訂單建立時的種子資料來源
import uuid
from sqlalchemy import (
    Column, String, TEXT, DECIMAL, TIMESTAMP, ForeignKey, Enum, CHAR
)
from sqlalchemy.orm import relationship
from datetime import datetime
from orderflow.core.database import Base

RfqStatusEnum = Enum('open', 'closed', 'completed', name="rfq_status_enum")
QuoteStatusEnum = Enum('pending', 'accepted', 'declined', 'withdrawn', name="quote_status_enum")


class Rfq(Base):
    __tablename__ = "rfqs"

    rfq_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(TEXT)
    status = Column(RfqStatusEnum, default='open', nullable=False)

    # 接受報價後回填
    selected_quote_id = Column(CHAR(36), nullable=True)
    selected_provider_id = Column(CHAR(36), nullable=True)

    created_at = Column(TIMESTAMP, default=datetime.now)

    quotes = relationship("Quote", back_populates="rfq")


class Quote(Base):
    __tablename__ = "quotes"

    quote_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    rfq_id = Column(CHAR(36), ForeignKey("rfqs.rfq_id", ondelete="RESTRICT"), nullable=False, index=True)
    provider_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False, index=True)

    amount = Column(DECIMAL(10, 2), nullable=False)
    proposal = Column(TEXT)
    status = Column(QuoteStatusEnum, default='pending', nullable=False)

    # 被接受後關聯到訂單
    order_id = Column(CHAR(36), nullable=True)
    responded_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.now)

    rfq = relationship("Rfq", back_populates="quotes")
    provider = relationship("User", foreign_keys=[provider_id])
