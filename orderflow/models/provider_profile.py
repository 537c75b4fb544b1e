# orderflow/models/provider_profile.py
import uuid
from sqlalchemy import Column, ForeignKey, DECIMAL, INT, CHAR
from sqlalchemy.orm import relationship
from orderflow.core.database import Base

class ProviderProfile(Base):
    __tablename__ = "provider_profiles"
    profile_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="CASCADE"), unique=True, nullable=False, index=True)

    # 訂單完成時 +1
    completed_projects = Column(INT, default=0, nullable=False)
    # 雇主評價的平均分數
    rating = Column(DECIMAL(3, 2), default=0, nullable=False)
    total_reviews = Column(INT, default=0, nullable=False)

    # 1-to-1 反向關聯到 User
    user = relationship("User", back_populates="provider_profile")
