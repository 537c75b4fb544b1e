# orderflow/models/user.py
from sqlalchemy import Column, String, Boolean, Enum, CHAR
from orderflow.core.database import Base
import enum
from sqlalchemy.orm import relationship 

# 對應 SQL 中的 ENUM 型別
class UserRoleEnum(str, enum.Enum):
    client = "client"
    provider = "provider"
    admin = "admin"

class User(Base):
    __tablename__ = "users"

    # 基本欄位
    user_id = Column(CHAR(36), primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    role = Column(Enum(UserRoleEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    is_active = Column(Boolean, default=True)

    # 服務提供者的統計資料 (完成案件數、評分)
    provider_profile = relationship(
        "ProviderProfile", # <-- 使用字串
        back_populates="user", 
        uselist=False, 
        cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        """通知訊息中顯示的名稱 (沒有名字時退回 email)"""
        return self.first_name or self.email
