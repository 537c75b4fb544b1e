# orderflow/schemas/user_schema.py
from pydantic import BaseModel, EmailStr, Field, field_validator, ConfigDict
import re
from orderflow.models.user import UserRoleEnum
from typing import Optional

# Token 回應的格式 (附上身分與角色，前端據此決定顯示雇主或服務提供者的訂單)
class Token(BaseModel):
    access_token: str
    token_type: str
    user_id: str
    role: UserRoleEnum

# (可選) Token 內的資料
class TokenData(BaseModel):
    user_id: str
    role: str


# 1. 註冊請求 Body
class UserCreate(BaseModel):
    email: EmailStr
    # 密碼要求英數混合
    password: str = Field(..., min_length=8)
    # 只能自行註冊為雇主或服務提供者，管理員由後台建立
    role: UserRoleEnum
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: UserRoleEnum) -> UserRoleEnum:
        if v == UserRoleEnum.admin:
            raise ValueError("不能自行註冊為管理員")
        return v

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        """
        驗證密碼是否至少8碼且包含英文和數字
        """
        if not re.search(r'(?=.*[a-zA-Z])(?=.*[0-9])', v):
            raise ValueError('密碼必須包含英文和數字')
        if len(v) < 8:
            raise ValueError('密碼長度至少為 8 個字元')
        return v

# 2. 註冊/查詢使用者的安全回應
class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str # 我們在 MySQL 中使用 CHAR(36)，但在 Pydantic 中視為 str
    email: EmailStr
    role: UserRoleEnum
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool

# 3. 服務提供者的統計 (訂單完成、雇主評價時更新)
class ProviderStatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    completed_projects: int
    rating: float
    total_reviews: int

class UserMeOut(UserOut):
    provider_stats: Optional[ProviderStatsOut] = None
