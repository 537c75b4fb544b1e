from sqlalchemy.ext.asyncio import AsyncSession
from orderflow.core.exceptions import AlreadyExists
from orderflow.repositories.user_repo import UserRepository
from orderflow.core.security import verify_password, create_access_token, get_password_hash
from orderflow.models.user import User
from orderflow.schemas.user_schema import Token, UserCreate
import logging
import uuid

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: AsyncSession):
        self.user_repo = UserRepository(db)

    async def authenticate_user(self, email: str, password: str) -> User | None:
        """
        驗證帳號密碼；不存在、停權或密碼錯誤都回傳 None
        """
        user = await self.user_repo.get_user_by_email(email)
        if not user or not user.is_active:
            return None
        if not verify_password(plain_password=password, hashed_password=user.password_hash):
            return None
        return user

    async def register_user(self, user_create: UserCreate) -> User:
        """
        註冊雇主或服務提供者 (服務提供者會同時建立統計資料)
        """
        if await self.user_repo.get_user_by_email(user_create.email):
            raise AlreadyExists("此 Email 已經被註冊")

        new_user = User(
            user_id=str(uuid.uuid4()),
            email=user_create.email,
            password_hash=get_password_hash(user_create.password),
            first_name=user_create.first_name,
            last_name=user_create.last_name,
            role=user_create.role,
            is_active=True
        )

        created_user = await self.user_repo.create_user(new_user)
        logger.info(f"新使用者註冊: {created_user.user_id} ({created_user.role.value})")
        return created_user

    def issue_token(self, user: User) -> Token:
        """
        Token 內只放訂單權限判斷需要的 user_id 與 role
        """
        access_token = create_access_token(
            data={"sub": user.email, "user_id": str(user.user_id), "role": user.role.value}
        )
        return Token(access_token=access_token, token_type="bearer", user_id=user.user_id, role=user.role)
