import os

# Settings 在匯入時就會讀取環境變數
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from orderflow.core.database import Base
from orderflow.models.user import User, UserRoleEnum
from orderflow.models.provider_profile import ProviderProfile
from orderflow.models.quote import Rfq, Quote
from orderflow.models import milestone, payment_schedule, dispute, review, order, payment, notification  # noqa: F401


async def build_session_factory(url: str):
    engine = create_async_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session():
    """In-memory SQLite，每個測試一個全新的資料庫"""
    engine, session_factory = await build_session_factory("sqlite+aiosqlite:///:memory:")
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def session_factory(tmp_path):
    """
    檔案型 SQLite：每個 Session 各自取得連線，用來模擬兩個同時進行的請求
    """
    engine, factory = await build_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'orderflow.db'}")
    yield factory
    await engine.dispose()


def make_user(user_id: str, role: UserRoleEnum, first_name: str) -> User:
    return User(
        user_id=user_id,
        email=f"{user_id}@example.com",
        password_hash="not-a-real-hash",
        first_name=first_name,
        role=role,
        is_active=True,
    )


async def seed_users(session: AsyncSession) -> dict:
    client = make_user("client-1", UserRoleEnum.client, "Alice")
    provider = make_user("provider-1", UserRoleEnum.provider, "Bob")
    admin = make_user("admin-1", UserRoleEnum.admin, "Root")
    outsider = make_user("outsider-1", UserRoleEnum.client, "Eve")
    session.add_all([client, provider, admin, outsider])
    session.add(ProviderProfile(
        user_id=provider.user_id, completed_projects=0, rating=Decimal("0"), total_reviews=0
    ))
    await session.commit()
    # 與 Session 分離，服務層 rollback 後測試仍可讀取欄位
    session.expunge_all()
    return {"client": client, "provider": provider, "admin": admin, "outsider": outsider}


async def seed_quote(session: AsyncSession, users: dict) -> Quote:
    """雇主的需求單與服務提供者金額 1000 的報價"""
    rfq = Rfq(
        rfq_id="rfq-1",
        client_id=users["client"].user_id,
        title="Company website",
        description="Landing page and CMS",
        status="open",
    )
    new_quote = Quote(
        quote_id="quote-1",
        rfq_id=rfq.rfq_id,
        provider_id=users["provider"].user_id,
        amount=Decimal("1000.00"),
        proposal="Three phases",
        status="pending",
    )
    session.add_all([rfq, new_quote])
    await session.commit()
    session.expunge_all()
    return new_quote


@pytest.fixture
async def users(db_session):
    return await seed_users(db_session)


@pytest.fixture
async def quote(db_session, users):
    return await seed_quote(db_session, users)


@pytest.fixture
async def seeded_factory(session_factory):
    """檔案型資料庫，已有使用者與報價；回傳 (session_factory, users, quote)"""
    async with session_factory() as session:
        seeded_users = await seed_users(session)
        seeded_quote = await seed_quote(session, seeded_users)
    return session_factory, seeded_users, seeded_quote
