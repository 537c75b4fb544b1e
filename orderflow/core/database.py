from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from orderflow.core.config import settings

# 建立非同步引擎 (MySQL: mysql+aiomysql，開發 / 測試: sqlite+aiosqlite)
engine = create_async_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True, # 每次從連線池取連線前，先 PING 一次，確保連線有效
    echo=settings.SQL_ECHO,
)

if make_url(settings.DATABASE_URL).get_backend_name() == "sqlite":
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        # SQLite 預設不檢查外鍵，刪除訂單時里程碑 / 付款排程要跟著刪除
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# 訂單的樂觀鎖重試會 rollback，expire_on_commit=False 讓提交後的物件仍可讀取
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()

async def get_db() -> AsyncSession:
    """FastAPI Dependency: 每個請求一個 Session，請求失敗時回滾未提交的變更"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """啟動時建立所有資料表 (需先匯入所有 Model)"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
