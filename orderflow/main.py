import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from orderflow.core.config import settings
from orderflow.core.database import create_tables
from orderflow.core.exceptions import OrderEngineError
from orderflow.routers import (
    auth_router, user_router,
    order_router, milestone_router, notification_router
)

# --- 匯入所有 Model 檔案 ---
# 都在應用程式啟動時被 SQLAlchemy 註冊。
from orderflow.models import user
from orderflow.models import provider_profile
from orderflow.models import quote
from orderflow.models import milestone
from orderflow.models import payment_schedule
from orderflow.models import dispute
from orderflow.models import review
from orderflow.models import order
from orderflow.models import payment
from orderflow.models import notification


# 設定基礎日誌
logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        await create_tables()
        logger.info("資料表已建立 (AUTO_CREATE_TABLES)")
    yield


app = FastAPI(title="Orderflow", lifespan=lifespan)

# --- 設定 CORS (跨來源資源共用) ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- 訂單引擎錯誤：回傳 detail 與機器可讀的 error ---
@app.exception_handler(OrderEngineError)
async def order_engine_error_handler(request: Request, exc: OrderEngineError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.error_code},
    )

# --- 交付物檔案 ---
app.mount(
    settings.DELIVERABLE_URL_PREFIX.rstrip("/"),
    StaticFiles(directory=settings.DELIVERABLE_UPLOAD_DIR, check_dir=False),
    name="deliverables"
)

# --- 根路徑 ---
@app.get("/")
def read_root():
    return {"status": "success", "message": "Backend is running!"}

# --- 載入 API 路由 ---
app.include_router(auth_router.router)
app.include_router(user_router.router)
app.include_router(order_router.router)
app.include_router(milestone_router.router)
app.include_router(notification_router.router)
