# orderflow/core/config.py
# 應用程式設定 (例如資料庫連線字串、JWT 秘鑰、訂單引擎策略等)
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # 環境變數檔案
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # 資料庫設定
    DATABASE_URL: str
    # (可選) 設為 True 會在 console 印出 SQL 語句
    SQL_ECHO: bool = False
    # 啟動時自動建立資料表 (開發 / SQLite 用)
    AUTO_CREATE_TABLES: bool = True

    # JWT 設定
    JWT_SECRET_KEY: str
    # JWT 演算法
    JWT_ALGORITHM: str = "HS256"
    # 存取令牌過期時間（分鐘）
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # 日誌等級
    LOG_LEVEL: str = "INFO"
    # CORS 允許來源 (在生產環境中應限制)
    CORS_ALLOW_ORIGINS: List[str] = ["*"]

    # --- 訂單引擎策略 ---
    # 第一次上傳交付物時，是否一併將里程碑標記為完成
    AUTO_COMPLETE_ON_FIRST_UPLOAD: bool = True
    # 訂單寫入衝突時，最多重新驗證幾次
    ORDER_WRITE_MAX_ATTEMPTS: int = 3

    # --- 交付物上傳 ---
    DELIVERABLE_UPLOAD_DIR: str = "static/uploads/deliverables"
    DELIVERABLE_URL_PREFIX: str = "/static/uploads/deliverables/"
    DELIVERABLE_MAX_BYTES: int = 20 * 1024 * 1024

# 建立設定實例
settings = Settings()
