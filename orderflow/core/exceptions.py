# orderflow/core/exceptions.py
# 訂單引擎的錯誤分類：每一種錯誤對應一個 HTTP 狀態碼與機器可讀的 error_code
from fastapi import HTTPException, status


class OrderEngineError(HTTPException):
    """
    所有訂單引擎錯誤的基底類別。
    繼承 HTTPException，Service 層直接 raise 即可被 FastAPI 捕捉。
    """
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "order_engine_error"
    default_detail = "訂單操作失敗"

    def __init__(self, detail: str | None = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class NotFound(OrderEngineError):
    """訂單 / 里程碑 / 報價不存在"""
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"
    default_detail = "資源不存在"


class Forbidden(OrderEngineError):
    """操作者不是此訂單的雇主、服務提供者或管理員"""
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "forbidden"
    default_detail = "你無權執行此操作"


class InvalidTransition(OrderEngineError):
    """訂單狀態轉移不在允許的狀態表中"""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "invalid_transition"
    default_detail = "不合法的狀態轉移"


class InvalidState(OrderEngineError):
    """里程碑 / 爭議 / 訂單不在操作所需的狀態"""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "invalid_state"
    default_detail = "目前狀態無法執行此操作"


class LimitExceeded(OrderEngineError):
    """里程碑金額總和將超過訂單總額"""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "limit_exceeded"
    default_detail = "里程碑金額總和超過訂單金額"


class Conflict(OrderEngineError):
    """訂單爭議中 (已鎖定)，或偵測到並行寫入衝突"""
    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"
    default_detail = "訂單目前已被鎖定"


class AlreadyExists(Conflict):
    """同一報價重複建立訂單，或同一方重複評價"""
    error_code = "already_exists"
    default_detail = "資源已存在"
