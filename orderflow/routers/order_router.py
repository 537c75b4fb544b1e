# orderflow/routers/order_router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from orderflow.services.order_service import OrderService
from orderflow.services.payment_service import PaymentService
from orderflow.services.dispute_service import DisputeService
from orderflow.services.review_service import ReviewService
from orderflow.schemas.order_schema import (
    AdminOrderListOut, ClientOrderListOut, OrderCreate, OrderOut, OrderStatusUpdate, ProviderOrderListOut
)
from orderflow.schemas.milestone_schema import PaymentScheduleOut
from orderflow.schemas.dispute_schema import DisputeCreate, DisputeResolve
from orderflow.schemas.review_schema import ReviewCreate, ReviewOut
from orderflow.models.order import OrderStatusEnum

from orderflow.models.user import User
from orderflow.core.security import get_current_user, require_admin
from orderflow.core.database import get_db

router = APIRouter(
    prefix="/orders",
    tags=["Orders"]
)

# 輔助函式：在路由中快速實例化 Service
def get_order_service(db: AsyncSession = Depends(get_db)) -> OrderService:
    return OrderService(db)

def get_payment_service(db: AsyncSession = Depends(get_db)) -> PaymentService:
    return PaymentService(db)

def get_dispute_service(db: AsyncSession = Depends(get_db)) -> DisputeService:
    return DisputeService(db)

def get_review_service(db: AsyncSession = Depends(get_db)) -> ReviewService:
    return ReviewService(db)


@router.post(
    "/from-quote/{quote_id}",
    response_model=OrderOut,
    status_code=status.HTTP_201_CREATED,
    summary="由已接受的報價建立訂單"
)
async def api_create_order_from_quote(
    quote_id: str,
    order_data: OrderCreate,
    service: OrderService = Depends(get_order_service),
    current_user: User = Depends(get_current_user)
):
    """
    (雇主) 接受報價後建立訂單 (狀態 pending)。

    不指定 `milestones` 時，依報價金額自動產生 20% / 50% / 30% 三個里程碑。
    同一個報價只能建立一張訂單。
    """
    return await service.create_order_from_quote(quote_id, order_data, current_user)

@router.get(
    "/client",
    response_model=ClientOrderListOut,
    summary="獲取我的訂單 (雇主)"
)
async def api_get_client_orders(
    status: Optional[OrderStatusEnum] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: OrderService = Depends(get_order_service),
    current_user: User = Depends(get_current_user)
):
    return await service.get_client_orders(current_user, status=status, page=page, limit=limit)

@router.get(
    "/provider",
    response_model=ProviderOrderListOut,
    summary="獲取我的訂單 (服務提供者)"
)
async def api_get_provider_orders(
    status: Optional[OrderStatusEnum] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: OrderService = Depends(get_order_service),
    current_user: User = Depends(get_current_user)
):
    """
    (服務提供者) 我承接的訂單，`earnings` 為已完成訂單的金額總和
    """
    return await service.get_provider_orders(current_user, status=status, page=page, limit=limit)

@router.get(
    "/admin/all",
    response_model=AdminOrderListOut,
    summary="(管理員) 所有訂單與統計"
)
async def api_get_all_orders(
    status: Optional[OrderStatusEnum] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: OrderService = Depends(get_order_service),
    admin: User = Depends(require_admin)
):
    return await service.get_all_orders(status=status, page=page, limit=limit)

@router.get(
    "/admin/disputes",
    response_model=List[OrderOut],
    summary="(管理員) 爭議中的訂單"
)
async def api_get_disputed_orders(
    service: OrderService = Depends(get_order_service),
    admin: User = Depends(require_admin)
):
    """
    最新提出的爭議排在最前面
    """
    return await service.get_disputed_orders()

@router.get(
    "/{order_id}",
    response_model=OrderOut,
    summary="檢視訂單詳情"
)
async def api_get_order_details(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    current_user: User = Depends(get_current_user)
):
    """
    (雙方 / 管理員) 訂單詳情，包含里程碑、付款排程、爭議、評價與付款摘要
    """
    return await service.get_order_details(order_id, current_user)

@router.patch(
    "/{order_id}/status",
    response_model=OrderOut,
    summary="更新訂單狀態"
)
async def api_update_order_status(
    order_id: str,
    status_data: OrderStatusUpdate,
    service: OrderService = Depends(get_order_service),
    current_user: User = Depends(get_current_user)
):
    """
    (雙方 / 管理員) 明確更新訂單狀態。

    只接受狀態表中允許的轉移，例如:
    - pending -> in-progress / cancelled
    - in-progress -> review / cancelled
    - review -> completed (進度必須 100%) / in-progress

    爭議相關的轉移只能透過提出 / 裁決爭議。
    """
    return await service.update_order_status(order_id, status_data.status, current_user)

@router.get(
    "/{order_id}/payment-schedule",
    response_model=PaymentScheduleOut,
    summary="檢視付款排程"
)
async def api_get_payment_schedule(
    order_id: str,
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_user)
):
    return await service.get_payment_schedule(order_id, current_user)

@router.post(
    "/{order_id}/dispute",
    response_model=OrderOut,
    summary="提出爭議"
)
async def api_raise_dispute(
    order_id: str,
    dispute_data: DisputeCreate,
    service: DisputeService = Depends(get_dispute_service),
    current_user: User = Depends(get_current_user)
):
    """
    (雙方) 提出爭議後，所有里程碑操作會被暫停，直到管理員裁決
    """
    return await service.raise_dispute(order_id, dispute_data, current_user)

@router.post(
    "/{order_id}/dispute/resolve",
    response_model=OrderOut,
    summary="(管理員) 裁決爭議"
)
async def api_resolve_dispute(
    order_id: str,
    resolve_data: DisputeResolve,
    service: DisputeService = Depends(get_dispute_service),
    current_user: User = Depends(get_current_user)
):
    """
    - `refund`: 訂單取消
    - 其他 (例如 `continue`): 恢復進行 (已全部核准則直接完成)
    """
    # Service 層會驗證管理員身分
    return await service.resolve_dispute(order_id, resolve_data, current_user)

@router.post(
    "/{order_id}/review",
    response_model=ReviewOut,
    status_code=status.HTTP_201_CREATED,
    summary="評價訂單"
)
async def api_leave_review(
    order_id: str,
    review_data: ReviewCreate,
    service: ReviewService = Depends(get_review_service),
    current_user: User = Depends(get_current_user)
):
    """
    (雙方) 訂單完成後各自評價一次
    """
    return await service.leave_review(order_id, review_data, current_user)
