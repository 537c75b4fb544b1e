# orderflow/routers/milestone_router.py

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from orderflow.services.milestone_service import MilestoneService
from orderflow.schemas.milestone_schema import (
    DeliverableRef, MilestoneActionOut, MilestoneApprove, MilestoneComplete,
    MilestoneCreate, MilestoneListOut, MilestoneOut, MilestoneUpdate, RevisionRequest
)

from orderflow.models.user import User
from orderflow.core.security import get_current_user
from orderflow.core.database import get_db

router = APIRouter(
    prefix="/orders/{order_id}/milestones",
    tags=["Milestones"]
)

def get_milestone_service(db: AsyncSession = Depends(get_db)) -> MilestoneService:
    return MilestoneService(db)


@router.get(
    "",
    response_model=MilestoneListOut,
    summary="獲取里程碑列表"
)
async def api_list_milestones(
    order_id: str,
    service: MilestoneService = Depends(get_milestone_service),
    current_user: User = Depends(get_current_user)
):
    return await service.list_milestones(order_id, current_user)

@router.post(
    "",
    response_model=MilestoneOut,
    status_code=status.HTTP_201_CREATED,
    summary="新增里程碑"
)
async def api_add_milestone(
    order_id: str,
    milestone_data: MilestoneCreate,
    service: MilestoneService = Depends(get_milestone_service),
    current_user: User = Depends(get_current_user)
):
    """
    (服務提供者) 訂單進行中 (in-progress) 時追加里程碑。
    所有里程碑金額總和不得超過訂單金額。
    """
    return await service.add_milestone(order_id, milestone_data, current_user)

@router.put(
    "/{milestone_id}",
    response_model=MilestoneOut,
    summary="修改里程碑"
)
async def api_update_milestone(
    order_id: str,
    milestone_id: str,
    update_data: MilestoneUpdate,
    service: MilestoneService = Depends(get_milestone_service),
    current_user: User = Depends(get_current_user)
):
    """
    (服務提供者) 已核准的里程碑不可修改
    """
    return await service.update_milestone(order_id, milestone_id, update_data, current_user)

@router.post(
    "/{milestone_id}/complete",
    response_model=MilestoneActionOut,
    summary="標記里程碑完成"
)
async def api_complete_milestone(
    order_id: str,
    milestone_id: str,
    complete_data: MilestoneComplete,
    service: MilestoneService = Depends(get_milestone_service),
    current_user: User = Depends(get_current_user)
):
    """
    (服務提供者) 所有里程碑都完成後，訂單自動進入驗收 (review)
    """
    return await service.complete_milestone(order_id, milestone_id, complete_data, current_user)

@router.post(
    "/{milestone_id}/approve",
    response_model=MilestoneActionOut,
    summary="核准里程碑"
)
async def api_approve_milestone(
    order_id: str,
    milestone_id: str,
    approve_data: MilestoneApprove,
    service: MilestoneService = Depends(get_milestone_service),
    current_user: User = Depends(get_current_user)
):
    """
    (雇主) 核准後釋放對應款項並重新計算進度；進度 100% 時訂單自動完成
    """
    return await service.approve_milestone(order_id, milestone_id, approve_data, current_user)

@router.post(
    "/{milestone_id}/revision",
    response_model=MilestoneActionOut,
    summary="要求修改里程碑"
)
async def api_request_revision(
    order_id: str,
    milestone_id: str,
    revision_data: RevisionRequest,
    service: MilestoneService = Depends(get_milestone_service),
    current_user: User = Depends(get_current_user)
):
    return await service.request_revision(order_id, milestone_id, revision_data, current_user)

@router.post(
    "/{milestone_id}/deliverables",
    response_model=MilestoneActionOut,
    status_code=status.HTTP_201_CREATED,
    summary="上傳交付物"
)
async def api_upload_deliverable(
    order_id: str,
    milestone_id: str,
    file: UploadFile = File(...),
    service: MilestoneService = Depends(get_milestone_service),
    current_user: User = Depends(get_current_user)
):
    """
    (服務提供者) 上傳檔案 (multipart/form-data)。
    里程碑尚未完成時，第一次上傳會一併標記完成。
    """
    return await service.upload_deliverable(order_id, milestone_id, file, current_user)

@router.get(
    "/{milestone_id}/deliverables",
    response_model=List[DeliverableRef],
    summary="獲取交付物列表"
)
async def api_list_deliverables(
    order_id: str,
    milestone_id: str,
    service: MilestoneService = Depends(get_milestone_service),
    current_user: User = Depends(get_current_user)
):
    return await service.list_deliverables(order_id, milestone_id, current_user)
