# orderflow/services/milestone_service.py

from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status, UploadFile
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional
import aiofiles
import logging
import os
import uuid

from orderflow.core.config import settings
from orderflow.core.exceptions import InvalidState, LimitExceeded
from orderflow.models.milestone import Milestone, MilestoneStatusEnum
from orderflow.models.notification import NotificationTypeEnum
from orderflow.models.order import Order, OrderStatusEnum
from orderflow.models.user import User
from orderflow.repositories.order_repo import OrderRepository
from orderflow.schemas.milestone_schema import (
    DeliverableRef, MilestoneActionOut, MilestoneApprove, MilestoneComplete,
    MilestoneCreate, MilestoneListOut, MilestoneOut, MilestoneUpdate, RevisionRequest
)
from orderflow.services.notification_service import NotificationService
from orderflow.services.payment_service import PaymentService
from orderflow.services.provider_stats_service import ProviderStatsService
from orderflow.services.order_workflow import (
    Actor, Party, advance_after_approval, advance_after_delivery, client_link, ensure_milestones_unlocked,
    get_milestone, load_order, provider_link, recalculate_progress, require_party, resolve_party
)
from orderflow.utils.milestone_plan import to_money

logger = logging.getLogger(__name__)

# 可以被標記完成的里程碑狀態
COMPLETABLE_STATUSES = (MilestoneStatusEnum.pending, MilestoneStatusEnum.in_progress)


class MilestoneService:
    def __init__(self, db: AsyncSession, auto_complete_on_first_upload: Optional[bool] = None):
        self.db = db
        self.order_repo = OrderRepository(db)
        self.payment_service = PaymentService(db)
        self.stats_service = ProviderStatsService(db)
        self.notification_service = NotificationService(db)
        # None -> 依設定檔 (AUTO_COMPLETE_ON_FIRST_UPLOAD)
        self._auto_complete_on_first_upload = auto_complete_on_first_upload

    @property
    def auto_complete_on_first_upload(self) -> bool:
        if self._auto_complete_on_first_upload is None:
            return settings.AUTO_COMPLETE_ON_FIRST_UPLOAD
        return self._auto_complete_on_first_upload

    # --- 聚合內部操作 (不提交) ---
    def append_milestone(
        self,
        order: Order,
        title: str,
        amount: Decimal,
        due_date: Optional[datetime],
        description: Optional[str] = None
    ) -> Milestone:
        """
        新增里程碑 (pending) 與對應的付款排程 (pending)
        milestone_id 先在記憶體中產生，讓排程可以直接對應
        """
        milestone = Milestone(
            milestone_id=str(uuid.uuid4()),
            position=len(order.milestones),
            title=title,
            description=description,
            amount=to_money(amount),
            due_date=due_date,
            status=MilestoneStatusEnum.pending,
            deliverables=[],
            client_approved=False,
        )
        order.milestones.append(milestone)
        self.payment_service.add_schedule_entry(order, milestone)
        return milestone

    def _mark_completed(
        self,
        order: Order,
        milestone: Milestone,
        deliverables: Optional[List[Dict]] = None
    ) -> None:
        if milestone.status not in COMPLETABLE_STATUSES:
            raise InvalidState(f"無法完成狀態為 {MilestoneStatusEnum(milestone.status).value} 的里程碑")

        milestone.status = MilestoneStatusEnum.completed
        milestone.completed_date = datetime.now()
        if deliverables:
            # JSON 欄位需重新指派才會被偵測到變更
            milestone.deliverables = [*(milestone.deliverables or []), *deliverables]

        advance_after_delivery(order)
        order.touch()

    def _action_result(self, order: Order, milestone_id: str) -> MilestoneActionOut:
        return MilestoneActionOut(
            milestone=MilestoneOut.model_validate(order.find_milestone(milestone_id)),
            progress=order.progress,
            order_status=order.status,
        )

    @staticmethod
    def _deliverable_to_json(ref: DeliverableRef) -> Dict:
        data = ref.model_dump()
        data["uploaded_at"] = (ref.uploaded_at or datetime.now()).isoformat()
        return data

    # --- 查詢 ---
    async def list_milestones(self, order_id: str, user: User) -> MilestoneListOut:
        """
        (雙方 / 管理員) 里程碑列表與目前進度
        """
        order = await load_order(self.order_repo, order_id)
        resolve_party(order, user)
        return MilestoneListOut(
            milestones=[MilestoneOut.model_validate(m) for m in order.milestones],
            progress=order.progress,
        )

    async def list_deliverables(self, order_id: str, milestone_id: str, user: User) -> List[DeliverableRef]:
        order = await load_order(self.order_repo, order_id)
        resolve_party(order, user)
        milestone = get_milestone(order, milestone_id)
        return [DeliverableRef.model_validate(d) for d in (milestone.deliverables or [])]

    # --- 服務提供者 ---
    async def add_milestone(self, order_id: str, data: MilestoneCreate, user: User) -> MilestoneOut:
        """
        (服務提供者) 進行中的訂單追加里程碑。
        里程碑金額總和不得超過訂單金額。
        """
        user = Actor.of(user)
        amount = to_money(data.amount)

        async def operation():
            order = await load_order(self.order_repo, order_id)
            require_party(order, user, [Party.provider], "只有服務提供者可以新增里程碑")
            ensure_milestones_unlocked(order)
            if order.status != OrderStatusEnum.in_progress:
                raise InvalidState("只能在進行中的訂單新增里程碑")

            new_total = order.milestone_amount_total + amount
            if new_total > to_money(order.amount):
                raise LimitExceeded(f"里程碑金額總和 ({new_total}) 將超過訂單金額 ({to_money(order.amount)})")

            milestone = self.append_milestone(
                order,
                title=data.title,
                description=data.description,
                amount=amount,
                due_date=data.due_date,
            )
            order.deadline = order.milestones[-1].due_date
            # 分母改變，進度需重算
            recalculate_progress(order)
            order.touch()
            return order, milestone.milestone_id

        order, milestone_id = await self.order_repo.commit_with_retry(operation)
        logger.info(f"訂單 {order_id} 新增里程碑 {milestone_id} (金額 {amount})")

        await self.notification_service.notify(
            user_id=order.client_id,
            type=NotificationTypeEnum.milestone_added,
            title=f"訂單「{order.title}」新增了里程碑",
            message=f"{user.display_name} 新增了里程碑: {data.title}",
            metadata={"order_id": order_id, "milestone_id": milestone_id},
            link_url=client_link(order),
        )

        order = await load_order(self.order_repo, order_id)
        return MilestoneOut.model_validate(order.find_milestone(milestone_id))

    async def update_milestone(
        self, order_id: str, milestone_id: str, data: MilestoneUpdate, user: User
    ) -> MilestoneOut:
        """
        (服務提供者) 修改里程碑欄位；已核准的里程碑不可修改
        """
        user = Actor.of(user)
        update_data = data.model_dump(exclude_unset=True)

        async def operation():
            order = await load_order(self.order_repo, order_id)
            require_party(order, user, [Party.provider], "只有服務提供者可以修改里程碑")
            ensure_milestones_unlocked(order)
            milestone = get_milestone(order, milestone_id)
            if milestone.status == MilestoneStatusEnum.approved:
                raise InvalidState("已核准的里程碑不可修改")

            amount = update_data.pop("amount", None)
            if amount is not None:
                amount = to_money(amount)
                new_total = order.milestone_amount_total - to_money(milestone.amount) + amount
                if new_total > to_money(order.amount):
                    raise LimitExceeded(f"里程碑金額總和 ({new_total}) 將超過訂單金額 ({to_money(order.amount)})")
                milestone.amount = amount
                self.payment_service.sync_entry_amount(order, milestone)

            for key, value in update_data.items():
                # 必填欄位不接受清空
                if value is None and key in ("title", "due_date"):
                    continue
                setattr(milestone, key, value)

            order.deadline = order.milestones[-1].due_date
            order.touch()
            return order

        order = await self.order_repo.commit_with_retry(operation)
        logger.info(f"訂單 {order_id} 里程碑 {milestone_id} 已更新")

        milestone = order.find_milestone(milestone_id)
        await self.notification_service.notify(
            user_id=order.client_id,
            type=NotificationTypeEnum.milestone_updated,
            title=f"里程碑「{milestone.title}」已被修改",
            metadata={"order_id": order_id, "milestone_id": milestone_id},
            link_url=client_link(order),
        )

        order = await load_order(self.order_repo, order_id)
        return MilestoneOut.model_validate(order.find_milestone(milestone_id))

    async def complete_milestone(
        self, order_id: str, milestone_id: str, data: MilestoneComplete, user: User
    ) -> MilestoneActionOut:
        """
        (服務提供者) 標記里程碑完成 (可附交付物)。
        所有里程碑都交付後，訂單自動進入驗收 (review)。
        """
        user = Actor.of(user)
        deliverables = [self._deliverable_to_json(d) for d in (data.deliverables or [])]

        async def operation():
            order = await load_order(self.order_repo, order_id)
            require_party(order, user, [Party.provider], "只有服務提供者可以完成里程碑")
            ensure_milestones_unlocked(order)
            milestone = get_milestone(order, milestone_id)
            self._mark_completed(order, milestone, deliverables)
            return order

        order = await self.order_repo.commit_with_retry(operation)
        milestone = order.find_milestone(milestone_id)
        logger.info(f"訂單 {order_id} 里程碑 {milestone_id} 已完成，訂單狀態: {order.status.value}")

        await self.notification_service.notify(
            user_id=order.client_id,
            type=NotificationTypeEnum.milestone_completed,
            title=f"里程碑「{milestone.title}」已完成",
            message=f"{user.display_name} 完成了里程碑: {milestone.title}，請前往驗收",
            metadata={"order_id": order_id, "milestone_id": milestone_id, "order_status": order.status.value},
            link_url=client_link(order),
        )

        order = await load_order(self.order_repo, order_id)
        return self._action_result(order, milestone_id)

    async def _save_upload_file(self, file: UploadFile) -> Dict:
        """
        將交付物存到本機，回傳檔案參照
        """
        content = await file.read()
        if len(content) > settings.DELIVERABLE_MAX_BYTES:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="檔案過大"
            )

        upload_dir = Path(settings.DELIVERABLE_UPLOAD_DIR)
        upload_dir.mkdir(parents=True, exist_ok=True)
        original_name = file.filename or "deliverable"
        stored_name = f"{uuid.uuid4()}{Path(original_name).suffix}"
        try:
            async with aiofiles.open(upload_dir / stored_name, 'wb') as f:
                await f.write(content)
        except OSError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"檔案儲存失敗: {str(e)}"
            )

        return {
            "filename": original_name,
            "path": f"{settings.DELIVERABLE_URL_PREFIX}{stored_name}",
            "size": len(content),
            "content_type": file.content_type,
            "uploaded_at": datetime.now().isoformat(),
        }

    def _remove_uploaded_file(self, deliverable: Dict) -> None:
        stored_name = deliverable["path"].rsplit("/", 1)[-1]
        file_path = Path(settings.DELIVERABLE_UPLOAD_DIR) / stored_name
        if os.path.exists(file_path):
            os.remove(file_path)

    def _check_upload_target(self, order: Order, milestone_id: str, user: User) -> Milestone:
        require_party(order, user, [Party.provider], "只有服務提供者可以上傳交付物")
        ensure_milestones_unlocked(order)
        milestone = get_milestone(order, milestone_id)
        if milestone.status == MilestoneStatusEnum.approved:
            raise InvalidState("已核准的里程碑不可再上傳交付物")
        return milestone

    async def upload_deliverable(
        self, order_id: str, milestone_id: str, file: UploadFile, user: User
    ) -> MilestoneActionOut:
        """
        (服務提供者) 上傳交付物。
        AUTO_COMPLETE_ON_FIRST_UPLOAD 開啟時，pending / in-progress 的里程碑會一併標記完成。
        """
        user = Actor.of(user)
        # 步驟 1: 先驗證，避免留下孤兒檔案
        order = await load_order(self.order_repo, order_id)
        self._check_upload_target(order, milestone_id, user)

        # 步驟 2: 儲存檔案
        deliverable = await self._save_upload_file(file)

        # 步驟 3: 以最新快照重新驗證後寫入
        async def operation():
            order = await load_order(self.order_repo, order_id)
            milestone = self._check_upload_target(order, milestone_id, user)
            milestone.deliverables = [*(milestone.deliverables or []), deliverable]

            auto_completed = False
            if self.auto_complete_on_first_upload and milestone.status in COMPLETABLE_STATUSES:
                self._mark_completed(order, milestone)
                auto_completed = True
            order.touch()
            return order, auto_completed

        try:
            order, auto_completed = await self.order_repo.commit_with_retry(operation)
        except Exception:
            self._remove_uploaded_file(deliverable)
            raise

        milestone = order.find_milestone(milestone_id)
        logger.info(f"訂單 {order_id} 里程碑 {milestone_id} 上傳交付物 {deliverable['filename']} (自動完成: {auto_completed})")

        await self.notification_service.notify(
            user_id=order.client_id,
            type=NotificationTypeEnum.milestone_completed if auto_completed else NotificationTypeEnum.deliverable_uploaded,
            title=f"里程碑「{milestone.title}」已上傳交付物",
            message=f"{user.display_name} 上傳了 {deliverable['filename']}",
            metadata={"order_id": order_id, "milestone_id": milestone_id, "path": deliverable["path"]},
            link_url=client_link(order),
        )

        order = await load_order(self.order_repo, order_id)
        return self._action_result(order, milestone_id)

    # --- 雇主 ---
    async def approve_milestone(
        self, order_id: str, milestone_id: str, data: MilestoneApprove, user: User
    ) -> MilestoneActionOut:
        """
        (雇主) 核准已完成的里程碑。依序：
        1. 付款排程 pending -> paid
        2. 重新計算進度
        3. 進度 100 -> 訂單完成 (服務提供者完成案件數 +1)
        4. 通知服務提供者
        """
        user = Actor.of(user)

        async def operation():
            order = await load_order(self.order_repo, order_id)
            require_party(order, user, [Party.client], "只有雇主可以核准里程碑")
            ensure_milestones_unlocked(order)
            milestone = get_milestone(order, milestone_id)
            if milestone.status != MilestoneStatusEnum.completed:
                raise InvalidState("只能核准已完成的里程碑")

            milestone.status = MilestoneStatusEnum.approved
            milestone.approved_date = datetime.now()
            milestone.client_approved = True
            if data.feedback:
                milestone.notes = data.feedback

            await self.payment_service.release_for_milestone(order, milestone)
            completed = advance_after_approval(order)
            order.touch()
            return order, completed

        order, completed = await self.order_repo.commit_with_retry(operation)
        # 副作用失敗會 rollback 讓物件過期，先取出通知需要的值
        provider_id, progress, link = order.provider_id, order.progress, provider_link(order)
        milestone_title = order.find_milestone(milestone_id).title
        logger.info(f"訂單 {order_id} 里程碑 {milestone_id} 已核准，進度 {progress}%")

        if completed:
            await self.stats_service.increment_completed_projects(provider_id)

        await self.notification_service.notify(
            user_id=provider_id,
            type=NotificationTypeEnum.milestone_approved,
            title=f"里程碑「{milestone_title}」已核准",
            message=f"{user.display_name} 核准了里程碑: {milestone_title}",
            metadata={
                "order_id": order_id,
                "milestone_id": milestone_id,
                "progress": progress,
                "feedback": data.feedback,
            },
            link_url=link,
        )

        order = await load_order(self.order_repo, order_id)
        return self._action_result(order, milestone_id)

    async def request_revision(
        self, order_id: str, milestone_id: str, data: RevisionRequest, user: User
    ) -> MilestoneActionOut:
        """
        (雇主) 退回已完成的里程碑 (completed -> in-progress)。
        已核准的里程碑不可退回。
        """
        user = Actor.of(user)

        async def operation():
            order = await load_order(self.order_repo, order_id)
            require_party(order, user, [Party.client], "只有雇主可以要求修改")
            ensure_milestones_unlocked(order)
            milestone = get_milestone(order, milestone_id)
            if milestone.status != MilestoneStatusEnum.completed:
                raise InvalidState("只能對已完成的里程碑要求修改")

            milestone.status = MilestoneStatusEnum.in_progress
            milestone.notes = data.feedback
            order.touch()
            return order

        order = await self.order_repo.commit_with_retry(operation)
        milestone = order.find_milestone(milestone_id)
        logger.info(f"訂單 {order_id} 里程碑 {milestone_id} 被要求修改")

        await self.notification_service.notify(
            user_id=order.provider_id,
            type=NotificationTypeEnum.revision_requested,
            title=f"里程碑「{milestone.title}」需要修改",
            message=data.feedback,
            metadata={"order_id": order_id, "milestone_id": milestone_id},
            link_url=provider_link(order),
        )

        order = await load_order(self.order_repo, order_id)
        return self._action_result(order, milestone_id)
