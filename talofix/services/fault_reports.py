"""
故障报修服务

- 住户创建报修单（租户与楼栋取自档案）
- 住户只能看到自己的报修单，其他租户内角色可以看到全租户的报修单
- 内容和图片只能由创建者在 open 状态下修改
- 状态变更走 FaultReportStatusWorkflow
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import uuid4

import structlog

from talofix.adapters.blobs import BlobStore, discard_blob, purge_prefix
from talofix.core.audit import AuditAction, TargetType, log_audit
from talofix.core.clock import Clock, utcnow
from talofix.core.config import settings
from talofix.core.errors import Conflict, InvalidArgument, NotFound, PermissionDenied, ServiceError
from talofix.core.fanout import FanoutResult
from talofix.core.guard import AuthorizationGuard
from talofix.core.rbac import TENANT_WIDE_READER_ROLES, WORKFLOW_ROLES
from talofix.database.models import (
    FaultReport,
    FaultReportStatus,
    FaultReportUrgency,
    Profile,
    UserRole,
)
from talofix.database.store import DocumentStore
from talofix.services.fault_workflow import FaultReportStatusWorkflow

logger = structlog.get_logger(__name__)

IMAGE_TYPES = ("image/jpeg", "image/png", "image/heic", "image/heif")

# 图片列表条件写入的重试次数
LIST_WRITE_ATTEMPTS = 5


def report_blob_prefix(tenant_id: str, report_id: str) -> str:
    """报修单图片的存储前缀"""
    return f"fault-reports/{tenant_id}/{report_id}/"


async def purge_report(
    store: DocumentStore,
    blobs: BlobStore,
    report: FaultReport,
    log: Any = None,
) -> FanoutResult:
    """
    删除报修单及其图片

    图片尽力删除，失败只记录日志并计入返回的汇总；报修单文档删除失败向上抛出
    """
    log = (log or logger).bind(report_id=report.id)
    result = await purge_prefix(
        blobs,
        report_blob_prefix(report.tenant_id, report.id),
        "fault_report_blobs",
        log=log,
    )
    await store.delete(FaultReport, report.id)
    log.info("fault_report_purged", blobs=result.summary())
    return result


@dataclass
class FaultReportDraft:
    title: str
    description: str
    location: str = ""
    urgency: str = FaultReportUrgency.MEDIUM


class FaultReportService:
    """报修单服务"""

    def __init__(
        self,
        store: DocumentStore,
        blobs: BlobStore,
        guard: AuthorizationGuard,
        workflow: Optional[FaultReportStatusWorkflow] = None,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.blobs = blobs
        self.guard = guard
        self.workflow = workflow or FaultReportStatusWorkflow(clock=clock)
        self.clock = clock

    async def _load(self, caller: Profile, report_id: str) -> FaultReport:
        """读取报修单并校验租户；住户只能访问自己的报修单"""
        report = await self.store.get(FaultReport, report_id)
        if report is None:
            raise NotFound("报修单不存在")
        await self.guard.require_tenant_access(caller, report.tenant_id)
        if caller.role not in TENANT_WIDE_READER_ROLES and report.created_by != caller.id:
            raise PermissionDenied("只能访问自己的报修单")
        return report

    @staticmethod
    def _check_urgency(urgency: str) -> None:
        if urgency not in FaultReportUrgency.ALL:
            raise InvalidArgument("无效的紧急程度", details={"urgency": urgency})

    # ==================== 创建与读取 ====================

    async def create(self, caller: Profile, draft: FaultReportDraft) -> FaultReport:
        self.guard.require_role(caller.role, [UserRole.RESIDENT])
        self._check_urgency(draft.urgency)
        if not draft.title.strip() or not draft.description.strip():
            raise InvalidArgument("标题和描述不能为空")

        now = self.clock()
        report = await self.store.add(
            FaultReport(
                tenant_id=caller.tenant_id,
                building_id=caller.building_id,
                apartment_number=caller.apartment_number,
                created_by=caller.id,
                title=draft.title.strip(),
                description=draft.description.strip(),
                location=draft.location.strip(),
                urgency=draft.urgency,
                status=FaultReportStatus.OPEN,
                images=[],
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("fault_report_created", report_id=report.id, tenant_id=report.tenant_id)
        return report

    async def get(self, caller: Profile, report_id: str) -> FaultReport:
        return await self._load(caller, report_id)

    async def list_reports(
        self,
        caller: Profile,
        tenant_id: Optional[str] = None,
        building_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[FaultReport]:
        """
        列出报修单（最新在前）

        - 住户：只看自己的
        - 其他角色：全租户，可按楼栋/状态过滤
        - admin：需要指定自己创建的租户
        """
        tenant_id = tenant_id or caller.tenant_id
        await self.guard.require_tenant_access(caller, tenant_id)

        conditions = [FaultReport.tenant_id == tenant_id]
        if caller.role not in TENANT_WIDE_READER_ROLES:
            conditions.append(FaultReport.created_by == caller.id)
        if building_id:
            conditions.append(FaultReport.building_id == building_id)
        if status:
            if status not in FaultReportStatus.ALL:
                raise InvalidArgument("未知的报修状态", details={"status": status})
            conditions.append(FaultReport.status == status)

        return await self.store.find(
            FaultReport,
            *conditions,
            order_by=[FaultReport.created_at.desc()],
        )

    # ==================== 创建者修改 ====================

    async def _load_editable(self, caller: Profile, report_id: str) -> FaultReport:
        report = await self._load(caller, report_id)
        if report.created_by != caller.id:
            raise PermissionDenied("只有创建者可以修改报修单")
        if report.status != FaultReportStatus.OPEN:
            raise PermissionDenied("报修单已在处理中，无法修改")
        return report

    async def update(self, caller: Profile, report_id: str, changes: Dict[str, Any]) -> FaultReport:
        """创建者在 open 状态下修改标题/描述/位置/紧急程度/图片"""
        allowed = {"title", "description", "location", "urgency", "images"}
        values = {key: value for key, value in changes.items() if key in allowed and value is not None}
        if "urgency" in values:
            self._check_urgency(values["urgency"])
        for key in ("title", "description"):
            if key in values and not values[key].strip():
                raise InvalidArgument("标题和描述不能为空")

        report = await self._load_editable(caller, report_id)
        if not values:
            return report

        values["updated_at"] = self.clock()
        conditions = [FaultReport.status == FaultReportStatus.OPEN]
        if "images" in values:
            values["images_revision"] = report.images_revision + 1
            conditions.append(FaultReport.images_revision == report.images_revision)

        updated = await self.store.update(FaultReport, report.id, values, *conditions)
        if not updated:
            raise Conflict("报修单已变化，请刷新后重试")
        return await self.store.get(FaultReport, report.id)

    async def upload_image(
        self,
        caller: Profile,
        report_id: str,
        filename: str,
        content_type: str,
        data: bytes,
    ) -> str:
        """上传报修图片，返回公开地址"""
        if content_type not in IMAGE_TYPES:
            raise InvalidArgument("不支持的图片格式", details={"content_type": content_type})
        if len(data) > settings.ATTACHMENT_MAX_BYTES:
            raise InvalidArgument("图片过大")

        report = await self._load_editable(caller, report_id)

        path = report_blob_prefix(report.tenant_id, report.id) + str(uuid4())
        await self.blobs.put_object(path, data, content_type, {"filename": filename, "uploaded_by": caller.id})
        try:
            url = await self.blobs.make_public(path)
            await self._append_image(report, url)
        except ServiceError:
            await discard_blob(self.blobs, path)
            raise

        logger.info("fault_report_image_uploaded", report_id=report.id, path=path)
        return url

    async def _append_image(self, report: FaultReport, url: str) -> None:
        """以图片版本号和 open 状态为条件追加图片，版本号不匹配时重新读取后重试"""
        for _ in range(LIST_WRITE_ATTEMPTS):
            updated = await self.store.update(
                FaultReport,
                report.id,
                {
                    "images": list(report.images or []) + [url],
                    "images_revision": report.images_revision + 1,
                    "updated_at": self.clock(),
                },
                FaultReport.status == FaultReportStatus.OPEN,
                FaultReport.images_revision == report.images_revision,
            )
            if updated:
                return
            report = await self.store.get(FaultReport, report.id)
            if report is None:
                raise NotFound("报修单不存在")
            if report.status != FaultReportStatus.OPEN:
                break
        raise Conflict("报修单已变化，请刷新后重试")

    # ==================== 状态流转 ====================

    async def allowed_next_statuses(self, caller: Profile, report_id: str) -> List[str]:
        report = await self._load(caller, report_id)
        return self.workflow.allowed_next(report, caller.id, caller.role)

    async def change_status(
        self,
        caller: Profile,
        report_id: str,
        status: str,
        comment: Optional[str] = None,
    ) -> FaultReport:
        report = await self._load(caller, report_id)
        values = self.workflow.plan(report, status, caller.id, caller.role, comment=comment)

        # 以读取时的状态为条件写入，避免并发覆盖
        updated = await self.store.update(
            FaultReport,
            report.id,
            values,
            FaultReport.status == report.status,
        )
        if not updated:
            raise Conflict("报修单状态已变化，请刷新后重试")

        logger.info(
            "fault_report_status_changed",
            report_id=report.id,
            tenant_id=report.tenant_id,
            from_status=report.status,
            to_status=status,
            caller_id=caller.id,
        )
        await log_audit(
            self.store,
            actor=caller.id,
            action=AuditAction.FAULT_REPORT_STATUS_CHANGE,
            target_type=TargetType.FAULT_REPORT,
            target_id=report.id,
            payload={"from": report.status, "to": status, "comment": comment},
        )
        return await self.store.get(FaultReport, report.id)

    # ==================== 删除 ====================

    async def delete(self, caller: Profile, report_id: str) -> None:
        """工作流角色可以删除；创建者只能在 open 状态下删除"""
        report = await self._load(caller, report_id)
        if caller.role not in WORKFLOW_ROLES:
            if report.created_by != caller.id or report.status != FaultReportStatus.OPEN:
                raise PermissionDenied("无权删除该报修单")

        log = logger.bind(tenant_id=report.tenant_id, caller_id=caller.id)
        await purge_report(self.store, self.blobs, report, log=log)

        await log_audit(
            self.store,
            actor=caller.id,
            action=AuditAction.FAULT_REPORT_DELETE,
            target_type=TargetType.FAULT_REPORT,
            target_id=report.id,
        )
