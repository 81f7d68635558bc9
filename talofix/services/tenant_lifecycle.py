"""
租户级联删除

删除顺序（各步骤之间没有事务，每一步独立尽力完成）：
1. 住户邀请码：已使用的先删身份账户和档案，再删邀请码
2. 报修单：先删图片，再删文档（图片失败单独汇总为 fault_report_blobs）
3. 维修/服务公司邀请码：同第 1 步
4. 公告及其附件（附件失败单独汇总为 announcement_blobs）
5. 租户所有者账户（已注册时）以及遗留的本租户档案
6. 租户文档

单个条目失败只记录日志，不中断步骤，也不中断整体流程。
各步骤每次都重新查询当前状态，中途取消后可以安全地重新执行。
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, Type

import structlog

from talofix.adapters.blobs import BlobStore
from talofix.adapters.identity import IdentityAdapter, delete_account_if_exists
from talofix.core.audit import AuditAction, TargetType, log_audit
from talofix.core.errors import ServiceError
from talofix.core.fanout import FanoutResult, fan_out
from talofix.core.guard import AuthorizationGuard
from talofix.database.models import (
    Announcement,
    FaultReport,
    ManagementInvite,
    Profile,
    ResidentInvite,
    ServiceCompanyInvite,
    Tenant,
)
from talofix.database.store import DocumentStore
from talofix.services.announcements import purge_announcement
from talofix.services.fault_reports import purge_report

logger = structlog.get_logger(__name__)


@dataclass
class CascadeReport:
    """级联删除汇总（仅用于日志与审计，不返回给调用方）"""
    tenant_id: str
    steps: List[FanoutResult] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(step.failed for step in self.steps)

    def summary(self) -> dict:
        return {step.step: step.summary() for step in self.steps}


class TenantLifecycleCoordinator:
    """租户生命周期协调器"""

    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityAdapter,
        blobs: BlobStore,
        guard: AuthorizationGuard,
    ):
        self.store = store
        self.identity = identity
        self.blobs = blobs
        self.guard = guard

    async def delete_tenant(self, caller: Profile, tenant_id: str) -> CascadeReport:
        """
        级联删除租户

        只有创建该租户的管理员可以删除。租户文档删除成功即视为成功，
        子步骤的失败只记录日志和审计。
        """
        tenant = await self.guard.get_owned_tenant(caller, tenant_id)
        log = logger.bind(tenant_id=tenant.id, caller_id=caller.id)
        log.info("tenant_cascade_started")

        report = CascadeReport(tenant_id=tenant.id)

        # 1. 住户邀请码
        report.steps.append(await self._purge_invites(ResidentInvite, "resident_invites", tenant.id, log))

        # 2. 报修单及图片
        report_blobs = FanoutResult(step="fault_report_blobs")

        async def remove_report(item: FaultReport) -> None:
            report_blobs.merge(await purge_report(self.store, self.blobs, item, log=log))

        report.steps.append(
            await self._step(
                "fault_reports",
                lambda: self.store.find(FaultReport, FaultReport.tenant_id == tenant.id),
                remove_report,
                log,
            )
        )
        report.steps.append(self._blob_step(report_blobs, log))

        # 3. 维修/服务公司邀请码
        report.steps.append(await self._purge_invites(ManagementInvite, "management_invites", tenant.id, log))
        report.steps.append(
            await self._purge_invites(ServiceCompanyInvite, "service_company_invites", tenant.id, log)
        )

        # 4. 公告及附件
        announcement_blobs = FanoutResult(step="announcement_blobs")

        async def remove_announcement(item: Announcement) -> None:
            announcement_blobs.merge(await purge_announcement(self.store, self.blobs, item, log=log))

        report.steps.append(
            await self._step(
                "announcements",
                lambda: self.store.find(Announcement, Announcement.tenant_id == tenant.id),
                remove_announcement,
                log,
            )
        )
        report.steps.append(self._blob_step(announcement_blobs, log))

        # 5. 租户所有者账户与遗留档案
        if tenant.is_registered and tenant.user_id:
            report.steps.append(
                await self._step(
                    "owner_account",
                    lambda: self._as_list([tenant.user_id]),
                    self._remove_user,
                    log,
                    key=str,
                )
            )
        report.steps.append(
            await self._step(
                "remaining_profiles",
                lambda: self.store.find(Profile, Profile.tenant_id == tenant.id),
                lambda item: self._remove_user(item.id),
                log,
            )
        )

        # 6. 租户文档
        await self.store.delete(Tenant, tenant.id)

        log.info("tenant_cascade_finished", failed=report.failed, steps=report.summary())
        await log_audit(
            self.store,
            actor=caller.id,
            action=AuditAction.TENANT_DELETE,
            target_type=TargetType.TENANT,
            target_id=tenant.id,
            payload={"name": tenant.name, "failed": report.failed, "steps": report.summary()},
        )
        return report

    @staticmethod
    async def _as_list(items: Iterable[Any]) -> List[Any]:
        return list(items)

    async def _step(
        self,
        step: str,
        query: Callable[[], Awaitable[List[Any]]],
        worker: Callable[[Any], Awaitable[Any]],
        log: Any,
        key: Callable[[Any], str] = lambda item: item.id,
    ) -> FanoutResult:
        """查询本步骤的条目并扇出处理；查询失败本身也只记录日志"""
        try:
            items = await query()
        except ServiceError as exc:
            log.error("tenant_cascade_query_failed", step=step, error=str(exc))
            return FanoutResult(step=step, errors=[(step, str(exc))])

        result = await fan_out(step, items, worker, key=key, log=log)
        log.info("tenant_cascade_step_finished", step=step, **result.summary())
        return result

    @staticmethod
    def _blob_step(result: FanoutResult, log: Any) -> FanoutResult:
        """对象删除汇总作为独立步骤记录"""
        log.info("tenant_cascade_step_finished", step=result.step, **result.summary())
        return result

    async def _purge_invites(self, model: Type[Any], step: str, tenant_id: str, log: Any) -> FanoutResult:
        async def remove(invite: Any) -> None:
            if invite.is_used and invite.used_by_user_id:
                await self._remove_user(invite.used_by_user_id)
            await self.store.delete(model, invite.id)

        return await self._step(
            step,
            lambda: self.store.find(model, model.tenant_id == tenant_id),
            remove,
            log,
        )

    async def _remove_user(self, user_id: str) -> None:
        """先删身份账户（不存在视为已删除），再删档案"""
        await delete_account_if_exists(self.identity, user_id)
        await self.store.delete(Profile, user_id)
