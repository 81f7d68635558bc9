"""
租户服务

平台管理员创建空壳租户，只能管理自己创建的租户
"""

from dataclasses import dataclass
from typing import Any, Dict, List

import structlog

from talofix.core.audit import AuditAction, TargetType, log_audit
from talofix.core.clock import Clock, utcnow
from talofix.core.errors import InvalidArgument
from talofix.core.guard import AuthorizationGuard
from talofix.core.rbac import ADMIN_ROLES
from talofix.database.models import Profile, Tenant
from talofix.database.store import DocumentStore

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = ("name", "address", "city", "postal_code", "is_active")


@dataclass
class TenantDraft:
    name: str
    address: str
    city: str
    postal_code: str


class TenantService:
    """租户管理"""

    def __init__(self, store: DocumentStore, guard: AuthorizationGuard, clock: Clock = utcnow):
        self.store = store
        self.guard = guard
        self.clock = clock

    async def create(self, caller: Profile, draft: TenantDraft) -> Tenant:
        self.guard.require_role(caller.role, ADMIN_ROLES)
        values = {key: value.strip() for key, value in vars(draft).items()}
        if not all(values.values()):
            raise InvalidArgument("名称、地址、城市和邮编均不能为空")

        now = self.clock()
        tenant = await self.store.add(
            Tenant(
                created_by_admin_id=caller.id,
                is_active=True,
                is_registered=False,
                created_at=now,
                updated_at=now,
                **values,
            )
        )

        logger.info("tenant_created", tenant_id=tenant.id, caller_id=caller.id)
        await log_audit(
            self.store,
            actor=caller.id,
            action=AuditAction.TENANT_CREATE,
            target_type=TargetType.TENANT,
            target_id=tenant.id,
            payload={"name": tenant.name},
        )
        return tenant

    async def list_tenants(self, caller: Profile) -> List[Tenant]:
        """当前管理员创建的租户（最新在前）"""
        self.guard.require_role(caller.role, ADMIN_ROLES)
        return await self.store.find(
            Tenant,
            Tenant.created_by_admin_id == caller.id,
            order_by=[Tenant.created_at.desc()],
        )

    async def get(self, caller: Profile, tenant_id: str) -> Tenant:
        return await self.guard.get_owned_tenant(caller, tenant_id)

    async def update(self, caller: Profile, tenant_id: str, changes: Dict[str, Any]) -> Tenant:
        values = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS and value is not None}
        for key, value in values.items():
            if isinstance(value, str):
                values[key] = value.strip()
                if not values[key]:
                    raise InvalidArgument(f"{key} 不能为空")

        tenant = await self.guard.get_owned_tenant(caller, tenant_id)
        if not values:
            return tenant

        values["updated_at"] = self.clock()
        await self.store.update(Tenant, tenant.id, values)

        logger.info("tenant_updated", tenant_id=tenant.id, fields=sorted(values))
        await log_audit(
            self.store,
            actor=caller.id,
            action=AuditAction.TENANT_UPDATE,
            target_type=TargetType.TENANT,
            target_id=tenant.id,
            payload={key: value for key, value in values.items() if key != "updated_at"},
        )
        return await self.store.get(Tenant, tenant.id)
