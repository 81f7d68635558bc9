"""
授权守卫

所有特权操作的统一入口：
1. require_caller: 必须有已验证的调用者 ID
2. load_profile: 必须有完整的用户档案（角色；非 admin 需租户）
3. require_role: 角色必须在允许列表中
4. require_same_tenant: 资源租户必须与调用者租户一致

任何租户范围内的文档在读取、修改或返回之前都必须经过租户校验。
"""

from dataclasses import dataclass
from typing import Iterable, Optional

import structlog

from talofix.core.errors import NotFound, PermissionDenied, Unauthenticated
from talofix.database.models import Profile, Tenant, UserRole
from talofix.database.store import DocumentStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    """已验证的调用者"""
    caller_id: str


class AuthorizationGuard:
    """授权守卫"""

    def __init__(self, store: DocumentStore):
        self.store = store

    @staticmethod
    def require_caller(caller_id: Optional[str]) -> CallerIdentity:
        if not caller_id:
            raise Unauthenticated("未登录或登录已过期，请重新登录")
        return CallerIdentity(caller_id=caller_id)

    async def load_profile(self, caller_id: str) -> Profile:
        """
        读取调用者档案

        档案不存在或缺少必需字段时一律拒绝，不存在"部分有效"的档案
        """
        profile = await self.store.get(Profile, caller_id)
        if profile is None:
            logger.warning("guard_profile_missing", caller_id=caller_id)
            raise PermissionDenied("用户档案不存在")

        if profile.role not in UserRole.ALL:
            logger.warning("guard_profile_invalid_role", caller_id=caller_id, role=profile.role)
            raise PermissionDenied("用户档案不完整")

        if profile.role != UserRole.ADMIN and not profile.tenant_id:
            logger.warning("guard_profile_missing_tenant", caller_id=caller_id, role=profile.role)
            raise PermissionDenied("用户档案不完整")

        return profile

    @staticmethod
    def require_role(role: str, allowed_roles: Iterable[str]) -> None:
        allowed = list(allowed_roles)
        if role not in allowed:
            raise PermissionDenied(
                f"权限不足：当前角色 [{role}] 无权执行此操作，需要角色: [{', '.join(allowed)}]"
            )

    @staticmethod
    def require_same_tenant(resource_tenant_id: Optional[str], caller_tenant_id: Optional[str]) -> None:
        if not resource_tenant_id or resource_tenant_id != caller_tenant_id:
            raise PermissionDenied("无权访问其他租户的数据")

    async def authorize(
        self,
        caller_id: Optional[str],
        allowed_roles: Optional[Iterable[str]] = None,
    ) -> Profile:
        """require_caller + load_profile + require_role 的组合"""
        caller = self.require_caller(caller_id)
        profile = await self.load_profile(caller.caller_id)
        if allowed_roles is not None:
            self.require_role(profile.role, allowed_roles)
        return profile

    async def require_tenant_access(self, profile: Profile, tenant_id: Optional[str]) -> None:
        """
        校验调用者可以访问指定租户

        - admin 没有所属租户，只能访问自己创建的租户
        - 其他角色只能访问档案中的租户
        """
        if profile.role != UserRole.ADMIN:
            self.require_same_tenant(tenant_id, profile.tenant_id)
            return

        tenant = await self.store.get(Tenant, tenant_id) if tenant_id else None
        if tenant is None or tenant.created_by_admin_id != profile.id:
            raise PermissionDenied("无权访问其他租户的数据")

    async def get_owned_tenant(self, profile: Profile, tenant_id: str) -> Tenant:
        """admin 读取自己创建的租户"""
        self.require_role(profile.role, [UserRole.ADMIN])
        tenant = await self.store.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFound("租户不存在")
        if tenant.created_by_admin_id != profile.id:
            raise PermissionDenied("只有创建该租户的管理员可以执行此操作")
        return tenant
