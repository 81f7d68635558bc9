"""
用户档案服务

- 登录：邮箱密码换取访问令牌
- 读取/修改自己的档案（仅限非特权字段）
- 注销自己的账户
"""

from typing import Any, Dict

import structlog

from talofix.adapters.identity import IdentityAdapter, delete_account_if_exists
from talofix.core.audit import AuditAction, TargetType, log_audit
from talofix.core.clock import Clock, utcnow
from talofix.core.errors import InvalidArgument, PermissionDenied, Unauthenticated
from talofix.core.guard import AuthorizationGuard
from talofix.core.security import create_access_token
from talofix.database.models import Profile, Tenant, UserRole
from talofix.database.store import DocumentStore

logger = structlog.get_logger(__name__)

SELF_EDITABLE_FIELDS = ("first_name", "last_name", "phone", "apartment_number", "photo_url")
REQUIRED_FIELDS = ("first_name", "last_name")


class ProfileService:
    """档案服务"""

    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityAdapter,
        guard: AuthorizationGuard,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.identity = identity
        self.guard = guard
        self.clock = clock

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        account_id = await self.identity.authenticate(email, password)
        if account_id is None:
            logger.info("login_failed")
            raise Unauthenticated("邮箱或密码错误")

        profile = await self.guard.load_profile(account_id)
        token = create_access_token(account_id, profile.role)
        logger.info("login_succeeded", account_id=account_id, role=profile.role)
        return {"access_token": token, "token_type": "bearer", "profile": profile}

    async def update_me(self, caller: Profile, changes: Dict[str, Any]) -> Profile:
        values = {key: value for key, value in changes.items() if key in SELF_EDITABLE_FIELDS}
        missing = sorted(key for key in REQUIRED_FIELDS if key in values and values[key] is None)
        if missing:
            raise InvalidArgument("姓名不能为空", details={"fields": missing})
        if not values:
            return caller

        values["updated_at"] = self.clock()
        await self.store.update(Profile, caller.id, values)
        logger.info("profile_updated", profile_id=caller.id, fields=sorted(values))
        return await self.guard.load_profile(caller.id)

    async def delete_me(self, caller: Profile) -> None:
        """
        注销账户：删除身份账户与档案

        物业公司所有者在租户存在期间不能注销
        """
        if caller.role == UserRole.HOUSING_COMPANY:
            tenant = await self.store.get(Tenant, caller.tenant_id)
            if tenant is not None:
                raise PermissionDenied("租户仍存在，物业公司账户不能注销")

        await delete_account_if_exists(self.identity, caller.id)
        await self.store.delete(Profile, caller.id)
        logger.info("account_self_deleted", profile_id=caller.id, role=caller.role)

        await log_audit(
            self.store,
            actor=caller.id,
            action=AuditAction.ACCOUNT_SELF_DELETE,
            target_type=TargetType.PROFILE,
            target_id=caller.id,
            payload={"role": caller.role, "tenant_id": caller.tenant_id},
        )
