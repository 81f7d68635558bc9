"""
合作方用户服务

物业公司查看/移除本租户的维修人员或外部服务公司用户。
移除时同时删除身份账户、档案以及该类型的全部邀请码。
"""

from typing import Optional

import structlog

from talofix.adapters.identity import IdentityAdapter, delete_account_if_exists
from talofix.core.audit import AuditAction, TargetType, log_audit
from talofix.core.errors import InvalidArgument, NotFound
from talofix.core.guard import AuthorizationGuard
from talofix.database.models import Profile, UserRole
from talofix.database.store import DocumentStore
from talofix.services.invites import INVITE_MODELS, REDEEMED_ROLES, SINGLETON_KINDS, InviteKind

logger = structlog.get_logger(__name__)


class PartnerService:
    """合作方用户管理"""

    def __init__(self, store: DocumentStore, identity: IdentityAdapter, guard: AuthorizationGuard):
        self.store = store
        self.identity = identity
        self.guard = guard

    def _check(self, caller: Profile, kind: InviteKind) -> str:
        if kind not in SINGLETON_KINDS:
            raise InvalidArgument("无效的合作方类型", details={"kind": kind.value})
        self.guard.require_role(caller.role, [UserRole.HOUSING_COMPANY])
        return REDEEMED_ROLES[kind]

    async def get_partner(self, caller: Profile, kind: InviteKind) -> Optional[Profile]:
        role = self._check(caller, kind)
        return await self.store.find_one(
            Profile,
            Profile.tenant_id == caller.tenant_id,
            Profile.role == role,
        )

    async def remove_partner(self, caller: Profile, kind: InviteKind) -> None:
        partner = await self.get_partner(caller, kind)
        if partner is None:
            raise NotFound("该租户没有此类合作方用户")

        log = logger.bind(tenant_id=caller.tenant_id, partner_id=partner.id, invite_kind=kind.value)

        await delete_account_if_exists(self.identity, partner.id)
        await self.store.delete(Profile, partner.id)

        model = INVITE_MODELS[kind]
        removed_invites = await self.store.delete_where(model, model.tenant_id == caller.tenant_id)
        log.info("partner_removed", removed_invites=removed_invites)

        await log_audit(
            self.store,
            actor=caller.id,
            action=AuditAction.PARTNER_REMOVE,
            target_type=TargetType.PROFILE,
            target_id=partner.id,
            payload={"kind": kind.value, "removed_invites": removed_invites},
        )
