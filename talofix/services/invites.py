"""
邀请码服务

四类邀请码：
- tenant: 租户注册码，存放在租户记录上，由创建该租户的管理员签发
- resident: 住户邀请码，带楼栋/门牌号
- management: 维修人员邀请码（每个租户同时只有一个有效码）
- service_company: 外部服务公司邀请码（每个租户同时只有一个有效码）

有效 = 未使用 且 expires_at > now。"now" 比较在应用侧完成，不依赖存储过滤。
兑换使用条件写（仅当仍未使用时标记已使用），并发兑换的失败方得到 Conflict，
其刚创建的账户会被撤销。
"""

import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Type, Union

import structlog

from talofix.adapters.blobs import BlobStore
from talofix.adapters.identity import IdentityAdapter, delete_account_if_exists
from talofix.core.audit import AuditAction, TargetType, log_audit
from talofix.core.clock import Clock, as_utc, utcnow
from talofix.core.config import settings
from talofix.core.errors import (
    AlreadyExists,
    Conflict,
    Internal,
    InvalidArgument,
    NotFound,
    PermissionDenied,
)
from talofix.core.fanout import fan_out
from talofix.core.guard import AuthorizationGuard
from talofix.database.models import (
    FaultReport,
    ManagementInvite,
    Profile,
    ResidentInvite,
    ServiceCompanyInvite,
    Tenant,
    UserRole,
)
from talofix.database.store import DocumentStore
from talofix.services.fault_reports import purge_report
from talofix.services.provisioner import AccountProvisioner, ProfileFields, validate_credentials

logger = structlog.get_logger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits

RESIDENT_INVITE_LIST_LIMIT = 50

InviteRecord = Union[ResidentInvite, ManagementInvite, ServiceCompanyInvite]


class InviteKind(str, Enum):
    """邀请码类型"""
    TENANT = "tenant"
    RESIDENT = "resident"
    MANAGEMENT = "management"
    SERVICE_COMPANY = "service_company"


INVITE_MODELS: Dict[InviteKind, Type[Any]] = {
    InviteKind.RESIDENT: ResidentInvite,
    InviteKind.MANAGEMENT: ManagementInvite,
    InviteKind.SERVICE_COMPANY: ServiceCompanyInvite,
}

# 兑换后获得的角色
REDEEMED_ROLES = {
    InviteKind.TENANT: UserRole.HOUSING_COMPANY,
    InviteKind.RESIDENT: UserRole.RESIDENT,
    InviteKind.MANAGEMENT: UserRole.MAINTENANCE,
    InviteKind.SERVICE_COMPANY: UserRole.SERVICE_COMPANY,
}

# 每个租户同时只允许一个有效码，且每个租户只允许一个该角色用户
SINGLETON_KINDS = (InviteKind.MANAGEMENT, InviteKind.SERVICE_COMPANY)


def is_active(invite: InviteRecord, now: datetime) -> bool:
    """邀请码是否有效：未使用且未过期"""
    return not invite.is_used and as_utc(invite.expires_at) > now


def generate_code(length: Optional[int] = None) -> str:
    """生成大写字母数字邀请码"""
    length = length or settings.INVITE_CODE_LENGTH
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code: str) -> str:
    code = (code or "").strip()
    if len(code) < settings.INVITE_CODE_MIN_INPUT_LENGTH:
        raise InvalidArgument("邀请码格式不正确")
    return code.upper()


@dataclass
class GeneratedInvite:
    """签发结果"""
    kind: InviteKind
    code: str
    expires_at: datetime
    tenant_id: str
    invite_id: Optional[str] = None
    building_id: Optional[str] = None
    apartment_number: Optional[str] = None
    reused: bool = False


@dataclass
class InviteSummary:
    """兑换前预览数据（不修改任何状态）"""
    kind: InviteKind
    tenant_id: str
    tenant_name: str
    invite_id: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    building_id: Optional[str] = None
    apartment_number: Optional[str] = None


@dataclass
class AccountPayload:
    """兑换时提交的账户信息"""
    email: str
    password: str
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None
    company_name: Optional[str] = None
    # 仅租户注册使用
    contact_person: Optional[str] = None


@dataclass
class RedemptionResult:
    account_id: str
    tenant_id: str
    role: str


@dataclass
class _Lookup:
    """校验通过的邀请码及其租户"""
    tenant: Tenant
    invite: Optional[InviteRecord] = None


class InviteCodeManager:
    """邀请码管理"""

    def __init__(
        self,
        store: DocumentStore,
        guard: AuthorizationGuard,
        provisioner: AccountProvisioner,
        identity: IdentityAdapter,
        blobs: BlobStore,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.guard = guard
        self.provisioner = provisioner
        self.identity = identity
        self.blobs = blobs
        self.clock = clock

    # ============================================================
    # 签发
    # ============================================================

    async def generate(
        self,
        caller: Profile,
        kind: InviteKind,
        tenant_id: Optional[str] = None,
        building_id: Optional[str] = None,
        apartment_number: Optional[str] = None,
    ) -> GeneratedInvite:
        """
        签发邀请码

        - tenant: 调用者必须是创建该租户的管理员，新码替换旧码
        - resident: 物业公司签发，楼栋和门牌号必填
        - management / service_company: 物业公司签发，已有有效码时原样返回
        """
        log = logger.bind(caller_id=caller.id, invite_kind=kind.value)

        if kind == InviteKind.TENANT:
            if not tenant_id:
                raise InvalidArgument("缺少租户 ID")
            return await self._generate_tenant_code(caller, tenant_id, log)

        self.guard.require_role(caller.role, [UserRole.HOUSING_COMPANY])
        if tenant_id is not None:
            self.guard.require_same_tenant(tenant_id, caller.tenant_id)
        tenant_id = caller.tenant_id

        extra: Dict[str, Any] = {}
        if kind == InviteKind.RESIDENT:
            building_id = (building_id or "").strip()
            apartment_number = (apartment_number or "").strip()
            if not building_id or not apartment_number:
                raise InvalidArgument("楼栋和门牌号不能为空")
            extra = {"building_id": building_id, "apartment_number": apartment_number}

        model = INVITE_MODELS[kind]
        now = self.clock()

        if kind in SINGLETON_KINDS:
            existing = await self.store.find(
                model,
                model.tenant_id == tenant_id,
                model.is_used.is_(False),
                order_by=[model.created_at.asc()],
            )
            active = [invite for invite in existing if is_active(invite, now)]
            if active:
                invite = active[0]
                log.info("invite_reused", invite_id=invite.id, tenant_id=tenant_id)
                return GeneratedInvite(
                    kind=kind,
                    code=invite.code,
                    expires_at=as_utc(invite.expires_at),
                    tenant_id=tenant_id,
                    invite_id=invite.id,
                    reused=True,
                )

        code = await self._unique_code()
        expires_at = now + timedelta(days=settings.INVITE_CODE_TTL_DAYS)
        invite = await self.store.add(
            model(
                code=code,
                tenant_id=tenant_id,
                created_by=caller.id,
                is_used=False,
                expires_at=expires_at,
                created_at=now,
                updated_at=now,
                **extra,
            )
        )

        log.info("invite_generated", invite_id=invite.id, tenant_id=tenant_id)
        await log_audit(
            self.store,
            actor=caller.id,
            action=AuditAction.INVITE_GENERATE,
            target_type=TargetType.INVITE,
            target_id=invite.id,
            payload={"kind": kind.value, "tenant_id": tenant_id},
        )

        return GeneratedInvite(
            kind=kind,
            code=code,
            expires_at=expires_at,
            tenant_id=tenant_id,
            invite_id=invite.id,
            building_id=extra.get("building_id"),
            apartment_number=extra.get("apartment_number"),
        )

    async def _generate_tenant_code(self, caller: Profile, tenant_id: str, log) -> GeneratedInvite:
        tenant = await self.guard.get_owned_tenant(caller, tenant_id)
        if tenant.is_registered:
            raise AlreadyExists("该租户已完成注册")

        now = self.clock()
        code = await self._unique_code()
        expires_at = now + timedelta(days=settings.INVITE_CODE_TTL_DAYS)
        updated = await self.store.update(
            Tenant,
            tenant.id,
            {"invite_code": code, "invite_code_expires_at": expires_at, "updated_at": now},
            Tenant.is_registered.is_(False),
        )
        if not updated:
            raise AlreadyExists("该租户已完成注册")

        log.info("invite_generated", tenant_id=tenant.id)
        await log_audit(
            self.store,
            actor=caller.id,
            action=AuditAction.INVITE_GENERATE,
            target_type=TargetType.TENANT,
            target_id=tenant.id,
            payload={"kind": InviteKind.TENANT.value},
        )
        return GeneratedInvite(
            kind=InviteKind.TENANT,
            code=code,
            expires_at=expires_at,
            tenant_id=tenant.id,
        )

    async def _unique_code(self) -> str:
        for _ in range(settings.INVITE_CODE_MAX_ATTEMPTS):
            code = generate_code()
            if not await self._code_taken(code):
                return code
        logger.error("invite_code_exhausted", attempts=settings.INVITE_CODE_MAX_ATTEMPTS)
        raise Internal("邀请码生成失败，请重试")

    async def _code_taken(self, code: str) -> bool:
        if await self.store.count(Tenant, Tenant.invite_code == code):
            return True
        for model in INVITE_MODELS.values():
            if await self.store.count(model, model.code == code):
                return True
        return False

    # ============================================================
    # 校验（无副作用）
    # ============================================================

    async def _lookup(self, kind: InviteKind, code: str) -> _Lookup:
        code = normalize_code(code)
        now = self.clock()

        if kind == InviteKind.TENANT:
            tenant = await self.store.find_one(
                Tenant,
                Tenant.invite_code == code,
                Tenant.is_active.is_(True),
            )
            if tenant is None:
                raise NotFound("邀请码无效")
            expires_at = as_utc(tenant.invite_code_expires_at)
            if expires_at is None or expires_at <= now:
                raise PermissionDenied("邀请码已过期")
            if tenant.is_registered:
                raise AlreadyExists("该租户已完成注册")
            return _Lookup(tenant=tenant)

        model = INVITE_MODELS[kind]
        invite = await self.store.find_one(model, model.code == code, model.is_used.is_(False))
        if invite is None:
            raise NotFound("邀请码无效")
        if as_utc(invite.expires_at) <= now:
            raise PermissionDenied("邀请码已过期")

        tenant = await self.store.get(Tenant, invite.tenant_id)
        if tenant is None:
            raise NotFound("租户不存在")
        return _Lookup(tenant=tenant, invite=invite)

    async def validate(self, kind: InviteKind, code: str) -> InviteSummary:
        """兑换前预览，幂等且不修改状态"""
        found = await self._lookup(kind, code)
        tenant = found.tenant

        if kind == InviteKind.TENANT:
            return InviteSummary(
                kind=kind,
                tenant_id=tenant.id,
                tenant_name=tenant.name,
                address=tenant.address,
                city=tenant.city,
                postal_code=tenant.postal_code,
            )

        invite = found.invite
        return InviteSummary(
            kind=kind,
            tenant_id=tenant.id,
            tenant_name=tenant.name,
            invite_id=invite.id,
            building_id=getattr(invite, "building_id", None),
            apartment_number=getattr(invite, "apartment_number", None),
        )

    # ============================================================
    # 兑换
    # ============================================================

    async def redeem(self, kind: InviteKind, code: str, payload: AccountPayload) -> RedemptionResult:
        """
        兑换邀请码

        1. 重复校验步骤
        2. 角色唯一性检查（management / service_company）
        3. 创建身份账户与档案
        4. 条件写标记已使用；失败方撤销账户并返回 Conflict
        """
        validate_credentials(payload.email, payload.password)
        if kind == InviteKind.TENANT and not (payload.contact_person or "").strip():
            raise InvalidArgument("联系人不能为空")

        found = await self._lookup(kind, code)
        tenant = found.tenant
        invite = found.invite
        role = REDEEMED_ROLES[kind]
        log = logger.bind(invite_kind=kind.value, tenant_id=tenant.id)

        if kind in SINGLETON_KINDS:
            existing = await self.store.count(
                Profile,
                Profile.tenant_id == tenant.id,
                Profile.role == role,
            )
            if existing:
                raise AlreadyExists("该租户已存在此角色的用户", details={"role": role})

        fields = self._profile_fields(kind, tenant, invite, payload)
        display_name = f"{fields.first_name} {fields.last_name}".strip()
        account_id = await self.provisioner.create(payload.email, payload.password, display_name, fields)
        log = log.bind(account_id=account_id)

        now = self.clock()
        if kind == InviteKind.TENANT:
            marked = await self.store.update(
                Tenant,
                tenant.id,
                {
                    "is_registered": True,
                    "user_id": account_id,
                    "email": payload.email.strip().lower(),
                    "contact_person": payload.contact_person.strip(),
                    "phone": payload.phone,
                    "invite_code": None,
                    "invite_code_expires_at": None,
                    "updated_at": now,
                },
                Tenant.is_registered.is_(False),
            )
        else:
            model = type(invite)
            marked = await self.store.update(
                model,
                invite.id,
                {"is_used": True, "used_by_user_id": account_id, "used_at": now, "updated_at": now},
                model.is_used.is_(False),
            )

        if not marked:
            log.warning("invite_redeem_conflict")
            await self.provisioner.discard(account_id)
            raise Conflict("邀请码已被使用")

        log.info("invite_redeemed")
        await log_audit(
            self.store,
            actor=account_id,
            action=AuditAction.TENANT_REGISTER if kind == InviteKind.TENANT else AuditAction.INVITE_REDEEM,
            target_type=TargetType.TENANT if kind == InviteKind.TENANT else TargetType.INVITE,
            target_id=tenant.id if kind == InviteKind.TENANT else invite.id,
            payload={"kind": kind.value, "tenant_id": tenant.id, "role": role},
        )
        return RedemptionResult(account_id=account_id, tenant_id=tenant.id, role=role)

    @staticmethod
    def _profile_fields(
        kind: InviteKind,
        tenant: Tenant,
        invite: Optional[InviteRecord],
        payload: AccountPayload,
    ) -> ProfileFields:
        if kind == InviteKind.TENANT:
            return ProfileFields(
                role=UserRole.HOUSING_COMPANY,
                tenant_id=tenant.id,
                first_name=payload.contact_person.strip(),
                last_name=tenant.name,
                phone=payload.phone,
            )

        fields = ProfileFields(
            role=REDEEMED_ROLES[kind],
            tenant_id=tenant.id,
            first_name=payload.first_name.strip(),
            last_name=payload.last_name.strip(),
            phone=payload.phone,
        )
        if kind == InviteKind.RESIDENT:
            fields.building_id = invite.building_id
            fields.apartment_number = invite.apartment_number
        else:
            fields.company_name = payload.company_name
        return fields

    # ============================================================
    # 列表与删除
    # ============================================================

    async def list_invites(self, caller: Profile, kind: InviteKind) -> List[Dict[str, Any]]:
        """
        列出本租户的邀请码（最新在前）

        住户邀请码最多返回 50 条
        """
        if kind == InviteKind.TENANT:
            raise InvalidArgument("租户注册码不支持列表")
        self.guard.require_role(caller.role, [UserRole.HOUSING_COMPANY])

        model = INVITE_MODELS[kind]
        invites = await self.store.find(
            model,
            model.tenant_id == caller.tenant_id,
            order_by=[model.created_at.desc()],
            limit=RESIDENT_INVITE_LIST_LIMIT if kind == InviteKind.RESIDENT else None,
        )

        now = self.clock()
        items = []
        for invite in invites:
            item = {
                "id": invite.id,
                "code": invite.code,
                "is_used": invite.is_used,
                "is_expired": as_utc(invite.expires_at) <= now,
                "expires_at": as_utc(invite.expires_at),
                "created_at": as_utc(invite.created_at),
                "used_by_user_id": invite.used_by_user_id,
            }
            if kind == InviteKind.RESIDENT:
                item["building_id"] = invite.building_id
                item["apartment_number"] = invite.apartment_number
            items.append(item)
        return items

    async def delete(self, caller: Profile, kind: InviteKind, invite_id: str) -> None:
        """
        删除单个邀请码

        已使用的住户邀请码会同时删除该住户的身份账户、档案和报修单
        """
        if kind == InviteKind.TENANT:
            raise InvalidArgument("租户注册码随租户删除")
        self.guard.require_role(caller.role, [UserRole.HOUSING_COMPANY])

        model = INVITE_MODELS[kind]
        invite = await self.store.get(model, invite_id)
        if invite is None:
            raise NotFound("邀请码不存在")
        self.guard.require_same_tenant(invite.tenant_id, caller.tenant_id)

        log = logger.bind(caller_id=caller.id, invite_kind=kind.value, invite_id=invite_id)

        if kind == InviteKind.RESIDENT and invite.is_used and invite.used_by_user_id:
            user_id = invite.used_by_user_id
            await delete_account_if_exists(self.identity, user_id)
            await self.store.delete(Profile, user_id)

            reports = await self.store.find(
                FaultReport,
                FaultReport.tenant_id == invite.tenant_id,
                FaultReport.created_by == user_id,
            )
            result = await fan_out(
                "resident_fault_reports",
                reports,
                lambda report: purge_report(self.store, self.blobs, report, log=log),
                key=lambda report: report.id,
                log=log,
            )
            log.info("resident_removed", user_id=user_id, **result.summary())

        await self.store.delete(model, invite.id)
        log.info("invite_deleted")
        await log_audit(
            self.store,
            actor=caller.id,
            action=AuditAction.INVITE_DELETE,
            target_type=TargetType.INVITE,
            target_id=invite.id,
            payload={"kind": kind.value, "tenant_id": invite.tenant_id},
        )
