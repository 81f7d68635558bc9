"""
账户开通服务

两阶段：先创建身份账户，再写入档案。
档案写入失败时删除刚创建的身份账户（补偿），补偿也失败则记录孤儿账户待对账。
"""

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from talofix.adapters.identity import IdentityAdapter, delete_account_if_exists, normalize_email
from talofix.core.clock import Clock, utcnow
from talofix.core.config import settings
from talofix.core.errors import InvalidArgument, ServiceError
from talofix.database.models import ROLES_WITHOUT_BUILDING, Profile, UserRole
from talofix.database.store import DocumentStore

logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_credentials(email: str, password: str) -> None:
    """邮箱格式与密码长度校验"""
    if not EMAIL_PATTERN.match(email.strip()):
        raise InvalidArgument("邮箱格式不正确")
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise InvalidArgument(f"密码至少 {settings.PASSWORD_MIN_LENGTH} 位")


@dataclass
class ProfileFields:
    """写入档案的业务字段"""
    role: str
    tenant_id: Optional[str]
    first_name: str = ""
    last_name: str = ""
    building_id: Optional[str] = None
    apartment_number: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None

    def check(self) -> None:
        if self.role not in UserRole.ALL:
            raise InvalidArgument("无效的角色", details={"role": self.role})
        if self.role != UserRole.ADMIN and not self.tenant_id:
            raise InvalidArgument("非管理员档案必须属于某个租户")
        if self.role not in ROLES_WITHOUT_BUILDING and not self.building_id:
            raise InvalidArgument("该角色的档案必须包含楼栋")


class AccountProvisioner:
    """账户开通"""

    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityAdapter,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.identity = identity
        self.clock = clock

    async def create(
        self,
        email: str,
        password: str,
        display_name: str,
        fields: ProfileFields,
    ) -> str:
        """
        创建身份账户与档案

        Args:
            email: 登录邮箱
            password: 登录密码
            display_name: 显示名称
            fields: 档案字段

        Returns:
            账户 ID（同时也是档案 ID）

        Raises:
            AlreadyExists: 邮箱已被注册
            Internal: 档案写入失败（已尝试补偿）
        """
        validate_credentials(email, password)
        fields.check()

        email = normalize_email(email)
        log = logger.bind(role=fields.role, tenant_id=fields.tenant_id)

        account_id = await self.identity.create_account(email, password, display_name)
        log = log.bind(account_id=account_id)

        now = self.clock()
        try:
            await self.store.add(
                Profile(
                    id=account_id,
                    email=email,
                    first_name=fields.first_name,
                    last_name=fields.last_name,
                    role=fields.role,
                    tenant_id=fields.tenant_id,
                    building_id=fields.building_id,
                    apartment_number=fields.apartment_number,
                    phone=fields.phone,
                    company_name=fields.company_name,
                    created_at=now,
                    updated_at=now,
                )
            )
        except ServiceError as exc:
            log.error("account_profile_write_failed", error=str(exc))
            await self._compensate(account_id, log)
            raise

        log.info("account_provisioned")
        return account_id

    async def _compensate(self, account_id: str, log) -> None:
        try:
            await delete_account_if_exists(self.identity, account_id)
        except ServiceError as exc:
            log.error("account_orphaned", error=str(exc))
            return
        log.info("account_compensated")

    async def discard(self, account_id: str) -> None:
        """撤销一次已完成的开通（删除档案与身份账户）"""
        log = logger.bind(account_id=account_id)
        await self.store.delete(Profile, account_id)
        await self._compensate(account_id, log)
