"""
身份服务适配器

定义身份账户的创建/删除接口，以及基于 accounts 表的默认实现
"""

from abc import ABC, abstractmethod
from typing import Optional

import structlog

from talofix.core.errors import AlreadyExists, NotFound
from talofix.core.security import get_password_hash, verify_password
from talofix.database.models import Account
from talofix.database.store import DocumentStore

logger = structlog.get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class IdentityAdapter(ABC):
    """身份服务抽象接口"""

    @abstractmethod
    async def create_account(self, email: str, password: str, display_name: str) -> str:
        """
        创建身份账户

        Returns:
            稳定的账户 ID

        Raises:
            AlreadyExists: 邮箱已被占用
        """
        pass

    @abstractmethod
    async def delete_account(self, account_id: str) -> None:
        """
        删除身份账户

        Raises:
            NotFound: 账户不存在（调用方视为已删除）
        """
        pass

    @abstractmethod
    async def authenticate(self, email: str, password: str) -> Optional[str]:
        """校验邮箱密码，成功返回账户 ID"""
        pass


class SqlIdentityAdapter(IdentityAdapter):
    """基于 accounts 表的身份服务"""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def create_account(self, email: str, password: str, display_name: str) -> str:
        email = normalize_email(email)
        existing = await self.store.find_one(Account, Account.email == email)
        if existing:
            raise AlreadyExists("该邮箱已被注册")

        account = await self.store.add(
            Account(
                email=email,
                hashed_password=get_password_hash(password),
                display_name=display_name,
            )
        )
        logger.info("identity_account_created", account_id=account.id)
        return account.id

    async def delete_account(self, account_id: str) -> None:
        deleted = await self.store.delete(Account, account_id)
        if not deleted:
            raise NotFound("账户不存在", details={"account_id": account_id})
        logger.info("identity_account_deleted", account_id=account_id)

    async def authenticate(self, email: str, password: str) -> Optional[str]:
        account = await self.store.find_one(Account, Account.email == normalize_email(email))
        if not account or not verify_password(password, account.hashed_password):
            return None
        return account.id


async def delete_account_if_exists(identity: IdentityAdapter, account_id: str) -> bool:
    """
    删除身份账户，账户不存在视为已删除

    Returns:
        本次是否实际删除
    """
    try:
        await identity.delete_account(account_id)
        return True
    except NotFound:
        logger.info("identity_account_already_absent", account_id=account_id)
        return False
