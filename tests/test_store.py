"""
文档存储错误映射测试
"""

import pytest

from talofix.core.errors import AlreadyExists, InvalidArgument
from talofix.database.models import Account, Profile


@pytest.mark.asyncio
async def test_not_null_violation_is_invalid_argument(store, factory):
    admin = await factory.admin()

    with pytest.raises(InvalidArgument):
        await store.update(Profile, admin.id, {"first_name": None})


@pytest.mark.asyncio
async def test_unique_violation_is_already_exists(store, factory):
    admin = await factory.admin(email="root@example.com")
    account = await store.get(Account, admin.id)

    with pytest.raises(AlreadyExists):
        await store.add(
            Account(
                email="root@example.com",
                hashed_password=account.hashed_password,
                display_name="Copy",
            )
        )
