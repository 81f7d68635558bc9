"""
档案服务测试
"""

import pytest
import pytest_asyncio

from talofix.core.errors import InvalidArgument, PermissionDenied
from talofix.database.models import Account, AuditLog, Profile, UserRole


@pytest_asyncio.fixture
async def resident(factory):
    admin = await factory.admin()
    tenant = await factory.tenant(admin)
    return await factory.user(UserRole.RESIDENT, tenant_id=tenant.id, apartment_number="12")


@pytest.mark.asyncio
async def test_update_me_changes_only_self_editable_fields(profiles, store, resident):
    updated = await profiles.update_me(
        resident,
        {
            "first_name": "Aino",
            "phone": "+358401234567",
            "role": UserRole.ADMIN,
            "tenant_id": "other-tenant",
            "building_id": "B9",
        },
    )

    assert updated.first_name == "Aino"
    assert updated.phone == "+358401234567"
    assert updated.role == UserRole.RESIDENT
    assert updated.tenant_id == resident.tenant_id
    assert updated.building_id == resident.building_id


@pytest.mark.asyncio
async def test_update_me_clears_optional_fields(profiles, resident):
    updated = await profiles.update_me(resident, {"apartment_number": None})

    assert updated.apartment_number is None


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["first_name", "last_name"])
async def test_update_me_rejects_null_name(profiles, store, resident, field):
    with pytest.raises(InvalidArgument):
        await profiles.update_me(resident, {field: None})

    stored = await store.get(Profile, resident.id)
    assert getattr(stored, field) == getattr(resident, field)


@pytest.mark.asyncio
async def test_update_me_without_editable_fields_is_noop(profiles, resident):
    unchanged = await profiles.update_me(resident, {"role": UserRole.ADMIN})

    assert unchanged.role == UserRole.RESIDENT


@pytest.mark.asyncio
async def test_delete_me_removes_account_and_profile(profiles, store, resident):
    await profiles.delete_me(resident)

    assert await store.get(Account, resident.id) is None
    assert await store.get(Profile, resident.id) is None
    audit = await store.find_one(AuditLog, AuditLog.target_id == resident.id)
    assert audit.action == "account.self_delete"
    assert audit.payload["tenant_id"] == resident.tenant_id


@pytest.mark.asyncio
async def test_housing_company_cannot_delete_while_tenant_exists(profiles, factory, store):
    admin = await factory.admin()
    tenant = await factory.tenant(admin)
    owner = await factory.user(UserRole.HOUSING_COMPANY, tenant_id=tenant.id)

    with pytest.raises(PermissionDenied):
        await profiles.delete_me(owner)

    assert await store.get(Profile, owner.id) is not None
