"""
邀请码测试
"""

import re
from datetime import timedelta

import pytest
import pytest_asyncio

from talofix.core.errors import AlreadyExists, Conflict, InvalidArgument, NotFound, PermissionDenied
from talofix.database.models import (
    Account,
    FaultReport,
    ManagementInvite,
    Profile,
    ResidentInvite,
    Tenant,
    UserRole,
)
from talofix.services.invites import (
    AccountPayload,
    InviteCodeManager,
    InviteKind,
    generate_code,
    is_active,
)
from talofix.services.provisioner import AccountProvisioner

CODE_PATTERN = re.compile(r"^[A-Z0-9]{8}$")


def payload(email: str = "new@example.com", **kwargs) -> AccountPayload:
    values = {"email": email, "password": "secret123", "first_name": "Aino", "last_name": "Virtanen"}
    values.update(kwargs)
    return AccountPayload(**values)


@pytest_asyncio.fixture
async def owner(factory):
    """已注册租户的物业公司用户"""
    admin = await factory.admin()
    tenant = await factory.tenant(admin)
    return await factory.user(UserRole.HOUSING_COMPANY, tenant_id=tenant.id)


def test_generate_code_format():
    for _ in range(50):
        assert CODE_PATTERN.match(generate_code())


@pytest.mark.asyncio
async def test_generated_invite_shape(invites, owner, clock):
    """8 位大写字母数字，有效期正好 7 天"""
    for kind in (InviteKind.MANAGEMENT, InviteKind.SERVICE_COMPANY):
        result = await invites.generate(owner, kind)
        assert CODE_PATTERN.match(result.code)
        assert result.expires_at == clock.now + timedelta(days=7)
        assert result.tenant_id == owner.tenant_id

    resident = await invites.generate(owner, InviteKind.RESIDENT, building_id=" B2 ", apartment_number=" 14 ")
    assert CODE_PATTERN.match(resident.code)
    assert resident.building_id == "B2"
    assert resident.apartment_number == "14"


@pytest.mark.asyncio
async def test_resident_invite_requires_building_and_apartment(invites, owner):
    with pytest.raises(InvalidArgument):
        await invites.generate(owner, InviteKind.RESIDENT, building_id="B1", apartment_number="  ")


@pytest.mark.asyncio
async def test_only_housing_company_issues_invites(invites, factory, owner):
    maintenance = await factory.user(UserRole.MAINTENANCE, tenant_id=owner.tenant_id)
    with pytest.raises(PermissionDenied):
        await invites.generate(maintenance, InviteKind.RESIDENT, building_id="B1", apartment_number="1")


@pytest.mark.asyncio
async def test_singleton_invite_is_reused_while_active(invites, owner, clock):
    first = await invites.generate(owner, InviteKind.MANAGEMENT)
    clock.advance(days=1)
    second = await invites.generate(owner, InviteKind.MANAGEMENT)

    assert second.reused is True
    assert second.code == first.code
    assert second.expires_at == first.expires_at
    assert second.invite_id == first.invite_id


@pytest.mark.asyncio
async def test_singleton_invite_regenerates_after_expiry(invites, owner, clock):
    first = await invites.generate(owner, InviteKind.SERVICE_COMPANY)
    clock.advance(days=7)
    second = await invites.generate(owner, InviteKind.SERVICE_COMPANY)

    assert second.reused is False
    assert second.code != first.code


@pytest.mark.asyncio
async def test_singleton_invite_regenerates_after_redemption(invites, owner):
    first = await invites.generate(owner, InviteKind.MANAGEMENT)
    await invites.redeem(InviteKind.MANAGEMENT, first.code, payload())

    second = await invites.generate(owner, InviteKind.MANAGEMENT)
    assert second.reused is False
    assert second.code != first.code


@pytest.mark.asyncio
async def test_is_active(store, invites, owner, clock):
    generated = await invites.generate(owner, InviteKind.MANAGEMENT)
    invite = await store.get(ManagementInvite, generated.invite_id)

    assert is_active(invite, clock.now)
    assert not is_active(invite, clock.now + timedelta(days=7))
    invite.is_used = True
    assert not is_active(invite, clock.now)


@pytest.mark.asyncio
async def test_validate_is_idempotent_and_side_effect_free(store, invites, owner):
    generated = await invites.generate(owner, InviteKind.RESIDENT, building_id="B1", apartment_number="12")
    before = await store.get(ResidentInvite, generated.invite_id)

    first = await invites.validate(InviteKind.RESIDENT, generated.code.lower())
    second = await invites.validate(InviteKind.RESIDENT, generated.code)

    assert first == second
    assert first.tenant_id == owner.tenant_id
    assert first.building_id == "B1"
    assert first.apartment_number == "12"

    after = await store.get(ResidentInvite, generated.invite_id)
    assert after.is_used is False
    assert after.updated_at == before.updated_at


@pytest.mark.asyncio
async def test_validate_rejects_short_code(invites):
    with pytest.raises(InvalidArgument):
        await invites.validate(InviteKind.RESIDENT, "ABC")


@pytest.mark.asyncio
async def test_validate_unknown_code(invites):
    with pytest.raises(NotFound):
        await invites.validate(InviteKind.MANAGEMENT, "ZZZZZZZZ")


@pytest.mark.asyncio
async def test_validate_expired_code(invites, owner, clock):
    generated = await invites.generate(owner, InviteKind.MANAGEMENT)
    clock.advance(days=7)

    with pytest.raises(PermissionDenied):
        await invites.validate(InviteKind.MANAGEMENT, generated.code)


@pytest.mark.asyncio
async def test_redeem_marks_used_once(store, invites, owner, clock):
    generated = await invites.generate(owner, InviteKind.RESIDENT, building_id="B1", apartment_number="12")

    result = await invites.redeem(InviteKind.RESIDENT, generated.code, payload())
    assert result.tenant_id == owner.tenant_id
    assert result.role == UserRole.RESIDENT

    invite = await store.get(ResidentInvite, generated.invite_id)
    assert invite.is_used is True
    assert invite.used_by_user_id == result.account_id
    assert invite.used_at is not None

    profile = await store.get(Profile, result.account_id)
    assert profile.tenant_id == owner.tenant_id
    assert profile.building_id == "B1"
    assert profile.apartment_number == "12"

    with pytest.raises(NotFound):
        await invites.redeem(InviteKind.RESIDENT, generated.code, payload(email="other@example.com"))


@pytest.mark.asyncio
async def test_redeem_duplicate_email(invites, factory, owner):
    generated = await invites.generate(owner, InviteKind.RESIDENT, building_id="B1", apartment_number="1")
    await factory.user(UserRole.RESIDENT, tenant_id=owner.tenant_id, email="taken@example.com")

    with pytest.raises(AlreadyExists):
        await invites.redeem(InviteKind.RESIDENT, generated.code, payload(email="Taken@Example.com"))


@pytest.mark.asyncio
async def test_service_company_redeem_stores_company_name(store, invites, owner):
    generated = await invites.generate(owner, InviteKind.SERVICE_COMPANY)
    result = await invites.redeem(
        InviteKind.SERVICE_COMPANY,
        generated.code,
        payload(company_name="Putki Oy"),
    )

    profile = await store.get(Profile, result.account_id)
    assert profile.role == UserRole.SERVICE_COMPANY
    assert profile.company_name == "Putki Oy"


@pytest.mark.asyncio
async def test_role_singleton_redeem(invites, factory, owner, clock):
    generated = await invites.generate(owner, InviteKind.MANAGEMENT)
    await factory.user(UserRole.MAINTENANCE, tenant_id=owner.tenant_id)

    with pytest.raises(AlreadyExists):
        await invites.redeem(InviteKind.MANAGEMENT, generated.code, payload())


class RacingProvisioner(AccountProvisioner):
    """在账户创建之后、标记已使用之前，让另一个兑换者抢先"""

    def __init__(self, *args, on_created, **kwargs):
        super().__init__(*args, **kwargs)
        self.on_created = on_created

    async def create(self, *args, **kwargs) -> str:
        account_id = await super().create(*args, **kwargs)
        await self.on_created()
        return account_id


@pytest.mark.asyncio
async def test_concurrent_redeem_loser_gets_conflict(store, identity, guard, blobs, owner, clock, invites):
    generated = await invites.generate(owner, InviteKind.MANAGEMENT)

    async def winner_marks_used():
        await store.update(ManagementInvite, generated.invite_id, {"is_used": True, "used_by_user_id": "winner"})

    racing = InviteCodeManager(
        store,
        guard,
        RacingProvisioner(store, identity, clock=clock, on_created=winner_marks_used),
        identity,
        blobs,
        clock=clock,
    )

    with pytest.raises(Conflict):
        await racing.redeem(InviteKind.MANAGEMENT, generated.code, payload(email="loser@example.com"))

    # 失败方刚创建的账户与档案已撤销
    assert await store.count(Account, Account.email == "loser@example.com") == 0
    assert await store.count(Profile, Profile.email == "loser@example.com") == 0
    invite = await store.get(ManagementInvite, generated.invite_id)
    assert invite.used_by_user_id == "winner"


@pytest.mark.asyncio
async def test_tenant_code_generation_by_creator_only(invites, factory, store, clock):
    admin = await factory.admin()
    other_admin = await factory.admin()
    tenant = await factory.tenant(admin)

    with pytest.raises(PermissionDenied):
        await invites.generate(other_admin, InviteKind.TENANT, tenant_id=tenant.id)

    first = await invites.generate(admin, InviteKind.TENANT, tenant_id=tenant.id)
    second = await invites.generate(admin, InviteKind.TENANT, tenant_id=tenant.id)

    # 新码替换旧码
    stored = await store.get(Tenant, tenant.id)
    assert stored.invite_code == second.code
    assert first.code != second.code
    with pytest.raises(NotFound):
        await invites.validate(InviteKind.TENANT, first.code)


@pytest.mark.asyncio
async def test_tenant_registration(invites, factory, store):
    admin = await factory.admin()
    tenant = await factory.tenant(admin)
    generated = await invites.generate(admin, InviteKind.TENANT, tenant_id=tenant.id)

    summary = await invites.validate(InviteKind.TENANT, generated.code)
    assert summary.tenant_name == tenant.name
    assert summary.address == "Mannerheimintie 1"
    assert summary.city == "Helsinki"
    assert summary.postal_code == "00100"

    with pytest.raises(InvalidArgument):
        await invites.redeem(InviteKind.TENANT, generated.code, payload(email="owner@example.com"))

    result = await invites.redeem(
        InviteKind.TENANT,
        generated.code,
        payload(email="owner@example.com", contact_person="Matti Meikäläinen"),
    )
    assert result.role == UserRole.HOUSING_COMPANY

    registered = await store.get(Tenant, tenant.id)
    assert registered.is_registered is True
    assert registered.user_id == result.account_id
    assert registered.email == "owner@example.com"
    assert registered.invite_code is None

    profile = await store.get(Profile, result.account_id)
    assert profile.tenant_id == tenant.id
    assert profile.role == UserRole.HOUSING_COMPANY

    with pytest.raises(AlreadyExists):
        await invites.generate(admin, InviteKind.TENANT, tenant_id=tenant.id)


@pytest.mark.asyncio
async def test_list_resident_invites_newest_first(invites, owner, clock):
    first = await invites.generate(owner, InviteKind.RESIDENT, building_id="B1", apartment_number="1")
    clock.advance(days=2)
    second = await invites.generate(owner, InviteKind.RESIDENT, building_id="B1", apartment_number="2")
    clock.advance(days=6)

    items = await invites.list_invites(owner, InviteKind.RESIDENT)

    assert [item["id"] for item in items] == [second.invite_id, first.invite_id]
    assert items[0]["is_expired"] is False
    assert items[1]["is_expired"] is True
    assert items[0]["apartment_number"] == "2"


@pytest.mark.asyncio
async def test_delete_used_resident_invite_removes_resident(store, invites, factory, owner, blobs):
    generated = await invites.generate(owner, InviteKind.RESIDENT, building_id="B1", apartment_number="7")
    result = await invites.redeem(InviteKind.RESIDENT, generated.code, payload())
    resident = await store.get(Profile, result.account_id)
    report = await factory.report(resident)
    await blobs.put_object(f"fault-reports/{owner.tenant_id}/{report.id}/photo", b"jpeg", "image/jpeg")

    await invites.delete(owner, InviteKind.RESIDENT, generated.invite_id)

    assert await store.get(ResidentInvite, generated.invite_id) is None
    assert await store.get(Profile, result.account_id) is None
    assert await store.get(Account, result.account_id) is None
    assert await store.get(FaultReport, report.id) is None
    assert await blobs.list_by_prefix(f"fault-reports/{owner.tenant_id}/") == []


@pytest.mark.asyncio
async def test_delete_invite_of_other_tenant(invites, factory, owner):
    generated = await invites.generate(owner, InviteKind.MANAGEMENT)

    admin = await factory.admin()
    other_tenant = await factory.tenant(admin, name="Other Oy")
    other_owner = await factory.user(UserRole.HOUSING_COMPANY, tenant_id=other_tenant.id)

    with pytest.raises(PermissionDenied):
        await invites.delete(other_owner, InviteKind.MANAGEMENT, generated.invite_id)
