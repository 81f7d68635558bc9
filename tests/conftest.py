"""
测试配置和 fixtures

每个测试使用独立的 SQLite 数据库文件（aiosqlite）和临时对象存储目录
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

# 必须在导入 talofix 之前设置
_TEST_DIR = tempfile.mkdtemp(prefix="talofix-test-")
os.environ["ENV"] = "test"
os.environ["DEBUG"] = "false"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["BLOB_ROOT"] = os.path.join(_TEST_DIR, "blobs")
os.environ["BLOB_PUBLIC_BASE_URL"] = "http://test/files"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET_KEY"] = "test-secret"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from talofix.adapters.blobs import LocalBlobStore
from talofix.adapters.identity import SqlIdentityAdapter
from talofix.core.deps import get_blob_store
from talofix.core.guard import AuthorizationGuard
from talofix.database import DocumentStore, async_session_maker, drop_db, init_db
from talofix.database.models import FaultReport, FaultReportStatus, Profile, Tenant, UserRole
from talofix.main import app
from talofix.services.announcements import AnnouncementService
from talofix.services.fault_reports import FaultReportService
from talofix.services.fault_workflow import FaultReportStatusWorkflow
from talofix.services.invites import InviteCodeManager
from talofix.services.profiles import ProfileService
from talofix.services.provisioner import AccountProvisioner, ProfileFields
from talofix.services.tenant_lifecycle import TenantLifecycleCoordinator
from talofix.services.tenants import TenantDraft, TenantService

NOW = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """可手动推进的时钟"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest_asyncio.fixture(autouse=True)
async def database() -> AsyncGenerator[None, None]:
    """每个测试重建所有表"""
    await init_db()
    yield
    await drop_db()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store() -> DocumentStore:
    return DocumentStore(async_session_maker)


@pytest.fixture
def blobs(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(str(tmp_path / "blobs"), "http://test/files")


@pytest.fixture
def identity(store) -> SqlIdentityAdapter:
    return SqlIdentityAdapter(store)


@pytest.fixture
def guard(store) -> AuthorizationGuard:
    return AuthorizationGuard(store)


@pytest.fixture
def provisioner(store, identity, clock) -> AccountProvisioner:
    return AccountProvisioner(store, identity, clock=clock)


@pytest.fixture
def invites(store, guard, provisioner, identity, blobs, clock) -> InviteCodeManager:
    return InviteCodeManager(store, guard, provisioner, identity, blobs, clock=clock)


@pytest.fixture
def profiles(store, identity, guard, clock) -> ProfileService:
    return ProfileService(store, identity, guard, clock=clock)


@pytest.fixture
def tenants(store, guard, clock) -> TenantService:
    return TenantService(store, guard, clock=clock)


@pytest.fixture
def reports(store, blobs, guard, clock) -> FaultReportService:
    return FaultReportService(store, blobs, guard, FaultReportStatusWorkflow(strict=True, clock=clock), clock=clock)


@pytest.fixture
def announcements(store, blobs, guard, clock) -> AnnouncementService:
    return AnnouncementService(store, blobs, guard, clock=clock)


@pytest.fixture
def lifecycle(store, identity, blobs, guard) -> TenantLifecycleCoordinator:
    return TenantLifecycleCoordinator(store, identity, blobs, guard)


class Factory:
    """测试数据构造"""

    def __init__(self, store: DocumentStore, provisioner: AccountProvisioner, tenants: TenantService):
        self.store = store
        self.provisioner = provisioner
        self.tenants = tenants
        self._seq = 0

    def _email(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}{self._seq}@example.com"

    async def user(
        self,
        role: str,
        tenant_id: Optional[str] = None,
        building_id: Optional[str] = None,
        apartment_number: Optional[str] = None,
        email: Optional[str] = None,
        password: str = "secret123",
    ) -> Profile:
        """创建身份账户与档案"""
        if role in (UserRole.RESIDENT, UserRole.PROPERTY_MANAGER) and building_id is None:
            building_id = "B1"
        fields = ProfileFields(
            role=role,
            tenant_id=tenant_id,
            first_name="Test",
            last_name=role,
            building_id=building_id,
            apartment_number=apartment_number,
        )
        account_id = await self.provisioner.create(email or self._email(role), password, f"Test {role}", fields)
        return await self.store.get(Profile, account_id)

    async def admin(self, **kwargs) -> Profile:
        return await self.user(UserRole.ADMIN, **kwargs)

    async def tenant(self, admin: Profile, name: str = "Koivukoti Oy") -> Tenant:
        return await self.tenants.create(
            admin,
            TenantDraft(name=name, address="Mannerheimintie 1", city="Helsinki", postal_code="00100"),
        )

    async def report(self, creator: Profile, status: str = FaultReportStatus.OPEN, **kwargs) -> FaultReport:
        values = {
            "tenant_id": creator.tenant_id,
            "building_id": creator.building_id,
            "created_by": creator.id,
            "title": "Leaking tap",
            "description": "Kitchen tap is dripping",
            "status": status,
            "images": [],
        }
        values.update(kwargs)
        return await self.store.add(FaultReport(**values))


@pytest.fixture
def factory(store, provisioner, tenants) -> Factory:
    return Factory(store, provisioner, tenants)


@pytest_asyncio.fixture
async def client(blobs) -> AsyncGenerator[AsyncClient, None]:
    """创建测试客户端"""
    app.dependency_overrides[get_blob_store] = lambda: blobs

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def login(client: AsyncClient, email: str, password: str = "secret123") -> dict:
    """登录并返回 Authorization 请求头"""
    response = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
