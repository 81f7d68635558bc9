"""
API 依赖注入

按请求组装业务服务；底层依赖来自 talofix.core.deps，可在测试中覆盖
"""

from typing import Annotated

from fastapi import Depends

from talofix.adapters.blobs import BlobStore
from talofix.adapters.identity import IdentityAdapter
from talofix.core.deps import get_blob_store, get_guard, get_identity, get_store
from talofix.core.guard import AuthorizationGuard
from talofix.database.store import DocumentStore
from talofix.services.announcements import AnnouncementService
from talofix.services.fault_reports import FaultReportService
from talofix.services.invites import InviteCodeManager
from talofix.services.partners import PartnerService
from talofix.services.profiles import ProfileService
from talofix.services.provisioner import AccountProvisioner
from talofix.services.tenant_lifecycle import TenantLifecycleCoordinator
from talofix.services.tenants import TenantService

Store = Annotated[DocumentStore, Depends(get_store)]
Identity = Annotated[IdentityAdapter, Depends(get_identity)]
Blobs = Annotated[BlobStore, Depends(get_blob_store)]
Guard = Annotated[AuthorizationGuard, Depends(get_guard)]


def get_invite_manager(store: Store, identity: Identity, blobs: Blobs, guard: Guard) -> InviteCodeManager:
    provisioner = AccountProvisioner(store, identity)
    return InviteCodeManager(store, guard, provisioner, identity, blobs)


def get_tenant_service(store: Store, guard: Guard) -> TenantService:
    return TenantService(store, guard)


def get_lifecycle(store: Store, identity: Identity, blobs: Blobs, guard: Guard) -> TenantLifecycleCoordinator:
    return TenantLifecycleCoordinator(store, identity, blobs, guard)


def get_fault_reports(store: Store, blobs: Blobs, guard: Guard) -> FaultReportService:
    return FaultReportService(store, blobs, guard)


def get_announcements(store: Store, blobs: Blobs, guard: Guard) -> AnnouncementService:
    return AnnouncementService(store, blobs, guard)


def get_partners(store: Store, identity: Identity, guard: Guard) -> PartnerService:
    return PartnerService(store, identity, guard)


def get_profiles(store: Store, identity: Identity, guard: Guard) -> ProfileService:
    return ProfileService(store, identity, guard)


Invites = Annotated[InviteCodeManager, Depends(get_invite_manager)]
Tenants = Annotated[TenantService, Depends(get_tenant_service)]
Lifecycle = Annotated[TenantLifecycleCoordinator, Depends(get_lifecycle)]
FaultReports = Annotated[FaultReportService, Depends(get_fault_reports)]
Announcements = Annotated[AnnouncementService, Depends(get_announcements)]
Partners = Annotated[PartnerService, Depends(get_partners)]
Profiles = Annotated[ProfileService, Depends(get_profiles)]
