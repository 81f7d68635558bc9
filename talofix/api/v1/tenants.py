"""
租户管理 API

仅平台管理员可访问，且只能管理自己创建的租户
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from talofix.api.deps import Lifecycle, Tenants
from talofix.api.v1.schemas import OkResponse
from talofix.core.rbac import AdminOnly
from talofix.database.models import Tenant
from talofix.services.tenants import TenantDraft

router = APIRouter()


class TenantCreate(BaseModel):
    """创建租户请求"""
    name: str = Field(..., min_length=1, max_length=200)
    address: str = Field(..., min_length=1, max_length=300)
    city: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)


class TenantUpdate(BaseModel):
    """更新租户请求"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, min_length=1, max_length=300)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    postal_code: Optional[str] = Field(None, min_length=1, max_length=20)
    is_active: Optional[bool] = None


class TenantResponse(BaseModel):
    """租户响应"""
    id: str
    name: str
    address: str
    city: str
    postal_code: str
    created_by_admin_id: str
    is_active: bool
    is_registered: bool
    invite_code: Optional[str] = None
    invite_code_expires_at: Optional[datetime] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


@router.get("", response_model=List[TenantResponse])
async def list_tenants(admin: AdminOnly, tenants: Tenants) -> List[Tenant]:
    """当前管理员创建的租户"""
    return await tenants.list_tenants(admin)


@router.post("", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(data: TenantCreate, admin: AdminOnly, tenants: Tenants) -> Tenant:
    """创建空壳租户"""
    return await tenants.create(admin, TenantDraft(**data.model_dump()))


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(tenant_id: str, admin: AdminOnly, tenants: Tenants) -> Tenant:
    return await tenants.get(admin, tenant_id)


@router.patch("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(tenant_id: str, data: TenantUpdate, admin: AdminOnly, tenants: Tenants) -> Tenant:
    return await tenants.update(admin, tenant_id, data.model_dump(exclude_unset=True))


@router.delete("/{tenant_id}", response_model=OkResponse)
async def delete_tenant(tenant_id: str, admin: AdminOnly, lifecycle: Lifecycle) -> OkResponse:
    """
    级联删除租户

    子步骤失败只记录日志，不影响返回结果
    """
    await lifecycle.delete_tenant(admin, tenant_id)
    return OkResponse()
