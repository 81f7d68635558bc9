"""
邀请码 API

- 签发/列表/删除：需要登录（租户注册码由管理员签发，其余由物业公司签发）
- 校验/兑换：无需登录，兑换时创建账户
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from talofix.api.deps import Invites
from talofix.api.v1.schemas import OkResponse
from talofix.core.rbac import CurrentProfile
from talofix.services.invites import AccountPayload, GeneratedInvite, InviteKind, InviteSummary, RedemptionResult

router = APIRouter()


class InviteGenerateRequest(BaseModel):
    """签发请求"""
    tenant_id: Optional[str] = None
    building_id: Optional[str] = Field(None, max_length=200)
    apartment_number: Optional[str] = Field(None, max_length=50)


class InviteResponse(BaseModel):
    """签发响应"""
    kind: InviteKind
    code: str
    expires_at: datetime
    tenant_id: str
    invite_id: Optional[str] = None
    building_id: Optional[str] = None
    apartment_number: Optional[str] = None
    reused: bool = False

    model_config = {"from_attributes": True}


class InviteListItem(BaseModel):
    id: str
    code: str
    is_used: bool
    is_expired: bool
    expires_at: datetime
    created_at: datetime
    used_by_user_id: Optional[str] = None
    building_id: Optional[str] = None
    apartment_number: Optional[str] = None


class InviteCodeRequest(BaseModel):
    code: str = Field(..., max_length=20)


class InviteSummaryResponse(BaseModel):
    """兑换前预览"""
    kind: InviteKind
    tenant_id: str
    tenant_name: str
    invite_id: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    building_id: Optional[str] = None
    apartment_number: Optional[str] = None

    model_config = {"from_attributes": True}


class RedeemRequest(BaseModel):
    """兑换请求"""
    code: str = Field(..., max_length=20)
    email: str = Field(..., max_length=200)
    password: str = Field(..., max_length=200)
    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    company_name: Optional[str] = Field(None, max_length=200)
    contact_person: Optional[str] = Field(None, max_length=200)


class RedeemResponse(BaseModel):
    account_id: str
    tenant_id: str
    role: str

    model_config = {"from_attributes": True}


@router.post("/{kind}", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
async def generate_invite(
    kind: InviteKind,
    data: InviteGenerateRequest,
    profile: CurrentProfile,
    invites: Invites,
) -> GeneratedInvite:
    """签发邀请码；维修/服务公司已有有效码时原样返回"""
    return await invites.generate(
        profile,
        kind,
        tenant_id=data.tenant_id,
        building_id=data.building_id,
        apartment_number=data.apartment_number,
    )


@router.get("/{kind}", response_model=List[InviteListItem])
async def list_invites(kind: InviteKind, profile: CurrentProfile, invites: Invites) -> List[dict]:
    return await invites.list_invites(profile, kind)


@router.delete("/{kind}/{invite_id}", response_model=OkResponse)
async def delete_invite(kind: InviteKind, invite_id: str, profile: CurrentProfile, invites: Invites) -> OkResponse:
    await invites.delete(profile, kind, invite_id)
    return OkResponse()


@router.post("/{kind}/validate", response_model=InviteSummaryResponse)
async def validate_invite(kind: InviteKind, data: InviteCodeRequest, invites: Invites) -> InviteSummary:
    """校验邀请码（无副作用）"""
    return await invites.validate(kind, data.code)


@router.post("/{kind}/redeem", response_model=RedeemResponse, status_code=status.HTTP_201_CREATED)
async def redeem_invite(kind: InviteKind, data: RedeemRequest, invites: Invites) -> RedemptionResult:
    """兑换邀请码并创建账户"""
    payload = AccountPayload(**data.model_dump(exclude={"code"}))
    return await invites.redeem(kind, data.code, payload)
