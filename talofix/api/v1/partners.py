"""
合作方用户 API

物业公司查看/移除本租户的维修人员与外部服务公司用户
"""

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from talofix.api.deps import Partners
from talofix.api.v1.schemas import OkResponse, ProfileResponse
from talofix.core.rbac import InviteIssuer
from talofix.services.invites import InviteKind

router = APIRouter()


class PartnerResponse(BaseModel):
    exists: bool
    user: Optional[ProfileResponse] = None


@router.get("/{kind}", response_model=PartnerResponse)
async def get_partner_user(kind: InviteKind, profile: InviteIssuer, partners: Partners) -> PartnerResponse:
    partner = await partners.get_partner(profile, kind)
    if partner is None:
        return PartnerResponse(exists=False)
    return PartnerResponse(exists=True, user=ProfileResponse.model_validate(partner))


@router.delete("/{kind}", response_model=OkResponse)
async def remove_partner_user(kind: InviteKind, profile: InviteIssuer, partners: Partners) -> OkResponse:
    """移除合作方用户及该类型的全部邀请码"""
    await partners.remove_partner(profile, kind)
    return OkResponse()
