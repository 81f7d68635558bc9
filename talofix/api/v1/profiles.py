"""
用户档案 API
"""

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from talofix.api.deps import Profiles
from talofix.api.v1.schemas import OkResponse, ProfileResponse
from talofix.core.rbac import CurrentProfile
from talofix.database.models import Profile

router = APIRouter()


class ProfileUpdate(BaseModel):
    """修改档案（仅非特权字段）"""
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    apartment_number: Optional[str] = Field(None, max_length=50)
    photo_url: Optional[str] = Field(None, max_length=500)


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(profile: CurrentProfile) -> Profile:
    return profile


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(data: ProfileUpdate, profile: CurrentProfile, profiles: Profiles) -> Profile:
    return await profiles.update_me(profile, data.model_dump(exclude_unset=True))


@router.delete("/me", response_model=OkResponse)
async def delete_my_account(profile: CurrentProfile, profiles: Profiles) -> OkResponse:
    """注销自己的账户"""
    await profiles.delete_me(profile)
    return OkResponse()
