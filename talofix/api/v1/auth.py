"""
认证 API

邮箱密码登录，返回 Bearer 访问令牌
"""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from talofix.api.deps import Profiles
from talofix.api.v1.schemas import ProfileResponse

router = APIRouter()


class LoginRequest(BaseModel):
    """登录请求"""
    email: str = Field(..., min_length=3, max_length=200)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """登录响应"""
    access_token: str
    token_type: str = "bearer"
    profile: ProfileResponse


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, profiles: Profiles) -> dict:
    """登录"""
    return await profiles.login(data.email, data.password)
