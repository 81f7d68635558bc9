"""
公共请求/响应模型
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class OkResponse(BaseModel):
    ok: bool = True


class ProfileResponse(BaseModel):
    """用户档案响应"""

    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    tenant_id: Optional[str] = None
    building_id: Optional[str] = None
    apartment_number: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
