"""
邀请码模型

三类邀请码各自一张表，字段形状相同：
- resident_invites: 住户邀请码（带楼栋/门牌号）
- management_invites: 维修人员邀请码
- service_company_invites: 外部服务公司邀请码

租户注册邀请码直接存放在 tenants 表上
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from talofix.database.base import Base, StringIdMixin, TenantMixin, TimestampMixin


class InviteMixin(StringIdMixin, TenantMixin, TimestampMixin):
    """
    邀请码公共字段

    有效 = 未使用 且 expires_at > now；兑换成功后仅修改一次（标记已使用）
    """

    code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    created_by: Mapped[str] = mapped_column(String(36), nullable=False)
    is_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_by_user_id: Mapped[Optional[str]] = mapped_column(String(36))
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class ResidentInvite(Base, InviteMixin):
    """住户邀请码"""

    __tablename__ = "resident_invites"

    building_id: Mapped[str] = mapped_column(String(200), nullable=False)
    apartment_number: Mapped[str] = mapped_column(String(50), nullable=False)


class ManagementInvite(Base, InviteMixin):
    """维修人员邀请码"""

    __tablename__ = "management_invites"


class ServiceCompanyInvite(Base, InviteMixin):
    """外部服务公司邀请码"""

    __tablename__ = "service_company_invites"
