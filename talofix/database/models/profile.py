"""
用户档案模型

档案 ID 与身份账户 ID 相同
"""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from talofix.database.base import Base, StringIdMixin, TimestampMixin


class UserRole:
    """用户角色常量"""
    ADMIN = "admin"                          # 平台管理员（无租户）
    HOUSING_COMPANY = "housing_company"      # 物业公司（租户所有者）
    PROPERTY_MANAGER = "property_manager"    # 物业经理
    MAINTENANCE = "maintenance"              # 维修人员（管理邀请码）
    SERVICE_COMPANY = "service_company"      # 外部服务公司
    RESIDENT = "resident"                    # 住户

    ALL = (
        ADMIN,
        HOUSING_COMPANY,
        PROPERTY_MANAGER,
        MAINTENANCE,
        SERVICE_COMPANY,
        RESIDENT,
    )


# 不要求楼栋 ID 的角色
ROLES_WITHOUT_BUILDING = (
    UserRole.ADMIN,
    UserRole.HOUSING_COMPANY,
    UserRole.MAINTENANCE,
    UserRole.SERVICE_COMPANY,
)


class Profile(Base, StringIdMixin, TimestampMixin):
    """
    用户档案

    - 非 admin 档案必须带 tenant_id
    - 除 ROLES_WITHOUT_BUILDING 外的角色必须带 building_id
    """

    __tablename__ = "profiles"

    email: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    tenant_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    building_id: Mapped[Optional[str]] = mapped_column(String(200))
    apartment_number: Mapped[Optional[str]] = mapped_column(String(50))

    phone: Mapped[Optional[str]] = mapped_column(String(50))
    company_name: Mapped[Optional[str]] = mapped_column(String(200))
    photo_url: Mapped[Optional[str]] = mapped_column(String(500))

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, role={self.role}, tenant_id={self.tenant_id})>"
