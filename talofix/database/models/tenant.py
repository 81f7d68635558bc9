"""
租户（物业公司）模型

由平台管理员创建为空壳租户，通过租户邀请码完成一次性注册
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from talofix.database.base import Base, StringIdMixin, TimestampMixin


class Tenant(Base, StringIdMixin, TimestampMixin):
    """
    租户实体

    - created_by_admin_id: 创建者管理员，只有创建者可以管理/删除该租户
    - invite_code / invite_code_expires_at: 租户注册邀请码，注册成功后清空
    - user_id / email / contact_person / phone: 注册后由物业公司账户填写
    """

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str] = mapped_column(String(300), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False)

    created_by_admin_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_registered: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    invite_code: Mapped[Optional[str]] = mapped_column(String(20), index=True)
    invite_code_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    user_id: Mapped[Optional[str]] = mapped_column(String(36))
    email: Mapped[Optional[str]] = mapped_column(String(200))
    contact_person: Mapped[Optional[str]] = mapped_column(String(200))
    phone: Mapped[Optional[str]] = mapped_column(String(50))

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name={self.name}, registered={self.is_registered})>"
