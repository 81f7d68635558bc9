"""
身份账户模型

只保存登录凭据；业务数据在 Profile 中，两者通过相同 ID 关联
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from talofix.database.base import Base, StringIdMixin, TimestampMixin


class Account(Base, StringIdMixin, TimestampMixin):
    """身份账户"""

    __tablename__ = "accounts"

    email: Mapped[str] = mapped_column(String(200), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(200), nullable=False)
    display_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, email={self.email})>"
