"""
SQLAlchemy 基础模型与混入类

提供：
- Base: 声明式基类
- StringIdMixin: 字符串 UUID 主键（应用侧生成）
- TimestampMixin: 时间戳字段
- TenantMixin: 多租户字段
- JSONType: PostgreSQL 下为 JSONB，其余方言为 JSON
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from talofix.core.clock import utcnow

JSONType = JSON().with_variant(JSONB(), "postgresql")


def generate_id() -> str:
    """生成文档 ID"""
    return str(uuid4())


class Base(DeclarativeBase):
    """
    声明式基类

    所有模型都应继承此类
    """

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class StringIdMixin:
    """
    字符串主键混入类

    ID 在应用侧生成，写入前即可用于组装存储路径
    """

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)


class TimestampMixin:
    """
    时间戳混入类

    提供 created_at 和 updated_at 字段（应用侧赋值）
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )


class TenantMixin:
    """
    多租户混入类

    所有租户范围内的业务数据都应使用此混入。
    不建外键：各集合之间没有跨文档事务，级联删除由应用层完成。
    """

    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
