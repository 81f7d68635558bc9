"""
公告模型

附件以 JSON 列表形式内嵌：{id, filename, mime_type, size, path, url}
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from talofix.database.base import Base, JSONType, StringIdMixin, TenantMixin, TimestampMixin


class AnnouncementType:
    """公告类型常量"""
    GENERAL = "general"
    MAINTENANCE = "maintenance"
    EMERGENCY = "emergency"
    EVENT = "event"

    ALL = (GENERAL, MAINTENANCE, EMERGENCY, EVENT)


class Announcement(Base, StringIdMixin, TenantMixin, TimestampMixin):
    """公告"""

    __tablename__ = "announcements"

    author_id: Mapped[str] = mapped_column(String(36), nullable=False)
    author_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)

    type: Mapped[str] = mapped_column(String(30), default=AnnouncementType.GENERAL, nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # 可选的时间窗口（日期 YYYY-MM-DD，时间 HH:MM）
    start_date: Mapped[Optional[str]] = mapped_column(String(10))
    start_time: Mapped[Optional[str]] = mapped_column(String(5))
    end_date: Mapped[Optional[str]] = mapped_column(String(10))
    end_time: Mapped[Optional[str]] = mapped_column(String(5))

    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    attachments: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, default=list, nullable=False)
    # 附件列表每次写入加一，作为列表的条件写版本号
    attachments_revision: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
