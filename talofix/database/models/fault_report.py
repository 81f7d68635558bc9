"""
故障报修模型
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from talofix.database.base import Base, JSONType, StringIdMixin, TenantMixin, TimestampMixin


class FaultReportStatus:
    """报修状态常量"""
    CREATED = "created"
    OPEN = "open"
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    NOT_POSSIBLE = "not_possible"
    CANCELLED = "cancelled"
    # 历史数据中的终态别名，等同 completed
    RESOLVED = "resolved"
    CLOSED = "closed"

    ALL = (
        CREATED,
        OPEN,
        WAITING,
        IN_PROGRESS,
        COMPLETED,
        INCOMPLETE,
        NOT_POSSIBLE,
        CANCELLED,
        RESOLVED,
        CLOSED,
    )


class FaultReportUrgency:
    """紧急程度常量"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    ALL = (LOW, MEDIUM, HIGH, URGENT)


class FaultReport(Base, StringIdMixin, TenantMixin, TimestampMixin):
    """故障报修单"""

    __tablename__ = "fault_reports"

    building_id: Mapped[Optional[str]] = mapped_column(String(200), index=True)
    apartment_number: Mapped[Optional[str]] = mapped_column(String(50))
    created_by: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(String(300), default="", nullable=False)
    urgency: Mapped[str] = mapped_column(
        String(20), default=FaultReportUrgency.MEDIUM, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(30), default=FaultReportStatus.OPEN, nullable=False, index=True
    )

    images: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    images_revision: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text)

    updated_by: Mapped[Optional[str]] = mapped_column(String(36))
    resolved_by: Mapped[Optional[str]] = mapped_column(String(36))
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<FaultReport(id={self.id}, status={self.status}, tenant_id={self.tenant_id})>"
