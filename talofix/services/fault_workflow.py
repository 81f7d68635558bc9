"""
故障报修状态机

状态迁移表（有向无环）：
    created      -> open, cancelled
    open         -> in_progress, waiting, cancelled
    waiting      -> in_progress, cancelled
    in_progress  -> waiting, completed, incomplete, not_possible
    其余状态为终态

resolved / closed 是历史数据中的终态别名，计算后续状态前先归一为 completed。

迁移权限：
- 工作流角色可以执行当前状态允许的任何迁移
- 报修单的创建者（住户）只能取消
- 其他调用者无权迁移
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from talofix.core.clock import Clock, utcnow
from talofix.core.config import settings
from talofix.core.errors import InvalidArgument, PermissionDenied
from talofix.core.rbac import WORKFLOW_ROLES
from talofix.database.models import FaultReport, FaultReportStatus, UserRole

S = FaultReportStatus

TRANSITIONS: Dict[str, tuple] = {
    S.CREATED: (S.OPEN, S.CANCELLED),
    S.OPEN: (S.IN_PROGRESS, S.WAITING, S.CANCELLED),
    S.WAITING: (S.IN_PROGRESS, S.CANCELLED),
    S.IN_PROGRESS: (S.WAITING, S.COMPLETED, S.INCOMPLETE, S.NOT_POSSIBLE),
    S.COMPLETED: (),
    S.INCOMPLETE: (),
    S.NOT_POSSIBLE: (),
    S.CANCELLED: (),
}

LEGACY_ALIASES = {
    S.RESOLVED: S.COMPLETED,
    S.CLOSED: S.COMPLETED,
}

# 首次进入这些状态时记录 resolved_at
RESOLVED_STATUSES = (S.COMPLETED, S.RESOLVED, S.CLOSED)


def normalize_status(status: str) -> str:
    return LEGACY_ALIASES.get(status, status)


def get_allowed_next_statuses(current: str, role: str, is_creator: bool) -> List[str]:
    """
    计算调用者可以执行的后续状态

    Args:
        current: 当前状态
        role: 调用者角色
        is_creator: 调用者是否为报修单创建者
    """
    successors = TRANSITIONS.get(normalize_status(current), ())

    if role in WORKFLOW_ROLES:
        return list(successors)

    if role == UserRole.RESIDENT and is_creator and S.CANCELLED in successors:
        return [S.CANCELLED]

    return []


class FaultReportStatusWorkflow:
    """
    报修状态机

    strict=True 时服务端强制校验迁移表；
    strict=False 时沿用宽松约定：工作流角色可以写入任何已知状态。
    """

    def __init__(self, strict: Optional[bool] = None, clock: Clock = utcnow):
        self.strict = settings.FAULT_REPORT_STRICT_TRANSITIONS if strict is None else strict
        self.clock = clock

    def allowed_next(self, report: FaultReport, caller_id: str, role: str) -> List[str]:
        return get_allowed_next_statuses(report.status, role, report.created_by == caller_id)

    def plan(
        self,
        report: FaultReport,
        target: str,
        caller_id: str,
        role: str,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        校验一次迁移并返回需要写入的字段

        Raises:
            InvalidArgument: 未知状态
            PermissionDenied: 调用者无权执行该迁移
        """
        if target not in S.ALL:
            raise InvalidArgument("未知的报修状态", details={"status": target})

        allowed = self.allowed_next(report, caller_id, role)
        if target not in allowed and not self._legacy_allows(role, target):
            raise PermissionDenied(
                "不允许的状态变更",
                details={"from": report.status, "to": target, "allowed": allowed},
            )

        now = now or self.clock()
        values: Dict[str, Any] = {
            "status": target,
            "updated_at": now,
            "updated_by": caller_id,
        }
        if comment is not None:
            values["comment"] = comment
        if target in RESOLVED_STATUSES and report.resolved_at is None:
            values["resolved_at"] = now
            values["resolved_by"] = caller_id
        return values

    def _legacy_allows(self, role: str, target: str) -> bool:
        return not self.strict and role in WORKFLOW_ROLES
