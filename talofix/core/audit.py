"""
操作审计服务

提供审计日志记录功能；审计写入失败只记录日志，不影响业务操作
"""

from typing import Any, Dict, Optional

import structlog

from talofix.core.errors import ServiceError
from talofix.database.models import AuditLog
from talofix.database.store import DocumentStore

logger = structlog.get_logger(__name__)


class AuditAction:
    """审计操作类型常量"""
    # 租户
    TENANT_CREATE = "tenant.create"
    TENANT_UPDATE = "tenant.update"
    TENANT_DELETE = "tenant.delete"
    TENANT_REGISTER = "tenant.register"

    # 邀请码
    INVITE_GENERATE = "invite.generate"
    INVITE_REDEEM = "invite.redeem"
    INVITE_DELETE = "invite.delete"

    # 合作方
    PARTNER_REMOVE = "partner.remove"

    # 报修
    FAULT_REPORT_STATUS_CHANGE = "fault_report.status_change"
    FAULT_REPORT_DELETE = "fault_report.delete"

    # 公告
    ANNOUNCEMENT_CREATE = "announcement.create"
    ANNOUNCEMENT_DELETE = "announcement.delete"

    # 账户
    ACCOUNT_SELF_DELETE = "account.self_delete"


class TargetType:
    """目标类型常量"""
    TENANT = "tenant"
    INVITE = "invite"
    PROFILE = "profile"
    FAULT_REPORT = "fault_report"
    ANNOUNCEMENT = "announcement"


async def log_audit(
    store: DocumentStore,
    actor: str,
    action: str,
    target_type: str,
    target_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> Optional[AuditLog]:
    """
    记录审计日志

    Args:
        store: 文档存储
        actor: 操作者（用户 ID）
        action: 操作类型（如 tenant.delete, invite.redeem）
        target_type: 目标类型
        target_id: 目标 ID
        payload: 操作详情（JSON）

    Returns:
        创建的审计日志记录；写入失败时返回 None
    """
    log = logger.bind(
        actor=actor,
        action=action,
        target_type=target_type,
        target_id=target_id,
    )

    try:
        audit_log = await store.add(
            AuditLog(
                actor=actor,
                action=action,
                target_type=target_type,
                target_id=target_id,
                payload=payload or {},
            )
        )
    except ServiceError as exc:
        log.error("audit_log_failed", error=str(exc))
        return None

    log.info("audit_log_created", audit_id=audit_log.id)
    return audit_log
