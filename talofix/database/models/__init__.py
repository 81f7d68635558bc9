"""
数据库模型

所有 SQLAlchemy 模型的统一导出
"""

from talofix.database.models.account import Account
from talofix.database.models.announcement import Announcement, AnnouncementType
from talofix.database.models.audit_log import AuditLog
from talofix.database.models.fault_report import FaultReport, FaultReportStatus, FaultReportUrgency
from talofix.database.models.invite import ManagementInvite, ResidentInvite, ServiceCompanyInvite
from talofix.database.models.profile import ROLES_WITHOUT_BUILDING, Profile, UserRole
from talofix.database.models.tenant import Tenant

__all__ = [
    "Account",
    "Announcement",
    "AnnouncementType",
    "AuditLog",
    "FaultReport",
    "FaultReportStatus",
    "FaultReportUrgency",
    "ManagementInvite",
    "Profile",
    "ROLES_WITHOUT_BUILDING",
    "ResidentInvite",
    "ServiceCompanyInvite",
    "Tenant",
    "UserRole",
]
