"""
API 路由模块

统一注册所有 API 路由
"""

from fastapi import APIRouter

from talofix.api.v1 import (
    announcements,
    auth,
    fault_reports,
    invites,
    partners,
    profiles,
    tenants,
)

router = APIRouter()

# 认证与档案
router.include_router(auth.router, prefix="/v1/auth", tags=["认证"])
router.include_router(profiles.router, prefix="/v1/profiles", tags=["档案"])

# 租户与邀请码
router.include_router(tenants.router, prefix="/v1/tenants", tags=["租户"])
router.include_router(invites.router, prefix="/v1/invites", tags=["邀请码"])
router.include_router(partners.router, prefix="/v1/partners", tags=["合作方"])

# 业务
router.include_router(fault_reports.router, prefix="/v1/fault-reports", tags=["报修"])
router.include_router(announcements.router, prefix="/v1/announcements", tags=["公告"])
