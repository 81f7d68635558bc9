"""
RBAC 权限控制模块

角色集合与 FastAPI 依赖

角色：
- admin: 平台管理员，创建/删除租户
- housing_company: 物业公司，管理邀请码与合作方
- property_manager: 物业经理
- maintenance: 维修人员
- service_company: 外部服务公司
- resident: 住户
"""

from typing import Annotated, Iterable, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from talofix.core.deps import get_guard
from talofix.core.guard import AuthorizationGuard, CallerIdentity
from talofix.core.security import read_access_subject
from talofix.database.models import Profile, UserRole

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

# 可以推进报修单状态的角色
WORKFLOW_ROLES = [
    UserRole.HOUSING_COMPANY,
    UserRole.SERVICE_COMPANY,
    UserRole.MAINTENANCE,
    UserRole.ADMIN,
    UserRole.PROPERTY_MANAGER,
]

# 可以发布/编辑公告的角色
ANNOUNCEMENT_EDITOR_ROLES = [
    UserRole.MAINTENANCE,
    UserRole.PROPERTY_MANAGER,
    UserRole.HOUSING_COMPANY,
    UserRole.ADMIN,
]

# 租户内可以查看全部报修单的角色
TENANT_WIDE_READER_ROLES = WORKFLOW_ROLES

# 邀请码签发角色
INVITE_ISSUER_ROLES = [UserRole.HOUSING_COMPANY]

ADMIN_ROLES = [UserRole.ADMIN]


async def get_caller(
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
) -> CallerIdentity:
    """从 Bearer token 中读取已验证的调用者 ID"""
    caller_id = read_access_subject(token) if token else None
    return AuthorizationGuard.require_caller(caller_id)


async def get_current_profile(
    caller: Annotated[CallerIdentity, Depends(get_caller)],
    guard: Annotated[AuthorizationGuard, Depends(get_guard)],
) -> Profile:
    return await guard.load_profile(caller.caller_id)


def require_roles(allowed_roles: Iterable[str]):
    """
    角色权限检查依赖工厂

    用法：
        @router.post("/invites")
        async def generate(
            profile: Annotated[Profile, Depends(require_roles(INVITE_ISSUER_ROLES))],
        ):
            ...
    """
    role_names = list(allowed_roles)

    async def role_checker(
        profile: Annotated[Profile, Depends(get_current_profile)],
    ) -> Profile:
        AuthorizationGuard.require_role(profile.role, role_names)
        return profile

    return role_checker


# ============================================================
# 类型别名（用于路由参数类型注解）
# ============================================================

# 已验证的调用者（不要求档案，例如注册中的用户）
CurrentCaller = Annotated[CallerIdentity, Depends(get_caller)]

# 任何有完整档案的用户
CurrentProfile = Annotated[Profile, Depends(get_current_profile)]

# 仅平台管理员
AdminOnly = Annotated[Profile, Depends(require_roles(ADMIN_ROLES))]

# 仅物业公司
InviteIssuer = Annotated[Profile, Depends(require_roles(INVITE_ISSUER_ROLES))]

# 公告编辑者
AnnouncementEditor = Annotated[Profile, Depends(require_roles(ANNOUNCEMENT_EDITOR_ROLES))]
