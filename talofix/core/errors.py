"""
错误类型

对调用方只暴露一小组稳定的错误类型，不泄露底层存储异常：

- unauthenticated: 未登录
- permission_denied: 角色不符、跨租户、邀请码过期、档案不完整
- invalid_argument: 参数缺失或格式错误
- not_found: 引用的租户/邀请码/报修/公告不存在
- already_exists: 邮箱重复、租户已注册、角色唯一用户已存在
- conflict: 并发兑换同一邀请码时的失败方
- internal: 存储或身份服务的意外错误
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import status


@dataclass
class ServiceError(Exception):
    """服务层错误基类"""

    message: str
    details: Optional[Dict[str, Any]] = None

    code = "internal"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class Unauthenticated(ServiceError):
    code = "unauthenticated"
    http_status = status.HTTP_401_UNAUTHORIZED


class PermissionDenied(ServiceError):
    code = "permission_denied"
    http_status = status.HTTP_403_FORBIDDEN


class InvalidArgument(ServiceError):
    code = "invalid_argument"
    http_status = status.HTTP_400_BAD_REQUEST


class NotFound(ServiceError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class AlreadyExists(ServiceError):
    code = "already_exists"
    http_status = status.HTTP_409_CONFLICT


class Conflict(ServiceError):
    code = "conflict"
    http_status = status.HTTP_409_CONFLICT


class Internal(ServiceError):
    code = "internal"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
