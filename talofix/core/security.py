"""
安全模块

- 账户密码的 bcrypt 哈希
- 登录签发的访问令牌（sub 为账户 ID，type=access）
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from talofix.core.config import settings

TOKEN_TYPE_ACCESS = "access"

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(account_id: str, role: str) -> str:
    """签发访问令牌，有效期 JWT_ACCESS_TOKEN_EXPIRE_MINUTES"""
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": account_id,
        "role": role,
        "type": TOKEN_TYPE_ACCESS,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def read_access_subject(token: str) -> Optional[str]:
    """校验访问令牌并返回账户 ID；签名无效、过期或类型不符时返回 None"""
    try:
        claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if claims.get("type") != TOKEN_TYPE_ACCESS:
        return None
    return claims.get("sub")
