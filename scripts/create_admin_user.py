#!/usr/bin/env python3
"""
创建平台管理员脚本

创建身份账户与 admin 档案（无租户）

用法：
    # 使用环境变量
    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=secret123 python scripts/create_admin_user.py

    # 使用命令行参数
    python scripts/create_admin_user.py --email admin@example.com --password secret123 --first-name Platform
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

# 添加项目根目录到 Python 路径
sys.path.insert(0, str(Path(__file__).parent.parent))

from talofix.adapters.identity import SqlIdentityAdapter
from talofix.core.config import settings
from talofix.core.errors import ServiceError
from talofix.core.logging import setup_logging
from talofix.database import DocumentStore, async_session_maker, close_db
from talofix.database.models import UserRole
from talofix.services.provisioner import AccountProvisioner, ProfileFields


async def create_admin_user(email: str, password: str, first_name: str, last_name: str) -> None:
    """创建管理员账户与档案"""
    store = DocumentStore(async_session_maker)
    provisioner = AccountProvisioner(store, SqlIdentityAdapter(store))

    try:
        account_id = await provisioner.create(
            email,
            password,
            f"{first_name} {last_name}".strip(),
            ProfileFields(role=UserRole.ADMIN, tenant_id=None, first_name=first_name, last_name=last_name),
        )
    except ServiceError as exc:
        print(f"创建失败: {exc}")
        sys.exit(1)
    finally:
        await close_db()

    print("管理员创建成功:")
    print(f"  ID: {account_id}")
    print(f"  Email: {email}")
    print(f"  Role: {UserRole.ADMIN}")


def main():
    parser = argparse.ArgumentParser(description="创建平台管理员")
    parser.add_argument(
        "--email", "-e",
        default=os.environ.get("ADMIN_EMAIL"),
        help="登录邮箱 (必需，或设置 ADMIN_EMAIL 环境变量)",
    )
    parser.add_argument(
        "--password", "-p",
        default=os.environ.get("ADMIN_PASSWORD"),
        help="密码 (必需，或设置 ADMIN_PASSWORD 环境变量)",
    )
    parser.add_argument("--first-name", default=os.environ.get("ADMIN_FIRST_NAME", "Platform"))
    parser.add_argument("--last-name", default=os.environ.get("ADMIN_LAST_NAME", "Admin"))

    args = parser.parse_args()

    if not args.email or not args.password:
        print("错误: 必须提供邮箱和密码")
        sys.exit(1)

    setup_logging()
    print("正在创建管理员...")
    print(f"  数据库: {settings.DATABASE_URL.split('@')[-1] if '@' in settings.DATABASE_URL else settings.DATABASE_URL}")

    asyncio.run(create_admin_user(args.email, args.password, args.first_name, args.last_name))


if __name__ == "__main__":
    main()
