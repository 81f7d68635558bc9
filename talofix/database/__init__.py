"""
数据库模块

提供 SQLAlchemy 2.0 异步数据库支持
"""

from talofix.database.base import Base, JSONType, StringIdMixin, TenantMixin, TimestampMixin
from talofix.database.engine import async_session_maker, close_db, drop_db, engine, init_db, ping_db
from talofix.database.store import DocumentStore

__all__ = [
    # Engine
    "engine",
    "async_session_maker",
    "init_db",
    "drop_db",
    "close_db",
    "ping_db",
    # Base
    "Base",
    "JSONType",
    "StringIdMixin",
    "TenantMixin",
    "TimestampMixin",
    # Store
    "DocumentStore",
]
