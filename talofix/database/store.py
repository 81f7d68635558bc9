"""
文档存储

基于 SQLAlchemy 异步会话的薄封装，每个操作独立开启会话并提交：

- 不提供跨文档事务，多步业务流程自行处理部分失败
- update 支持附加条件（UPDATE ... WHERE ...），返回是否命中，
  用作单文档的比较并交换（例如"仅当未使用时标记已使用"）
- 底层驱动异常统一转换为 Internal，唯一键冲突转换为 AlreadyExists，
  其他约束冲突（非空等）转换为 InvalidArgument
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Type, TypeVar

import structlog
from sqlalchemy import delete as sa_delete
from sqlalchemy import func, select
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from talofix.core.errors import AlreadyExists, Internal, InvalidArgument
from talofix.database.base import Base

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=Base)

# PostgreSQL unique_violation
UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """区分唯一键冲突与其他约束冲突（asyncpg 带 sqlstate，SQLite 只有消息文本）"""
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    return "UNIQUE" in str(orig).upper()


class DocumentStore:
    """文档存储门面"""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @asynccontextmanager
    async def _session(self, op: str, model: Type[Base]) -> AsyncIterator[AsyncSession]:
        collection = model.__tablename__
        try:
            async with self._session_maker() as session:
                yield session
        except IntegrityError as exc:
            logger.warning("store_integrity_error", op=op, collection=collection, error=str(exc.orig))
            if is_unique_violation(exc):
                raise AlreadyExists(f"{collection} 记录已存在") from exc
            raise InvalidArgument(f"{collection} 字段取值不合法") from exc
        except SQLAlchemyError as exc:
            logger.error("store_error", op=op, collection=collection, error=str(exc))
            raise Internal("存储服务暂时不可用") from exc

    # ==================== 读取 ====================

    async def get(self, model: Type[T], doc_id: str) -> Optional[T]:
        """按 ID 读取单个文档"""
        async with self._session("get", model) as session:
            return await session.get(model, doc_id)

    async def find(
        self,
        model: Type[T],
        *conditions: Any,
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        条件查询

        Args:
            model: 模型类
            conditions: 过滤条件（等值/范围）
            order_by: 排序表达式
            limit: 返回条数上限
        """
        stmt = select(model).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session("find", model) as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def find_one(self, model: Type[T], *conditions: Any) -> Optional[T]:
        """查询第一个匹配的文档"""
        rows = await self.find(model, *conditions, limit=1)
        return rows[0] if rows else None

    async def count(self, model: Type[T], *conditions: Any) -> int:
        stmt = select(func.count()).select_from(model).where(*conditions)
        async with self._session("count", model) as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    # ==================== 写入 ====================

    async def add(self, obj: T) -> T:
        """插入新文档，返回带默认值的对象"""
        async with self._session("add", type(obj)) as session:
            session.add(obj)
            await session.commit()
            return obj

    async def update(
        self,
        model: Type[T],
        doc_id: str,
        values: Dict[str, Any],
        *conditions: Any,
    ) -> bool:
        """
        条件更新单个文档

        Returns:
            是否有文档被更新；附加条件不满足或文档不存在时返回 False
        """
        stmt = (
            sa_update(model)
            .where(model.id == doc_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._session("update", model) as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0

    async def delete(self, model: Type[T], doc_id: str) -> bool:
        """删除单个文档，返回是否存在"""
        return await self.delete_where(model, model.id == doc_id) > 0

    async def delete_where(self, model: Type[T], *conditions: Any) -> int:
        """按条件批量删除，返回删除条数"""
        stmt = sa_delete(model).where(*conditions).execution_options(synchronize_session=False)
        async with self._session("delete", model) as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount
