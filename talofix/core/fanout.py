"""
并发扇出工具

"收集错误、继续执行"：对一组互不依赖的条目并发执行同一操作，
单个条目失败只记录日志，不中断其他条目，也不向调用方抛出。
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Tuple, TypeVar

import structlog

from talofix.core.config import settings

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class FanoutResult:
    """扇出结果汇总"""
    step: str
    total: int = 0
    succeeded: int = 0
    errors: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.errors)

    def summary(self) -> dict:
        return {"total": self.total, "succeeded": self.succeeded, "failed": self.failed}

    def merge(self, other: "FanoutResult") -> None:
        """并入另一次扇出的计数与错误"""
        self.total += other.total
        self.succeeded += other.succeeded
        self.errors.extend(other.errors)


async def fan_out(
    step: str,
    items: Iterable[T],
    worker: Callable[[T], Awaitable[Any]],
    key: Callable[[T], str] = str,
    concurrency: Optional[int] = None,
    log: Any = None,
) -> FanoutResult:
    """
    并发处理条目并汇总失败

    Args:
        step: 步骤名（写入日志）
        items: 待处理条目
        worker: 单条目处理协程
        key: 条目标识（写入日志）
        concurrency: 最大并发数，默认 FANOUT_CONCURRENCY
        log: 绑定了上下文的 logger

    Returns:
        FanoutResult，errors 为 (条目标识, 错误信息)
    """
    log = log or logger
    items = list(items)
    semaphore = asyncio.Semaphore(concurrency or settings.FANOUT_CONCURRENCY)

    async def run(item: T) -> Any:
        async with semaphore:
            return await worker(item)

    outcomes = await asyncio.gather(*(run(item) for item in items), return_exceptions=True)

    result = FanoutResult(step=step, total=len(items))
    for item, outcome in zip(items, outcomes):
        if isinstance(outcome, Exception):
            item_key = key(item)
            result.errors.append((item_key, str(outcome)))
            log.warning(
                "fanout_item_failed",
                step=step,
                item=item_key,
                error=str(outcome),
                error_type=type(outcome).__name__,
            )
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            result.succeeded += 1

    return result
