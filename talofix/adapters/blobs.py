"""
对象存储适配器

按路径寻址的对象存储接口，以及本地目录实现：
- 对象内容写入 BLOB_ROOT/<path>
- 元数据写入同目录下的 <name>.meta.json
"""

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from talofix.core.errors import InvalidArgument, NotFound
from talofix.core.fanout import FanoutResult, fan_out

logger = structlog.get_logger(__name__)

META_SUFFIX = ".meta.json"


@dataclass
class BlobObject:
    """存储对象描述"""
    path: str
    size: int
    content_type: str = "application/octet-stream"
    metadata: Dict[str, Any] = field(default_factory=dict)


class BlobStore(ABC):
    """对象存储抽象接口"""

    @abstractmethod
    async def put_object(
        self,
        path: str,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> BlobObject:
        pass

    @abstractmethod
    async def list_by_prefix(self, prefix: str) -> List[BlobObject]:
        pass

    @abstractmethod
    async def delete_object(self, path: str) -> None:
        """删除对象，不存在时抛出 NotFound"""
        pass

    @abstractmethod
    async def make_public(self, path: str) -> str:
        """返回对象的公开下载地址"""
        pass


class LocalBlobStore(BlobStore):
    """本地目录对象存储"""

    def __init__(self, root: str, public_base_url: str):
        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        path = path.strip("/")
        if not path or path.endswith(META_SUFFIX):
            raise InvalidArgument("无效的对象路径", details={"path": path})
        target = (self.root / path).resolve()
        if self.root not in target.parents:
            raise InvalidArgument("对象路径越界", details={"path": path})
        return target

    @staticmethod
    def _meta_path(target: Path) -> Path:
        return target.with_name(target.name + META_SUFFIX)

    def _read_object(self, target: Path) -> BlobObject:
        meta: Dict[str, Any] = {}
        meta_path = self._meta_path(target)
        if meta_path.exists():
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
        return BlobObject(
            path=target.relative_to(self.root).as_posix(),
            size=target.stat().st_size,
            content_type=meta.get("content_type", "application/octet-stream"),
            metadata=meta.get("metadata", {}),
        )

    async def put_object(
        self,
        path: str,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> BlobObject:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            self._meta_path(target).write_text(
                json.dumps(
                    {"content_type": content_type, "metadata": metadata or {}},
                    ensure_ascii=False,
                ),
                encoding="utf-8",
            )

        await asyncio.to_thread(_write)
        logger.debug("blob_put", path=path, size=len(data))
        return BlobObject(
            path=target.relative_to(self.root).as_posix(),
            size=len(data),
            content_type=content_type,
            metadata=metadata or {},
        )

    async def list_by_prefix(self, prefix: str) -> List[BlobObject]:
        prefix = prefix.strip("/")

        def _list() -> List[BlobObject]:
            # 从前缀中最深的完整目录开始遍历
            base = self.root / prefix.rpartition("/")[0] if "/" in prefix else self.root
            if not base.is_dir():
                return []
            objects = []
            for candidate in sorted(base.rglob("*")):
                if not candidate.is_file() or candidate.name.endswith(META_SUFFIX):
                    continue
                relative = candidate.relative_to(self.root).as_posix()
                if relative.startswith(prefix):
                    objects.append(self._read_object(candidate))
            return objects

        return await asyncio.to_thread(_list)

    async def delete_object(self, path: str) -> None:
        target = self._resolve(path)

        def _delete() -> bool:
            if not target.is_file():
                return False
            target.unlink()
            self._meta_path(target).unlink(missing_ok=True)
            return True

        if not await asyncio.to_thread(_delete):
            raise NotFound("对象不存在", details={"path": path})
        logger.debug("blob_deleted", path=path)

    async def make_public(self, path: str) -> str:
        target = self._resolve(path)
        if not await asyncio.to_thread(target.is_file):
            raise NotFound("对象不存在", details={"path": path})
        return f"{self.public_base_url}/{target.relative_to(self.root).as_posix()}"


async def purge_prefix(blobs: BlobStore, prefix: str, step: str, log: Any = None) -> FanoutResult:
    """
    尽力删除前缀下的全部对象

    列举失败与单个对象删除失败都只记录日志，不向上抛出
    """
    log = log or logger
    try:
        objects = await blobs.list_by_prefix(prefix)
    except Exception as exc:
        log.warning("blob_list_failed", step=step, prefix=prefix, error=str(exc))
        return FanoutResult(step=step, errors=[(prefix, str(exc))])

    return await fan_out(
        step,
        objects,
        lambda obj: blobs.delete_object(obj.path),
        key=lambda obj: obj.path,
        log=log,
    )


async def discard_blob(blobs: BlobStore, path: str, log: Any = None) -> None:
    """尽力删除单个对象（用于撤销已写入但未登记的上传）"""
    try:
        await blobs.delete_object(path)
    except Exception as exc:
        (log or logger).warning("blob_discard_failed", path=path, error=str(exc))
