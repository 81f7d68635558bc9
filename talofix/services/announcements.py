"""
公告服务

- 编辑者（维修/物业经理/物业公司/管理员）在本租户内发布、修改、删除公告
- 租户内所有用户可以读取
- 附件独立存储在 announcements/<tenant>/<announcement>/<attachmentId>
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

import structlog

from talofix.adapters.blobs import BlobStore, discard_blob, purge_prefix
from talofix.core.audit import AuditAction, TargetType, log_audit
from talofix.core.clock import Clock, utcnow
from talofix.core.config import settings
from talofix.core.errors import Conflict, InvalidArgument, NotFound, ServiceError
from talofix.core.fanout import FanoutResult
from talofix.core.guard import AuthorizationGuard
from talofix.core.rbac import ANNOUNCEMENT_EDITOR_ROLES
from talofix.database.models import Announcement, AnnouncementType, Profile
from talofix.database.store import DocumentStore

logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = (
    "type",
    "title",
    "content",
    "start_date",
    "start_time",
    "end_date",
    "end_time",
    "is_pinned",
)
NON_NULLABLE_FIELDS = ("type", "title", "content", "is_pinned")

# 附件列表条件写入的重试次数
LIST_WRITE_ATTEMPTS = 5


def announcement_blob_prefix(tenant_id: str, announcement_id: str) -> str:
    return f"announcements/{tenant_id}/{announcement_id}/"


async def purge_announcement(
    store: DocumentStore,
    blobs: BlobStore,
    announcement: Announcement,
    log: Any = None,
) -> FanoutResult:
    """删除公告及其附件，附件尽力删除；返回附件删除汇总"""
    log = (log or logger).bind(announcement_id=announcement.id)
    result = await purge_prefix(
        blobs,
        announcement_blob_prefix(announcement.tenant_id, announcement.id),
        "announcement_blobs",
        log=log,
    )
    await store.delete(Announcement, announcement.id)
    log.info("announcement_purged", blobs=result.summary())
    return result


@dataclass
class AnnouncementDraft:
    title: str
    content: str
    type: str = AnnouncementType.GENERAL
    start_date: Optional[str] = None
    start_time: Optional[str] = None
    end_date: Optional[str] = None
    end_time: Optional[str] = None
    is_pinned: bool = False


class AnnouncementService:
    """公告服务"""

    def __init__(
        self,
        store: DocumentStore,
        blobs: BlobStore,
        guard: AuthorizationGuard,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.blobs = blobs
        self.guard = guard
        self.clock = clock

    async def _resolve_tenant(self, caller: Profile, tenant_id: Optional[str]) -> str:
        tenant_id = tenant_id or caller.tenant_id
        if not tenant_id:
            raise InvalidArgument("缺少租户 ID")
        await self.guard.require_tenant_access(caller, tenant_id)
        return tenant_id

    async def _load(self, caller: Profile, announcement_id: str) -> Announcement:
        announcement = await self.store.get(Announcement, announcement_id)
        if announcement is None:
            raise NotFound("公告不存在")
        await self.guard.require_tenant_access(caller, announcement.tenant_id)
        return announcement

    async def _load_for_edit(self, caller: Profile, announcement_id: str) -> Announcement:
        self.guard.require_role(caller.role, ANNOUNCEMENT_EDITOR_ROLES)
        return await self._load(caller, announcement_id)

    @staticmethod
    def _check_values(values: Dict[str, Any]) -> None:
        missing = sorted(key for key in NON_NULLABLE_FIELDS if key in values and values[key] is None)
        if missing:
            raise InvalidArgument("字段不能为空", details={"fields": missing})
        if "type" in values and values["type"] not in AnnouncementType.ALL:
            raise InvalidArgument("无效的公告类型", details={"type": values["type"]})
        for key in ("title", "content"):
            if key in values and not (values[key] or "").strip():
                raise InvalidArgument("标题和内容不能为空")

    # ==================== 读取 ====================

    async def list_announcements(self, caller: Profile, tenant_id: Optional[str] = None) -> List[Announcement]:
        """置顶优先，其次按创建时间倒序"""
        tenant_id = await self._resolve_tenant(caller, tenant_id)
        return await self.store.find(
            Announcement,
            Announcement.tenant_id == tenant_id,
            order_by=[Announcement.is_pinned.desc(), Announcement.created_at.desc()],
        )

    async def get(self, caller: Profile, announcement_id: str) -> Announcement:
        return await self._load(caller, announcement_id)

    # ==================== 编辑 ====================

    async def create(
        self,
        caller: Profile,
        draft: AnnouncementDraft,
        tenant_id: Optional[str] = None,
    ) -> Announcement:
        self.guard.require_role(caller.role, ANNOUNCEMENT_EDITOR_ROLES)
        values = {key: getattr(draft, key) for key in EDITABLE_FIELDS}
        self._check_values(values)
        tenant_id = await self._resolve_tenant(caller, tenant_id)

        now = self.clock()
        values["title"] = values["title"].strip()
        announcement = await self.store.add(
            Announcement(
                tenant_id=tenant_id,
                author_id=caller.id,
                author_name=caller.display_name,
                attachments=[],
                created_at=now,
                updated_at=now,
                **values,
            )
        )

        logger.info("announcement_created", announcement_id=announcement.id, tenant_id=tenant_id)
        await log_audit(
            self.store,
            actor=caller.id,
            action=AuditAction.ANNOUNCEMENT_CREATE,
            target_type=TargetType.ANNOUNCEMENT,
            target_id=announcement.id,
            payload={"tenant_id": tenant_id, "type": announcement.type},
        )
        return announcement

    async def update(self, caller: Profile, announcement_id: str, changes: Dict[str, Any]) -> Announcement:
        values = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS}
        self._check_values(values)
        announcement = await self._load_for_edit(caller, announcement_id)
        if not values:
            return announcement

        values["updated_at"] = self.clock()
        await self.store.update(Announcement, announcement.id, values)
        logger.info("announcement_updated", announcement_id=announcement.id, fields=sorted(values))
        return await self.store.get(Announcement, announcement.id)

    async def delete(self, caller: Profile, announcement_id: str) -> None:
        announcement = await self._load_for_edit(caller, announcement_id)
        await purge_announcement(self.store, self.blobs, announcement)
        await log_audit(
            self.store,
            actor=caller.id,
            action=AuditAction.ANNOUNCEMENT_DELETE,
            target_type=TargetType.ANNOUNCEMENT,
            target_id=announcement.id,
            payload={"tenant_id": announcement.tenant_id},
        )

    # ==================== 附件 ====================

    async def _write_attachments(
        self,
        announcement: Announcement,
        change: Callable[[List[Dict[str, Any]]], List[Dict[str, Any]]],
    ) -> None:
        """
        以附件版本号为条件写入附件列表

        版本号不匹配时重新读取并重放 change；change 可以抛出业务异常中止写入
        """
        for _ in range(LIST_WRITE_ATTEMPTS):
            attachments = change(list(announcement.attachments or []))
            updated = await self.store.update(
                Announcement,
                announcement.id,
                {
                    "attachments": attachments,
                    "attachments_revision": announcement.attachments_revision + 1,
                    "updated_at": self.clock(),
                },
                Announcement.attachments_revision == announcement.attachments_revision,
            )
            if updated:
                return
            announcement = await self.store.get(Announcement, announcement.id)
            if announcement is None:
                raise NotFound("公告不存在")
        raise Conflict("附件正在被其他请求修改，请稍后重试")

    async def upload_attachment(
        self,
        caller: Profile,
        announcement_id: str,
        filename: str,
        content_type: str,
        data: bytes,
    ) -> Dict[str, Any]:
        """
        上传附件

        限制：MIME 白名单、单个文件大小、每条公告附件数量
        """
        if content_type not in settings.ATTACHMENT_ALLOWED_TYPES:
            raise InvalidArgument("不支持的文件类型", details={"content_type": content_type})
        if not data:
            raise InvalidArgument("文件为空")
        if len(data) > settings.ATTACHMENT_MAX_BYTES:
            raise InvalidArgument(
                "文件过大",
                details={"max_bytes": settings.ATTACHMENT_MAX_BYTES},
            )

        announcement = await self._load_for_edit(caller, announcement_id)

        def check_room(attachments: List[Dict[str, Any]]) -> None:
            if len(attachments) >= settings.ATTACHMENTS_PER_ANNOUNCEMENT:
                raise InvalidArgument(
                    "附件数量已达上限",
                    details={"max": settings.ATTACHMENTS_PER_ANNOUNCEMENT},
                )

        check_room(list(announcement.attachments or []))

        attachment_id = str(uuid4())
        path = announcement_blob_prefix(announcement.tenant_id, announcement.id) + attachment_id
        await self.blobs.put_object(
            path,
            data,
            content_type,
            {"filename": filename, "uploaded_by": caller.id},
        )
        try:
            record = {
                "id": attachment_id,
                "filename": filename,
                "mime_type": content_type,
                "size": len(data),
                "path": path,
                "url": await self.blobs.make_public(path),
            }

            def append(attachments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
                # 数量上限在条件写入内重新检查
                check_room(attachments)
                return attachments + [record]

            await self._write_attachments(announcement, append)
        except ServiceError:
            await discard_blob(self.blobs, path)
            raise

        logger.info("announcement_attachment_uploaded", announcement_id=announcement.id, attachment_id=attachment_id)
        return record

    async def remove_attachment(self, caller: Profile, announcement_id: str, attachment_id: str) -> None:
        announcement = await self._load_for_edit(caller, announcement_id)
        removed: List[Dict[str, Any]] = []

        def drop(attachments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            removed[:] = [item for item in attachments if item.get("id") == attachment_id]
            if not removed:
                raise NotFound("附件不存在")
            return [item for item in attachments if item.get("id") != attachment_id]

        await self._write_attachments(announcement, drop)
        await discard_blob(self.blobs, removed[0]["path"])
        logger.info("announcement_attachment_removed", announcement_id=announcement.id, attachment_id=attachment_id)
