"""
公告 API
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, File, Query, UploadFile, status
from pydantic import BaseModel, Field

from talofix.api.deps import Announcements
from talofix.api.v1.schemas import OkResponse
from talofix.core.config import settings
from talofix.core.rbac import AnnouncementEditor, CurrentProfile
from talofix.database.models import Announcement, AnnouncementType
from talofix.services.announcements import AnnouncementDraft

router = APIRouter()

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{2}:\d{2}$"


class AnnouncementCreate(BaseModel):
    """发布公告请求"""
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)
    type: str = AnnouncementType.GENERAL
    start_date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    is_pinned: bool = False
    tenant_id: Optional[str] = None


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    content: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = None
    start_date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    is_pinned: Optional[bool] = None


class AttachmentResponse(BaseModel):
    id: str
    filename: str
    mime_type: str
    size: int
    url: str


class AnnouncementResponse(BaseModel):
    """公告响应"""
    id: str
    tenant_id: str
    author_id: str
    author_name: str
    type: str
    title: str
    content: str
    start_date: Optional[str] = None
    start_time: Optional[str] = None
    end_date: Optional[str] = None
    end_time: Optional[str] = None
    is_pinned: bool
    attachments: List[AttachmentResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


@router.get("", response_model=List[AnnouncementResponse])
async def list_announcements(
    profile: CurrentProfile,
    announcements: Announcements,
    tenant_id: Optional[str] = Query(None),
) -> List[Announcement]:
    """置顶优先，其次按时间倒序"""
    return await announcements.list_announcements(profile, tenant_id=tenant_id)


@router.post("", response_model=AnnouncementResponse, status_code=status.HTTP_201_CREATED)
async def create_announcement(
    data: AnnouncementCreate,
    editor: AnnouncementEditor,
    announcements: Announcements,
) -> Announcement:
    draft = AnnouncementDraft(**data.model_dump(exclude={"tenant_id"}))
    return await announcements.create(editor, draft, tenant_id=data.tenant_id)


@router.get("/{announcement_id}", response_model=AnnouncementResponse)
async def get_announcement(announcement_id: str, profile: CurrentProfile, announcements: Announcements) -> Announcement:
    return await announcements.get(profile, announcement_id)


@router.patch("/{announcement_id}", response_model=AnnouncementResponse)
async def update_announcement(
    announcement_id: str,
    data: AnnouncementUpdate,
    editor: AnnouncementEditor,
    announcements: Announcements,
) -> Announcement:
    return await announcements.update(editor, announcement_id, data.model_dump(exclude_unset=True))


@router.delete("/{announcement_id}", response_model=OkResponse)
async def delete_announcement(announcement_id: str, editor: AnnouncementEditor, announcements: Announcements) -> OkResponse:
    await announcements.delete(editor, announcement_id)
    return OkResponse()


@router.post(
    "/{announcement_id}/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachment(
    announcement_id: str,
    editor: AnnouncementEditor,
    announcements: Announcements,
    file: UploadFile = File(...),
) -> Dict[str, Any]:
    # 超过上限的部分不读入内存，服务层据此拒绝
    data = await file.read(settings.ATTACHMENT_MAX_BYTES + 1)
    return await announcements.upload_attachment(
        editor,
        announcement_id,
        file.filename or "attachment",
        file.content_type or "application/octet-stream",
        data,
    )


@router.delete("/{announcement_id}/attachments/{attachment_id}", response_model=OkResponse)
async def remove_attachment(
    announcement_id: str,
    attachment_id: str,
    editor: AnnouncementEditor,
    announcements: Announcements,
) -> OkResponse:
    await announcements.remove_attachment(editor, announcement_id, attachment_id)
    return OkResponse()
