"""
故障报修 API
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, File, Query, UploadFile, status
from pydantic import BaseModel, Field

from talofix.api.deps import FaultReports
from talofix.api.v1.schemas import OkResponse
from talofix.core.config import settings
from talofix.core.rbac import CurrentProfile
from talofix.database.models import FaultReport, FaultReportUrgency
from talofix.services.fault_reports import FaultReportDraft

router = APIRouter()


class FaultReportCreate(BaseModel):
    """创建报修单请求"""
    title: str = Field(..., min_length=1, max_length=300)
    description: str = Field(..., min_length=1)
    location: str = Field("", max_length=300)
    urgency: str = FaultReportUrgency.MEDIUM


class FaultReportUpdate(BaseModel):
    """创建者修改报修单（仅 open 状态）"""
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = Field(None, max_length=300)
    urgency: Optional[str] = None
    images: Optional[List[str]] = None


class StatusChangeRequest(BaseModel):
    status: str = Field(..., min_length=1, max_length=30)
    comment: Optional[str] = None


class FaultReportResponse(BaseModel):
    """报修单响应"""
    id: str
    tenant_id: str
    building_id: Optional[str] = None
    apartment_number: Optional[str] = None
    created_by: str
    title: str
    description: str
    location: str
    urgency: str
    status: str
    images: List[str] = []
    comment: Optional[str] = None
    updated_by: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AllowedStatusesResponse(BaseModel):
    current: str
    allowed: List[str]


class ImageUploadResponse(BaseModel):
    url: str


@router.post("", response_model=FaultReportResponse, status_code=status.HTTP_201_CREATED)
async def create_fault_report(data: FaultReportCreate, profile: CurrentProfile, reports: FaultReports) -> FaultReport:
    """住户创建报修单"""
    return await reports.create(profile, FaultReportDraft(**data.model_dump()))


@router.get("", response_model=List[FaultReportResponse])
async def list_fault_reports(
    profile: CurrentProfile,
    reports: FaultReports,
    tenant_id: Optional[str] = Query(None),
    building_id: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
) -> List[FaultReport]:
    return await reports.list_reports(profile, tenant_id=tenant_id, building_id=building_id, status=status_filter)


@router.get("/{report_id}", response_model=FaultReportResponse)
async def get_fault_report(report_id: str, profile: CurrentProfile, reports: FaultReports) -> FaultReport:
    return await reports.get(profile, report_id)


@router.patch("/{report_id}", response_model=FaultReportResponse)
async def update_fault_report(
    report_id: str,
    data: FaultReportUpdate,
    profile: CurrentProfile,
    reports: FaultReports,
) -> FaultReport:
    return await reports.update(profile, report_id, data.model_dump(exclude_unset=True))


@router.post("/{report_id}/images", response_model=ImageUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_fault_report_image(
    report_id: str,
    profile: CurrentProfile,
    reports: FaultReports,
    file: UploadFile = File(...),
) -> ImageUploadResponse:
    # 超过上限的部分不读入内存，服务层据此拒绝
    data = await file.read(settings.ATTACHMENT_MAX_BYTES + 1)
    url = await reports.upload_image(
        profile,
        report_id,
        file.filename or "image",
        file.content_type or "application/octet-stream",
        data,
    )
    return ImageUploadResponse(url=url)


@router.get("/{report_id}/allowed-statuses", response_model=AllowedStatusesResponse)
async def get_allowed_statuses(report_id: str, profile: CurrentProfile, reports: FaultReports) -> AllowedStatusesResponse:
    """当前调用者可以执行的后续状态"""
    report = await reports.get(profile, report_id)
    allowed = await reports.allowed_next_statuses(profile, report_id)
    return AllowedStatusesResponse(current=report.status, allowed=allowed)


@router.post("/{report_id}/status", response_model=FaultReportResponse)
async def change_fault_report_status(
    report_id: str,
    data: StatusChangeRequest,
    profile: CurrentProfile,
    reports: FaultReports,
) -> FaultReport:
    return await reports.change_status(profile, report_id, data.status, comment=data.comment)


@router.delete("/{report_id}", response_model=OkResponse)
async def delete_fault_report(report_id: str, profile: CurrentProfile, reports: FaultReports) -> OkResponse:
    await reports.delete(profile, report_id)
    return OkResponse()
