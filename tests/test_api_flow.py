"""
HTTP 端到端测试
"""

import pytest
from httpx import AsyncClient

from conftest import login
from talofix.adapters.blobs import LocalBlobStore
from talofix.core.config import settings
from talofix.database.models import UserRole


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """测试健康检查端点"""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] is True


@pytest.mark.asyncio
async def test_unauthenticated_request(client: AsyncClient):
    response = await client.get("/api/v1/tenants")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthenticated"


@pytest.mark.asyncio
async def test_invalid_token(client: AsyncClient):
    response = await client.get("/api/v1/profiles/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_wrong_password(client: AsyncClient, factory):
    await factory.admin(email="root@example.com")
    response = await client.post("/api/v1/auth/login", json={"email": "root@example.com", "password": "wrong"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthenticated"


@pytest.mark.asyncio
async def test_validation_error_shape(client: AsyncClient, factory):
    await factory.admin(email="root@example.com")
    headers = await login(client, "root@example.com")

    response = await client.post("/api/v1/tenants", json={"name": "Only name"}, headers=headers)

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "invalid_argument"
    assert error["details"]["errors"]


@pytest.mark.asyncio
async def test_tenant_onboarding_end_to_end(client: AsyncClient, factory):
    """管理员创建租户 -> 签发注册码 -> 预览 -> 兑换 -> 物业公司登录"""
    await factory.admin(email="root@example.com")
    admin_headers = await login(client, "root@example.com")

    response = await client.post(
        "/api/v1/tenants",
        json={"name": "Koivukoti Oy", "address": "Mannerheimintie 1", "city": "Helsinki", "postal_code": "00100"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    tenant = response.json()
    assert tenant["is_registered"] is False

    response = await client.post("/api/v1/invites/tenant", json={"tenant_id": tenant["id"]}, headers=admin_headers)
    assert response.status_code == 201
    code = response.json()["code"]
    assert len(code) == 8

    response = await client.post("/api/v1/invites/tenant/validate", json={"code": code.lower()})
    assert response.status_code == 200
    summary = response.json()
    assert summary["tenant_id"] == tenant["id"]
    assert summary["address"] == "Mannerheimintie 1"
    assert summary["city"] == "Helsinki"
    assert summary["postal_code"] == "00100"

    response = await client.post(
        "/api/v1/invites/tenant/redeem",
        json={"code": code, "email": "owner@example.com", "password": "secret123", "contact_person": "Matti"},
    )
    assert response.status_code == 201
    assert response.json()["role"] == UserRole.HOUSING_COMPANY

    owner_headers = await login(client, "owner@example.com")
    response = await client.get("/api/v1/profiles/me", headers=owner_headers)
    assert response.status_code == 200
    profile = response.json()
    assert profile["tenant_id"] == tenant["id"]
    assert profile["role"] == UserRole.HOUSING_COMPANY

    response = await client.get(f"/api/v1/tenants/{tenant['id']}", headers=admin_headers)
    assert response.json()["is_registered"] is True

    # 已使用的注册码不能再兑换
    response = await client.post(
        "/api/v1/invites/tenant/redeem",
        json={"code": code, "email": "second@example.com", "password": "secret123", "contact_person": "X"},
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "not_found"

    # 租户存在期间物业公司不能注销
    response = await client.delete("/api/v1/profiles/me", headers=owner_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_resident_fault_report_flow(client: AsyncClient, factory):
    admin = await factory.admin()
    tenant = await factory.tenant(admin)
    await factory.user(UserRole.HOUSING_COMPANY, tenant_id=tenant.id, email="owner@example.com")
    owner_headers = await login(client, "owner@example.com")

    response = await client.post(
        "/api/v1/invites/resident",
        json={"building_id": "A", "apartment_number": "12"},
        headers=owner_headers,
    )
    assert response.status_code == 201
    code = response.json()["code"]

    response = await client.post(
        "/api/v1/invites/resident/redeem",
        json={"code": code, "email": "resident@example.com", "password": "secret123", "first_name": "Aino", "last_name": "V"},
    )
    assert response.status_code == 201
    resident_headers = await login(client, "resident@example.com")

    response = await client.post(
        "/api/v1/fault-reports",
        json={"title": "Leaking tap", "description": "Kitchen", "urgency": "high"},
        headers=resident_headers,
    )
    assert response.status_code == 201
    report = response.json()
    assert report["tenant_id"] == tenant.id
    assert report["building_id"] == "A"
    assert report["status"] == "open"

    response = await client.post(
        f"/api/v1/fault-reports/{report['id']}/images",
        files={"file": ("tap.jpg", b"\xff\xd8jpeg", "image/jpeg")},
        headers=resident_headers,
    )
    assert response.status_code == 201
    image_url = response.json()["url"]

    response = await client.get(f"/api/v1/fault-reports/{report['id']}/allowed-statuses", headers=resident_headers)
    assert response.json() == {"current": "open", "allowed": ["cancelled"]}

    response = await client.post(
        f"/api/v1/fault-reports/{report['id']}/status",
        json={"status": "in_progress"},
        headers=resident_headers,
    )
    assert response.status_code == 403

    response = await client.post(
        f"/api/v1/fault-reports/{report['id']}/status",
        json={"status": "in_progress", "comment": "Technician booked"},
        headers=owner_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "in_progress"

    response = await client.get("/api/v1/fault-reports", headers=resident_headers)
    listed = response.json()
    assert [r["id"] for r in listed] == [report["id"]]
    assert listed[0]["images"] == [image_url]
    assert listed[0]["comment"] == "Technician booked"


@pytest.mark.asyncio
async def test_partner_lifecycle(client: AsyncClient, factory):
    admin = await factory.admin()
    tenant = await factory.tenant(admin)
    await factory.user(UserRole.HOUSING_COMPANY, tenant_id=tenant.id, email="owner@example.com")
    owner_headers = await login(client, "owner@example.com")

    response = await client.get("/api/v1/partners/management", headers=owner_headers)
    assert response.json() == {"exists": False, "user": None}

    first = (await client.post("/api/v1/invites/management", json={}, headers=owner_headers)).json()
    again = (await client.post("/api/v1/invites/management", json={}, headers=owner_headers)).json()
    assert again["code"] == first["code"]
    assert again["reused"] is True

    response = await client.post(
        "/api/v1/invites/management/redeem",
        json={"code": first["code"], "email": "fixer@example.com", "password": "secret123", "first_name": "Fix"},
    )
    assert response.status_code == 201

    response = await client.get("/api/v1/partners/management", headers=owner_headers)
    body = response.json()
    assert body["exists"] is True
    assert body["user"]["role"] == UserRole.MAINTENANCE

    response = await client.delete("/api/v1/partners/management", headers=owner_headers)
    assert response.json() == {"ok": True}

    response = await client.get("/api/v1/partners/management", headers=owner_headers)
    assert response.json()["exists"] is False
    assert (await client.get("/api/v1/invites/management", headers=owner_headers)).json() == []

    response = await client.post("/api/v1/auth/login", json={"email": "fixer@example.com", "password": "secret123"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_announcement_attachment_upload(client: AsyncClient, factory):
    admin = await factory.admin()
    tenant = await factory.tenant(admin)
    await factory.user(UserRole.HOUSING_COMPANY, tenant_id=tenant.id, email="owner@example.com")
    await factory.user(UserRole.RESIDENT, tenant_id=tenant.id, email="resident@example.com")
    owner_headers = await login(client, "owner@example.com")
    resident_headers = await login(client, "resident@example.com")

    response = await client.post(
        "/api/v1/announcements",
        json={"title": "Water off", "content": "Tuesday 8-12", "type": "maintenance", "start_date": "2025-03-04"},
        headers=owner_headers,
    )
    assert response.status_code == 201
    post = response.json()

    response = await client.post(
        f"/api/v1/announcements/{post['id']}/attachments",
        files={"file": ("notice.pdf", b"%PDF-1.7", "application/pdf")},
        headers=owner_headers,
    )
    assert response.status_code == 201
    assert response.json()["filename"] == "notice.pdf"

    response = await client.post(
        "/api/v1/announcements",
        json={"title": "x", "content": "y"},
        headers=resident_headers,
    )
    assert response.status_code == 403

    response = await client.get("/api/v1/announcements", headers=resident_headers)
    listed = response.json()
    assert len(listed) == 1
    assert listed[0]["attachments"][0]["mime_type"] == "application/pdf"


@pytest.mark.asyncio
async def test_delete_tenant_via_api(client: AsyncClient, factory, store):
    await factory.admin(email="root@example.com")
    admin_headers = await login(client, "root@example.com")
    tenant = (
        await client.post(
            "/api/v1/tenants",
            json={"name": "Gone Oy", "address": "Katu 2", "city": "Espoo", "postal_code": "02100"},
            headers=admin_headers,
        )
    ).json()

    response = await client.delete(f"/api/v1/tenants/{tenant['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"ok": True}

    response = await client.get(f"/api/v1/tenants/{tenant['id']}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_null_for_required_field_is_invalid_argument(client: AsyncClient, factory):
    admin = await factory.admin()
    tenant = await factory.tenant(admin)
    await factory.user(UserRole.HOUSING_COMPANY, tenant_id=tenant.id, email="owner@example.com")
    headers = await login(client, "owner@example.com")

    response = await client.patch("/api/v1/profiles/me", json={"first_name": None}, headers=headers)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_argument"

    post = (
        await client.post("/api/v1/announcements", json={"title": "Sauna", "content": "Open"}, headers=headers)
    ).json()
    response = await client.patch(f"/api/v1/announcements/{post['id']}", json={"is_pinned": None}, headers=headers)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_argument"


@pytest.mark.asyncio
async def test_oversized_attachment_rejected(client: AsyncClient, factory, monkeypatch):
    admin = await factory.admin()
    tenant = await factory.tenant(admin)
    await factory.user(UserRole.HOUSING_COMPANY, tenant_id=tenant.id, email="owner@example.com")
    headers = await login(client, "owner@example.com")
    post = (
        await client.post("/api/v1/announcements", json={"title": "Sauna", "content": "Open"}, headers=headers)
    ).json()
    monkeypatch.setattr(settings, "ATTACHMENT_MAX_BYTES", 4)

    response = await client.post(
        f"/api/v1/announcements/{post['id']}/attachments",
        files={"file": ("big.pdf", b"%PDF-1.7 and more", "application/pdf")},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_argument"


@pytest.mark.asyncio
async def test_files_serves_objects_but_not_metadata(client: AsyncClient):
    served = LocalBlobStore(settings.BLOB_ROOT, settings.BLOB_PUBLIC_BASE_URL)
    await served.put_object("announcements/t1/a1/doc", b"%PDF", "application/pdf", {"uploaded_by": "u1"})

    response = await client.get("/files/announcements/t1/a1/doc")
    assert response.status_code == 200
    assert response.content == b"%PDF"

    response = await client.get("/files/announcements/t1/a1/doc.meta.json")
    assert response.status_code == 404
