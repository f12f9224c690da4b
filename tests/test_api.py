"""
API tests through the ASGI transport.
"""
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.api import deps
from app.core.audit_log import MemoryAuditRecorder
from app.core.permissions import Permission, SUPER_ADMIN_PERMISSION
from app.core.security import create_access_token
from app.services.permission_management_service import PermissionManagementService


@pytest.fixture
async def admin(make_role, make_user):
    role = await make_role("Super Admin", [SUPER_ADMIN_PERMISSION])
    return await make_user(role)


@pytest.fixture
async def reader(make_role, make_user):
    role = await make_role("Reader", [Permission.PERMISSIONS_READ])
    return await make_user(role)


@pytest.fixture
def audit_events(monkeypatch):
    recorder = MemoryAuditRecorder()
    monkeypatch.setattr(deps, "audit_recorder", recorder)
    return recorder.events


class TestAuthentication:
    async def test_missing_token(self, client, catalog):
        response = await client.get("/api/permissions")
        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHENTICATED"

    async def test_garbage_token(self, client, catalog):
        response = await client.get("/api/permissions", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    async def test_expired_token(self, client, admin):
        token = create_access_token({"sub": admin.id}, expires_delta=timedelta(minutes=-1))
        response = await client.get("/api/permissions", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_unknown_user(self, client, catalog):
        token = create_access_token({"sub": 424242})
        response = await client.get("/api/permissions", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_rejected_token_is_audited(self, client, catalog, audit_events):
        await client.get("/api/permissions")
        await client.get("/api/permissions", headers={"Authorization": "Bearer nope"})

        assert [e.status for e in audit_events] == ["denied", "denied"]
        assert all(e.user_id is None for e in audit_events)
        assert audit_events[0].resource == "permissions"
        assert audit_events[0].action == "read"

    async def test_store_failure_fails_closed(self, client, admin, auth_headers, audit_events, monkeypatch):
        calls = []

        async def failing_load(self, user_id):
            calls.append(user_id)
            raise OperationalError("SELECT", {}, Exception("database is unavailable"))

        monkeypatch.setattr(PermissionManagementService, "load_principal", failing_load)

        response = await client.get("/api/permissions", headers=auth_headers(admin))
        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"
        assert calls == [admin.id]

        assert len(audit_events) == 1
        assert audit_events[0].status == "error"
        assert audit_events[0].user_id == admin.id


class TestPermissionRoutes:
    async def test_list_is_paginated(self, client, reader, auth_headers):
        response = await client.get("/api/permissions?limit=5&page=2", headers=auth_headers(reader))
        assert response.status_code == 200
        body = response.json()
        assert len(body["data"]) == 5
        meta = body["meta"]
        assert meta["page"] == 2
        assert meta["limit"] == 5
        assert meta["hasPrevious"] is True
        assert meta["hasNext"] is True
        assert meta["totalPages"] == -(-meta["total"] // 5)

    async def test_options_hide_sentinel(self, client, admin, auth_headers):
        response = await client.get("/api/permissions/options", headers=auth_headers(admin))
        assert response.status_code == 200
        labels = [o["label"] for group in response.json() for o in group["options"]]
        assert SUPER_ADMIN_PERMISSION not in labels

    async def test_forbidden_lists_missing_permissions(self, client, reader, auth_headers):
        response = await client.post(
            "/api/permissions", json={"name": "blogs:archive"}, headers=auth_headers(reader)
        )
        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "FORBIDDEN"
        assert set(body["details"]["missing_permissions"]) == {
            Permission.PERMISSIONS_CREATE,
            Permission.PERMISSIONS_FULL_ACCESS,
        }

    async def test_create_validation_and_conflict(self, client, admin, auth_headers):
        headers = auth_headers(admin)

        response = await client.post("/api/permissions", json={"name": "blogsarchive"}, headers=headers)
        assert response.status_code == 400

        response = await client.post("/api/permissions", json={"name": "blogs:archive"}, headers=headers)
        assert response.status_code == 201
        permission_id = response.json()["id"]

        response = await client.post("/api/permissions", json={"name": "blogs:archive"}, headers=headers)
        assert response.status_code == 409

        response = await client.get(f"/api/permissions/{permission_id}", headers=headers)
        assert response.json()["name"] == "blogs:archive"

    async def test_soft_delete_restore_and_purge(self, client, admin, auth_headers):
        headers = auth_headers(admin)
        created = await client.post("/api/permissions", json={"name": "blogs:archive"}, headers=headers)
        permission_id = created.json()["id"]

        assert (await client.delete(f"/api/permissions/{permission_id}", headers=headers)).status_code == 200
        assert (await client.get(f"/api/permissions/{permission_id}", headers=headers)).status_code == 404
        assert (await client.post(f"/api/permissions/{permission_id}/restore", headers=headers)).status_code == 200
        assert (await client.post(f"/api/permissions/{permission_id}/restore", headers=headers)).status_code == 409
        assert (await client.delete(f"/api/permissions/{permission_id}/permanent", headers=headers)).status_code == 204

    async def test_sync_is_idempotent(self, client, admin, auth_headers):
        response = await client.post("/api/permissions/sync", headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["created"] == 0

    async def test_bulk_empty_ids(self, client, admin, auth_headers):
        response = await client.post("/api/permissions/bulk/delete", json={"ids": []}, headers=auth_headers(admin))
        assert response.status_code == 400


class TestRoleRoutes:
    async def test_assign_and_remove(self, client, admin, catalog, auth_headers):
        headers = auth_headers(admin)
        created = await client.post("/api/roles", json={"name": "Editor"}, headers=headers)
        assert created.status_code == 201
        role_id = created.json()["id"]

        ids = [catalog[Permission.BLOGS_READ].id, catalog[Permission.BLOGS_UPDATE].id]
        response = await client.put(f"/api/roles/{role_id}/permissions", json={"permission_ids": ids}, headers=headers)
        assert response.status_code == 200
        assert [p["name"] for p in response.json()["permissions"]] == [Permission.BLOGS_READ, Permission.BLOGS_UPDATE]

        response = await client.request(
            "DELETE",
            f"/api/roles/{role_id}/permissions",
            json={"permission_ids": [catalog[Permission.BLOGS_READ].id]},
            headers=headers,
        )
        assert response.status_code == 200
        assert [p["name"] for p in response.json()["permissions"]] == [Permission.BLOGS_UPDATE]

    async def test_role_change_applies_on_next_request(self, client, make_role, make_user, catalog, admin, auth_headers):
        role = await make_role("Reader", [Permission.PERMISSIONS_READ])
        user = await make_user(role)

        assert (await client.get("/api/permissions", headers=auth_headers(user))).status_code == 200

        await client.put(
            f"/api/roles/{role.id}/permissions",
            json={"permission_ids": [catalog[Permission.BLOGS_READ].id]},
            headers=auth_headers(admin),
        )
        assert (await client.get("/api/permissions", headers=auth_headers(user))).status_code == 403


class TestUserRoutes:
    async def test_me_permissions(self, client, reader, auth_headers):
        response = await client.get("/api/me/permissions", headers=auth_headers(reader))
        assert response.status_code == 200
        body = response.json()
        assert body["permissions"] == [Permission.PERMISSIONS_READ]
        assert body["role_name"] == "Reader"
        assert body["is_super_admin"] is False

    async def test_no_role_user(self, client, make_user, auth_headers, catalog):
        user = await make_user()
        assert (await client.get("/api/me/permissions", headers=auth_headers(user))).json()["permissions"] == []
        assert (await client.get("/api/roles", headers=auth_headers(user))).status_code == 403

    async def test_user_permission_check(self, client, admin, reader, auth_headers):
        response = await client.post(
            f"/api/users/{reader.id}/permissions/check",
            json={"permission": Permission.PERMISSIONS_READ},
            headers=auth_headers(admin),
        )
        assert response.json() == {"user_id": reader.id, "allowed": True}

        response = await client.get(f"/api/users/{reader.id}/permissions", headers=auth_headers(admin))
        assert response.json()["permissions"] == [Permission.PERMISSIONS_READ]

    async def test_bulk_ownership(self, client, make_user, make_blog, auth_headers):
        me = await make_user()
        other = await make_user()
        blogs = [await make_blog(me), await make_blog(other), await make_blog(me)]

        response = await client.post(
            "/api/me/ownership/blogs",
            json={"action": "delete", "ids": [b.id for b in blogs]},
            headers=auth_headers(me),
        )
        assert response.status_code == 200
        assert response.json()["results"] == [True, False, True]
