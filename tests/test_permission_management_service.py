"""
Tests for user permission lookups and statistics.
"""
from datetime import datetime, timezone

import pytest

from app.core.exceptions import UnauthenticatedError, UserNotFoundError
from app.core.permissions import Permission, SUPER_ADMIN_PERMISSION
from app.services.permission_management_service import PermissionManagementService
from app.services.permission_service import PermissionService


class TestUserPermissions:
    async def test_flattened_from_role(self, db, make_role, make_user):
        role = await make_role("Editor", [Permission.BLOGS_UPDATE, Permission.BLOGS_READ])
        user = await make_user(role)
        assert await PermissionManagementService(db).get_user_permissions(user.id) == [
            Permission.BLOGS_READ,
            Permission.BLOGS_UPDATE,
        ]

    async def test_no_role_means_no_permissions(self, db, make_user):
        user = await make_user()
        service = PermissionManagementService(db)
        assert await service.get_user_permissions(user.id) == []
        assert not await service.user_has_permission(user.id, Permission.BLOGS_READ)

    async def test_unknown_and_deleted_users(self, db, make_user):
        service = PermissionManagementService(db)
        with pytest.raises(UserNotFoundError):
            await service.get_user_permissions(404)

        user = await make_user(deleted_at=datetime.now(timezone.utc))
        with pytest.raises(UserNotFoundError):
            await service.get_user_permissions(user.id)

    async def test_soft_deleted_permission_revoked(self, db, make_role, make_user, catalog):
        role = await make_role("Editor", [Permission.BLOGS_READ, Permission.BLOGS_UPDATE])
        user = await make_user(role)
        await PermissionService(db).delete_permission(catalog[Permission.BLOGS_UPDATE].id)

        service = PermissionManagementService(db)
        assert await service.get_user_permissions(user.id) == [Permission.BLOGS_READ]
        assert not await service.user_has_permission(user.id, Permission.BLOGS_UPDATE)

    async def test_soft_deleted_role_grants_nothing(self, db, make_role, make_user):
        role = await make_role("Editor", [Permission.BLOGS_READ])
        user = await make_user(role)
        role.deleted_at = datetime.now(timezone.utc)
        await db.flush()

        principal = await PermissionManagementService(db).load_principal(user.id)
        assert principal.permissions == frozenset()
        assert principal.role_name is None

    async def test_super_admin_short_circuits(self, db, make_role, make_user):
        role = await make_role("Super Admin", [SUPER_ADMIN_PERMISSION])
        user = await make_user(role)
        service = PermissionManagementService(db)
        assert await service.user_has_permission(user.id, Permission.SETTINGS_DELETE)
        assert await service.user_has_any_permission(user.id, [Permission.USERS_DELETE])

    async def test_has_any(self, db, make_role, make_user):
        role = await make_role("Reader", [Permission.BLOGS_READ])
        user = await make_user(role)
        service = PermissionManagementService(db)
        assert await service.user_has_any_permission(user.id, [Permission.BLOGS_UPDATE, Permission.BLOGS_READ])
        assert not await service.user_has_any_permission(user.id, [Permission.BLOGS_UPDATE])

    async def test_principal_snapshot(self, db, make_role, make_user):
        role = await make_role("Editor", [Permission.BLOGS_READ])
        user = await make_user(role)
        principal = await PermissionManagementService(db).load_principal(user.id)
        assert principal.user_id == user.id
        assert principal.role_name == "Editor"
        assert principal.has(Permission.BLOGS_READ)
        assert not principal.is_super_admin

    async def test_inactive_user_cannot_authenticate(self, db, make_user):
        user = await make_user(is_active=False)
        with pytest.raises(UnauthenticatedError):
            await PermissionManagementService(db).load_principal(user.id)


class TestQueries:
    async def test_users_by_permission(self, db, make_role, make_user):
        editor = await make_role("Editor", [Permission.BLOGS_UPDATE])
        reader = await make_role("Reader", [Permission.BLOGS_READ])
        alice = await make_user(editor, name="Alice")
        await make_user(reader)
        await make_user(editor, deleted_at=datetime.now(timezone.utc))

        users = await PermissionManagementService(db).users_by_permission(Permission.BLOGS_UPDATE)
        assert users == [{"id": alice.id, "email": alice.email, "name": "Alice", "role_name": "Editor"}]

    async def test_permissions_by_category(self, db, make_role):
        await make_role("Editor", [Permission.BLOGS_READ])
        await make_role("Reader", [Permission.BLOGS_READ])

        grouped = await PermissionManagementService(db).permissions_by_category()
        assert "Admin" in grouped
        assert SUPER_ADMIN_PERMISSION not in [p["name"] for p in grouped["Admin"]]
        blogs = {p["name"]: p["role_count"] for p in grouped["Blogs"]}
        assert blogs[Permission.BLOGS_READ] == 2
        assert blogs[Permission.BLOGS_UPDATE] == 0

    async def test_stats(self, db, make_role, make_user, catalog):
        role = await make_role("Editor", [Permission.BLOGS_READ])
        await make_role("Empty")
        await make_user(role)
        await make_user()

        stats = await PermissionManagementService(db).get_stats()
        assert stats["total_permissions"] == len(catalog)
        assert stats["total_roles"] == 2
        assert stats["total_users"] == 2
        assert stats["roles_without_permissions"] == 1
        assert stats["users_without_roles"] == 1
        assert stats["permissions_per_category"]["Blogs"] == 16
