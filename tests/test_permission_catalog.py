"""
Tests for the static permission catalog.
"""
import pytest

from app.core.permissions import (
    ALL_PERMISSIONS,
    DEFAULT_ROLES,
    OWNERSHIP_ACTIONS,
    PERMISSION_GROUPS,
    SUPER_ADMIN_PERMISSION,
    Permission,
    has_all_permissions,
    has_any_permission,
    has_permission,
    is_valid_permission_name,
    missing_permissions,
    permission_category,
)


class TestCatalogShape:
    def test_every_name_is_resource_action(self):
        for name in ALL_PERMISSIONS:
            assert is_valid_permission_name(name), name

    def test_names_are_unique(self):
        assert len(ALL_PERMISSIONS) == len(set(ALL_PERMISSIONS))

    def test_groups_match_name_prefix(self):
        for group, names in PERMISSION_GROUPS.items():
            assert all(name.split(":", 1)[0] == group for name in names)

    def test_standard_actions_present(self):
        standard = (
            "create", "read", "update", "delete", "restore", "view_deleted",
            "permanent_delete", "bulk_delete", "bulk_restore", "bulk_permanent_delete",
        )
        for group in ("users", "roles", "permissions", "blogs", "media", "comments", "settings"):
            for action in standard:
                assert f"{group}:{action}" in PERMISSION_GROUPS[group]

    def test_sentinel_in_catalog(self):
        assert SUPER_ADMIN_PERMISSION == "admin:full_access"
        assert SUPER_ADMIN_PERMISSION in ALL_PERMISSIONS

    def test_admin_group_is_only_the_sentinel(self):
        assert PERMISSION_GROUPS["admin"] == (SUPER_ADMIN_PERMISSION,)

    def test_comment_extras(self):
        extras = [
            name for name in PERMISSION_GROUPS["comments"]
            if name.split(":", 1)[1] in ("full_access", "manage_all", "moderate")
        ]
        assert extras == ["comments:full_access", "comments:manage_all"]

    def test_default_roles_reference_catalog(self):
        for template in DEFAULT_ROLES:
            for name in template["permissions"]:
                assert name in ALL_PERMISSIONS

    def test_ownership_actions(self):
        assert OWNERSHIP_ACTIONS["blogs"] == ("update", "delete", "restore")
        assert OWNERSHIP_ACTIONS["comments"] == ("update", "delete")


@pytest.mark.parametrize(
    "name,expected",
    [
        ("blogs:update", True),
        ("content_types:read", True),
        ("blogsread", False),
        (":read", False),
        ("blogs:", False),
        ("", False),
    ],
)
def test_is_valid_permission_name(name, expected):
    assert is_valid_permission_name(name) is expected


@pytest.mark.parametrize(
    "name,category",
    [
        ("blogs:update", "Blogs"),
        ("content_types:read", "Content_types"),
        ("admin:full_access", "Admin"),
    ],
)
def test_permission_category(name, category):
    assert permission_category(name) == category


class TestPermissionHelpers:
    def test_super_admin_has_everything(self):
        perms = [SUPER_ADMIN_PERMISSION]
        assert has_permission(perms, Permission.BLOGS_DELETE)
        assert has_all_permissions(perms, [Permission.USERS_READ, Permission.ROLES_UPDATE])
        assert missing_permissions(perms, [Permission.USERS_READ]) == []

    def test_plain_checks(self):
        perms = [Permission.BLOGS_READ]
        assert has_permission(perms, Permission.BLOGS_READ)
        assert not has_permission(perms, Permission.BLOGS_UPDATE)
        assert has_any_permission(perms, [Permission.BLOGS_UPDATE, Permission.BLOGS_READ])
        assert not has_all_permissions(perms, [Permission.BLOGS_UPDATE, Permission.BLOGS_READ])

    def test_missing_keeps_order(self):
        perms = [Permission.BLOGS_READ]
        required = [Permission.BLOGS_UPDATE, Permission.BLOGS_READ, Permission.BLOGS_DELETE]
        assert missing_permissions(perms, required) == [Permission.BLOGS_UPDATE, Permission.BLOGS_DELETE]
