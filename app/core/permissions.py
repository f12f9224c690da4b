"""
Permission catalog for RBAC

Every permission string follows "resource:action". The resource part doubles
as the display group of the permission (split on the first ':').
"""
from typing import Dict, Iterable, List, Tuple


class Permission:
    """
    Fixed set of permission names known to the system.

    Resources: admin, users, roles, permissions, blogs, categories, tags,
    status, media, recruitment, services, contacts, comments, analytics,
    settings, content_types (legacy alias for categories/tags).
    """

    # System admin
    ADMIN_FULL_ACCESS = "admin:full_access"  # Super admin sentinel

    # User permissions
    USERS_CREATE = "users:create"
    USERS_READ = "users:read"
    USERS_UPDATE = "users:update"
    USERS_DELETE = "users:delete"
    USERS_RESTORE = "users:restore"
    USERS_VIEW_DELETED = "users:view_deleted"
    USERS_PERMANENT_DELETE = "users:permanent_delete"
    USERS_BULK_DELETE = "users:bulk_delete"
    USERS_BULK_RESTORE = "users:bulk_restore"
    USERS_BULK_PERMANENT_DELETE = "users:bulk_permanent_delete"
    USERS_FULL_ACCESS = "users:full_access"
    USERS_MANAGE_ALL = "users:manage_all"

    # Role permissions
    ROLES_CREATE = "roles:create"
    ROLES_READ = "roles:read"
    ROLES_UPDATE = "roles:update"
    ROLES_DELETE = "roles:delete"
    ROLES_RESTORE = "roles:restore"
    ROLES_VIEW_DELETED = "roles:view_deleted"
    ROLES_PERMANENT_DELETE = "roles:permanent_delete"
    ROLES_BULK_DELETE = "roles:bulk_delete"
    ROLES_BULK_RESTORE = "roles:bulk_restore"
    ROLES_BULK_PERMANENT_DELETE = "roles:bulk_permanent_delete"
    ROLES_ASSIGN_PERMISSIONS = "roles:assign_permissions"
    ROLES_FULL_ACCESS = "roles:full_access"

    # Permission management permissions
    PERMISSIONS_CREATE = "permissions:create"
    PERMISSIONS_READ = "permissions:read"
    PERMISSIONS_UPDATE = "permissions:update"
    PERMISSIONS_DELETE = "permissions:delete"
    PERMISSIONS_RESTORE = "permissions:restore"
    PERMISSIONS_VIEW_DELETED = "permissions:view_deleted"
    PERMISSIONS_PERMANENT_DELETE = "permissions:permanent_delete"
    PERMISSIONS_BULK_DELETE = "permissions:bulk_delete"
    PERMISSIONS_BULK_RESTORE = "permissions:bulk_restore"
    PERMISSIONS_BULK_PERMANENT_DELETE = "permissions:bulk_permanent_delete"
    PERMISSIONS_FULL_ACCESS = "permissions:full_access"

    # Blog permissions
    BLOGS_CREATE = "blogs:create"
    BLOGS_READ = "blogs:read"
    BLOGS_UPDATE = "blogs:update"
    BLOGS_DELETE = "blogs:delete"
    BLOGS_RESTORE = "blogs:restore"
    BLOGS_VIEW_DELETED = "blogs:view_deleted"
    BLOGS_PERMANENT_DELETE = "blogs:permanent_delete"
    BLOGS_BULK_DELETE = "blogs:bulk_delete"
    BLOGS_BULK_RESTORE = "blogs:bulk_restore"
    BLOGS_BULK_PERMANENT_DELETE = "blogs:bulk_permanent_delete"
    BLOGS_PUBLISH = "blogs:publish"
    BLOGS_UNPUBLISH = "blogs:unpublish"
    BLOGS_LIKE = "blogs:like"
    BLOGS_BOOKMARK = "blogs:bookmark"
    BLOGS_FULL_ACCESS = "blogs:full_access"
    BLOGS_MANAGE_ALL = "blogs:manage_all"

    # Category permissions
    CATEGORIES_CREATE = "categories:create"
    CATEGORIES_READ = "categories:read"
    CATEGORIES_UPDATE = "categories:update"
    CATEGORIES_DELETE = "categories:delete"
    CATEGORIES_RESTORE = "categories:restore"
    CATEGORIES_VIEW_DELETED = "categories:view_deleted"
    CATEGORIES_PERMANENT_DELETE = "categories:permanent_delete"
    CATEGORIES_BULK_DELETE = "categories:bulk_delete"
    CATEGORIES_BULK_RESTORE = "categories:bulk_restore"
    CATEGORIES_BULK_PERMANENT_DELETE = "categories:bulk_permanent_delete"
    CATEGORIES_FULL_ACCESS = "categories:full_access"

    # Tag permissions
    TAGS_CREATE = "tags:create"
    TAGS_READ = "tags:read"
    TAGS_UPDATE = "tags:update"
    TAGS_DELETE = "tags:delete"
    TAGS_RESTORE = "tags:restore"
    TAGS_VIEW_DELETED = "tags:view_deleted"
    TAGS_PERMANENT_DELETE = "tags:permanent_delete"
    TAGS_BULK_DELETE = "tags:bulk_delete"
    TAGS_BULK_RESTORE = "tags:bulk_restore"
    TAGS_BULK_PERMANENT_DELETE = "tags:bulk_permanent_delete"
    TAGS_FULL_ACCESS = "tags:full_access"

    # Status permissions
    STATUS_CREATE = "status:create"
    STATUS_READ = "status:read"
    STATUS_UPDATE = "status:update"
    STATUS_DELETE = "status:delete"
    STATUS_RESTORE = "status:restore"
    STATUS_VIEW_DELETED = "status:view_deleted"
    STATUS_PERMANENT_DELETE = "status:permanent_delete"
    STATUS_BULK_DELETE = "status:bulk_delete"
    STATUS_BULK_RESTORE = "status:bulk_restore"
    STATUS_BULK_PERMANENT_DELETE = "status:bulk_permanent_delete"
    STATUS_FULL_ACCESS = "status:full_access"

    # Media permissions
    MEDIA_CREATE = "media:create"  # Corresponds to upload
    MEDIA_READ = "media:read"
    MEDIA_UPDATE = "media:update"
    MEDIA_DELETE = "media:delete"
    MEDIA_RESTORE = "media:restore"
    MEDIA_VIEW_DELETED = "media:view_deleted"
    MEDIA_PERMANENT_DELETE = "media:permanent_delete"
    MEDIA_BULK_DELETE = "media:bulk_delete"
    MEDIA_BULK_RESTORE = "media:bulk_restore"
    MEDIA_BULK_PERMANENT_DELETE = "media:bulk_permanent_delete"
    MEDIA_UPLOAD = "media:upload"
    MEDIA_FULL_ACCESS = "media:full_access"
    MEDIA_MANAGE_ALL = "media:manage_all"

    # Recruitment permissions
    RECRUITMENT_CREATE = "recruitment:create"
    RECRUITMENT_READ = "recruitment:read"
    RECRUITMENT_UPDATE = "recruitment:update"
    RECRUITMENT_DELETE = "recruitment:delete"
    RECRUITMENT_RESTORE = "recruitment:restore"
    RECRUITMENT_VIEW_DELETED = "recruitment:view_deleted"
    RECRUITMENT_PERMANENT_DELETE = "recruitment:permanent_delete"
    RECRUITMENT_BULK_DELETE = "recruitment:bulk_delete"
    RECRUITMENT_BULK_RESTORE = "recruitment:bulk_restore"
    RECRUITMENT_BULK_PERMANENT_DELETE = "recruitment:bulk_permanent_delete"
    RECRUITMENT_APPLY = "recruitment:apply"
    RECRUITMENT_FULL_ACCESS = "recruitment:full_access"
    RECRUITMENT_MANAGE_ALL = "recruitment:manage_all"

    # Service permissions
    SERVICES_CREATE = "services:create"
    SERVICES_READ = "services:read"
    SERVICES_UPDATE = "services:update"
    SERVICES_DELETE = "services:delete"
    SERVICES_RESTORE = "services:restore"
    SERVICES_VIEW_DELETED = "services:view_deleted"
    SERVICES_PERMANENT_DELETE = "services:permanent_delete"
    SERVICES_BULK_DELETE = "services:bulk_delete"
    SERVICES_BULK_RESTORE = "services:bulk_restore"
    SERVICES_BULK_PERMANENT_DELETE = "services:bulk_permanent_delete"
    SERVICES_FULL_ACCESS = "services:full_access"
    SERVICES_MANAGE_ALL = "services:manage_all"

    # Contact permissions
    CONTACTS_CREATE = "contacts:create"
    CONTACTS_READ = "contacts:read"
    CONTACTS_UPDATE = "contacts:update"
    CONTACTS_DELETE = "contacts:delete"
    CONTACTS_RESTORE = "contacts:restore"
    CONTACTS_VIEW_DELETED = "contacts:view_deleted"
    CONTACTS_PERMANENT_DELETE = "contacts:permanent_delete"
    CONTACTS_BULK_DELETE = "contacts:bulk_delete"
    CONTACTS_BULK_RESTORE = "contacts:bulk_restore"
    CONTACTS_BULK_PERMANENT_DELETE = "contacts:bulk_permanent_delete"
    CONTACTS_FULL_ACCESS = "contacts:full_access"

    # Comment permissions
    COMMENTS_CREATE = "comments:create"
    COMMENTS_READ = "comments:read"
    COMMENTS_UPDATE = "comments:update"
    COMMENTS_DELETE = "comments:delete"
    COMMENTS_RESTORE = "comments:restore"
    COMMENTS_VIEW_DELETED = "comments:view_deleted"
    COMMENTS_PERMANENT_DELETE = "comments:permanent_delete"
    COMMENTS_BULK_DELETE = "comments:bulk_delete"
    COMMENTS_BULK_RESTORE = "comments:bulk_restore"
    COMMENTS_BULK_PERMANENT_DELETE = "comments:bulk_permanent_delete"
    COMMENTS_FULL_ACCESS = "comments:full_access"
    COMMENTS_MANAGE_ALL = "comments:manage_all"

    # Analytics permissions
    ANALYTICS_CREATE = "analytics:create"
    ANALYTICS_READ = "analytics:read"
    ANALYTICS_UPDATE = "analytics:update"
    ANALYTICS_DELETE = "analytics:delete"
    ANALYTICS_RESTORE = "analytics:restore"
    ANALYTICS_VIEW_DELETED = "analytics:view_deleted"
    ANALYTICS_PERMANENT_DELETE = "analytics:permanent_delete"
    ANALYTICS_BULK_DELETE = "analytics:bulk_delete"
    ANALYTICS_BULK_RESTORE = "analytics:bulk_restore"
    ANALYTICS_BULK_PERMANENT_DELETE = "analytics:bulk_permanent_delete"
    ANALYTICS_FULL_ACCESS = "analytics:full_access"

    # Settings permissions
    SETTINGS_CREATE = "settings:create"
    SETTINGS_READ = "settings:read"
    SETTINGS_UPDATE = "settings:update"
    SETTINGS_DELETE = "settings:delete"
    SETTINGS_RESTORE = "settings:restore"
    SETTINGS_VIEW_DELETED = "settings:view_deleted"
    SETTINGS_PERMANENT_DELETE = "settings:permanent_delete"
    SETTINGS_BULK_DELETE = "settings:bulk_delete"
    SETTINGS_BULK_RESTORE = "settings:bulk_restore"
    SETTINGS_BULK_PERMANENT_DELETE = "settings:bulk_permanent_delete"
    SETTINGS_FULL_ACCESS = "settings:full_access"

    # Legacy content types (categories + tags before they were split)
    CONTENT_TYPES_CREATE = "content_types:create"
    CONTENT_TYPES_READ = "content_types:read"
    CONTENT_TYPES_UPDATE = "content_types:update"
    CONTENT_TYPES_DELETE = "content_types:delete"
    CONTENT_TYPES_RESTORE = "content_types:restore"
    CONTENT_TYPES_FULL_ACCESS = "content_types:full_access"


SUPER_ADMIN_PERMISSION = Permission.ADMIN_FULL_ACCESS

# Never grantable through the normal permission-grant flows
RESERVED_PERMISSIONS = frozenset({SUPER_ADMIN_PERMISSION})


def _collect_groups() -> Dict[str, Tuple[str, ...]]:
    groups: Dict[str, List[str]] = {}
    for attr, value in vars(Permission).items():
        if attr.isupper() and isinstance(value, str):
            groups.setdefault(value.split(":", 1)[0], []).append(value)
    return {group: tuple(names) for group, names in groups.items()}


# Permissions organized by resource group, in declaration order
PERMISSION_GROUPS: Dict[str, Tuple[str, ...]] = _collect_groups()

ALL_PERMISSIONS: Tuple[str, ...] = tuple(
    name for names in PERMISSION_GROUPS.values() for name in names
)

# Actions that may be satisfied by owning the target resource
OWNERSHIP_ACTIONS: Dict[str, Tuple[str, ...]] = {
    "blogs": ("update", "delete", "restore"),
    "media": ("update", "delete", "restore"),
    "recruitment": ("update", "delete", "restore"),
    "comments": ("update", "delete"),
}

# Default role templates - seeded by the sync script
DEFAULT_ROLES = [
    {
        "name": "Super Admin",
        "description": "Unrestricted access to every resource",
        "permissions": [Permission.ADMIN_FULL_ACCESS],
    },
    {
        "name": "Admin",
        "description": "Full access to all managed resources",
        "permissions": [
            Permission.USERS_FULL_ACCESS,
            Permission.ROLES_FULL_ACCESS,
            Permission.BLOGS_FULL_ACCESS,
            Permission.CONTENT_TYPES_FULL_ACCESS,
            Permission.MEDIA_FULL_ACCESS,
            Permission.RECRUITMENT_FULL_ACCESS,
            Permission.SETTINGS_FULL_ACCESS,
        ],
    },
    {
        "name": "Editor",
        "description": "Writes and maintains blog content and media",
        "permissions": [
            Permission.BLOGS_CREATE,
            Permission.BLOGS_READ,
            Permission.BLOGS_UPDATE,
            Permission.BLOGS_DELETE,
            Permission.CONTENT_TYPES_CREATE,
            Permission.CONTENT_TYPES_READ,
            Permission.MEDIA_CREATE,
            Permission.MEDIA_READ,
            Permission.MEDIA_UPDATE,
            Permission.MEDIA_DELETE,
        ],
    },
    {
        "name": "HR Manager",
        "description": "Manages recruitment posts and candidate profiles",
        "permissions": [
            Permission.RECRUITMENT_FULL_ACCESS,
            Permission.USERS_READ,
        ],
    },
    {
        "name": "Client",
        "description": "Registered reader",
        "permissions": [
            Permission.BLOGS_READ,
            Permission.BLOGS_LIKE,
            Permission.BLOGS_BOOKMARK,
            Permission.COMMENTS_CREATE,
            Permission.COMMENTS_READ,
            Permission.COMMENTS_UPDATE,
            Permission.COMMENTS_DELETE,
            Permission.RECRUITMENT_APPLY,
        ],
    },
]


def is_valid_permission_name(name: str) -> bool:
    """A permission name needs a non-empty resource and action around ':'."""
    resource, sep, action = name.partition(":")
    return bool(sep and resource.strip() and action.strip())


def permission_category(name: str) -> str:
    """
    Display group for a permission: the resource part with its first letter
    capitalized ("blogs:update" -> "Blogs").
    """
    resource = name.split(":", 1)[0]
    return resource[:1].upper() + resource[1:]


def is_super_admin(user_permissions: Iterable[str]) -> bool:
    return SUPER_ADMIN_PERMISSION in set(user_permissions)


def has_permission(user_permissions: Iterable[str], required: str) -> bool:
    """
    Check if user has required permission.

    The super admin sentinel grants every permission.
    """
    perms = set(user_permissions)
    if SUPER_ADMIN_PERMISSION in perms:
        return True
    return required in perms


def has_any_permission(user_permissions: Iterable[str], required: Iterable[str]) -> bool:
    """Check if user has any of the required permissions."""
    perms = set(user_permissions)
    return any(has_permission(perms, perm) for perm in required)


def has_all_permissions(user_permissions: Iterable[str], required: Iterable[str]) -> bool:
    """Check if user has all required permissions."""
    perms = set(user_permissions)
    return all(has_permission(perms, perm) for perm in required)


def missing_permissions(user_permissions: Iterable[str], required: Iterable[str]) -> List[str]:
    """Required permissions the user does not hold, in declaration order."""
    perms = set(user_permissions)
    if SUPER_ADMIN_PERMISSION in perms:
        return []
    return [perm for perm in required if perm not in perms]
