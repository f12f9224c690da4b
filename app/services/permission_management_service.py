"""
Permission Management Service

User-facing permission lookups: flattening a user's role into permission
names, permission checks, and usage statistics. Permission sets are read
from the store on every call; nothing is cached between requests.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.authorization import Principal
from app.core.exceptions import UnauthenticatedError, UserNotFoundError
from app.core.permissions import SUPER_ADMIN_PERMISSION, permission_category
from app.models.permission import Permission, role_permissions
from app.models.role import Role
from app.models.user import User

logger = logging.getLogger(__name__)


def flatten_permissions(user: User) -> List[str]:
    """
    Permission names reachable through the user's role.

    No role, a soft-deleted role, or soft-deleted permissions grant nothing.
    """
    role = user.role
    if role is None or role.deleted_at is not None:
        return []
    return sorted(p.name for p in role.permissions if p.deleted_at is None)


class PermissionManagementService:
    """Service for resolving and checking user permissions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_active_user(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(
            select(User)
            .options(selectinload(User.role).selectinload(Role.permissions))
            .where(User.id == user_id, User.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    async def get_user_permissions(self, user_id: int) -> List[str]:
        """
        Flattened permission names of a user.

        Raises:
            UserNotFoundError: Unknown or soft-deleted user
        """
        user = await self._get_active_user(user_id)
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")
        return flatten_permissions(user)

    async def load_principal(self, user_id: int) -> Principal:
        """Snapshot of the user's identity for one authorization decision."""
        user = await self._get_active_user(user_id)
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")
        if not user.is_active:
            raise UnauthenticatedError("Account is disabled")

        role_name = None
        if user.role is not None and user.role.deleted_at is None:
            role_name = user.role.name

        return Principal(
            user_id=user.id,
            permissions=frozenset(flatten_permissions(user)),
            role_name=role_name,
        )

    async def user_has_permission(self, user_id: int, permission_name: str) -> bool:
        permissions = await self.get_user_permissions(user_id)
        return SUPER_ADMIN_PERMISSION in permissions or permission_name in permissions

    async def user_has_any_permission(self, user_id: int, permission_names: List[str]) -> bool:
        permissions = set(await self.get_user_permissions(user_id))
        if SUPER_ADMIN_PERMISSION in permissions:
            return True
        return any(name in permissions for name in permission_names)

    async def users_by_permission(self, permission_name: str) -> List[Dict[str, Any]]:
        """Active users whose active role holds the active permission."""
        result = await self.db.execute(
            select(User.id, User.email, User.name, Role.name)
            .join(Role, User.role_id == Role.id)
            .join(role_permissions, role_permissions.c.role_id == Role.id)
            .join(Permission, Permission.id == role_permissions.c.permission_id)
            .where(
                User.deleted_at.is_(None),
                Role.deleted_at.is_(None),
                Permission.deleted_at.is_(None),
                Permission.name == permission_name,
            )
            .order_by(User.id)
        )
        return [
            {"id": user_id, "email": email, "name": name, "role_name": role_name}
            for user_id, email, name, role_name in result.all()
        ]

    async def permissions_by_category(self) -> Dict[str, List[Dict[str, Any]]]:
        """
        Active permissions grouped by display category, each with the number
        of active roles holding it.
        """
        role_count = (
            select(func.count(Role.id))
            .select_from(role_permissions)
            .join(Role, Role.id == role_permissions.c.role_id)
            .where(
                role_permissions.c.permission_id == Permission.id,
                Role.deleted_at.is_(None),
            )
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(Permission.id, Permission.name, Permission.description, role_count)
            .where(
                Permission.deleted_at.is_(None),
                Permission.name != SUPER_ADMIN_PERMISSION,
            )
            .order_by(Permission.name)
        )

        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for permission_id, name, description, count in result.all():
            grouped.setdefault(permission_category(name), []).append({
                "id": permission_id,
                "name": name,
                "description": description,
                "role_count": count or 0,
            })
        return grouped

    async def get_stats(self) -> Dict[str, Any]:
        total_permissions = (await self.db.execute(
            select(func.count(Permission.id)).where(Permission.deleted_at.is_(None))
        )).scalar() or 0
        total_roles = (await self.db.execute(
            select(func.count(Role.id)).where(Role.deleted_at.is_(None))
        )).scalar() or 0
        total_users = (await self.db.execute(
            select(func.count(User.id)).where(User.deleted_at.is_(None))
        )).scalar() or 0
        roles_without_permissions = (await self.db.execute(
            select(func.count(Role.id)).where(
                Role.deleted_at.is_(None),
                ~Role.permissions.any(),
            )
        )).scalar() or 0
        users_without_roles = (await self.db.execute(
            select(func.count(User.id)).where(
                User.deleted_at.is_(None),
                User.role_id.is_(None),
            )
        )).scalar() or 0

        names = (await self.db.execute(
            select(Permission.name).where(Permission.deleted_at.is_(None))
        )).scalars().all()
        per_category: Dict[str, int] = {}
        for name in names:
            category = permission_category(name)
            per_category[category] = per_category.get(category, 0) + 1

        return {
            "total_permissions": total_permissions,
            "total_roles": total_roles,
            "total_users": total_users,
            "permissions_per_category": per_category,
            "roles_without_permissions": roles_without_permissions,
            "users_without_roles": users_without_roles,
        }
