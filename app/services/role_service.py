"""
Role Service

Role management and role <-> permission assignment. Each user holds one
role; a role's effective permissions are its non-deleted permissions.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import (
    ConflictError,
    PermissionNotFoundError,
    RoleNotFoundError,
    ValidationError,
)
from app.core.permissions import DEFAULT_ROLES, RESERVED_PERMISSIONS
from app.models.permission import Permission
from app.models.role import Role
from app.models.user import User

logger = logging.getLogger(__name__)


def serialize_role(role: Role, user_count: int) -> Dict[str, Any]:
    """Role as returned to clients: active permissions only."""
    return {
        "id": role.id,
        "name": role.name,
        "description": role.description,
        "permissions": [
            {"id": p.id, "name": p.name, "description": p.description}
            for p in sorted(role.permissions, key=lambda p: p.name)
            if p.deleted_at is None
        ],
        "user_count": user_count,
        "created_at": role.created_at,
        "deleted_at": role.deleted_at,
    }


class RoleService:
    """
    Service for managing roles and their permission sets.

    Features:
    - Role CRUD with soft delete
    - Replace / subtract permission assignment
    - Default role seeding from the catalog templates
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_role_by_id(self, role_id: int, include_deleted: bool = False) -> Optional[Role]:
        """Get a role by ID with its permissions loaded."""
        query = (
            select(Role)
            .options(selectinload(Role.permissions))
            .where(Role.id == role_id)
            .execution_options(populate_existing=True)
        )
        if not include_deleted:
            query = query.where(Role.deleted_at.is_(None))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_role_by_name(self, name: str) -> Optional[Role]:
        """Get a role by name, soft-deleted rows included."""
        result = await self.db.execute(
            select(Role).options(selectinload(Role.permissions)).where(Role.name == name)
        )
        return result.scalar_one_or_none()

    async def _require_role(self, role_id: int, include_deleted: bool = False) -> Role:
        role = await self.get_role_by_id(role_id, include_deleted=include_deleted)
        if not role:
            raise RoleNotFoundError(f"Role {role_id} not found")
        return role

    async def count_active_users(self, role_id: int) -> int:
        result = await self.db.execute(
            select(func.count(User.id)).where(
                User.role_id == role_id,
                User.deleted_at.is_(None),
            )
        )
        return result.scalar() or 0

    async def list_roles(self, include_deleted: bool = False) -> List[Dict[str, Any]]:
        """
        All roles with their active permissions and active user counts.
        """
        query = select(Role).options(selectinload(Role.permissions)).order_by(Role.name)
        if not include_deleted:
            query = query.where(Role.deleted_at.is_(None))
        result = await self.db.execute(query)
        roles = list(result.scalars().all())

        counts_result = await self.db.execute(
            select(User.role_id, func.count(User.id))
            .where(User.deleted_at.is_(None), User.role_id.isnot(None))
            .group_by(User.role_id)
        )
        counts = dict(counts_result.all())

        return [serialize_role(role, counts.get(role.id, 0)) for role in roles]

    async def get_role(self, role_id: int) -> Dict[str, Any]:
        role = await self._require_role(role_id)
        return serialize_role(role, await self.count_active_users(role_id))

    async def create_role(self, name: str, description: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a new role with no permissions.

        Raises:
            ConflictError: If role name already exists
        """
        name = name.strip()
        if await self.get_role_by_name(name):
            raise ConflictError(f"Role '{name}' already exists")

        role = Role(name=name, description=description)
        self.db.add(role)
        await self.db.flush()

        logger.info(f"Created role {role.id} '{name}'")
        return await self.get_role(role.id)

    async def update_role(
        self,
        role_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        role = await self._require_role(role_id)

        if name and name.strip() != role.name:
            name = name.strip()
            existing = await self.get_role_by_name(name)
            if existing and existing.id != role_id:
                raise ConflictError(f"Role '{name}' already exists")
            role.name = name

        if description is not None:
            role.description = description

        role.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        return await self.get_role(role_id)

    async def delete_role(self, role_id: int) -> None:
        """
        Soft delete a role.

        Raises:
            ConflictError: Active users are still assigned to it
        """
        role = await self._require_role(role_id)

        user_count = await self.count_active_users(role_id)
        if user_count:
            raise ConflictError(
                f"Role '{role.name}' is assigned to {user_count} user(s)",
                details={"user_count": user_count},
            )

        role.deleted_at = datetime.now(timezone.utc)
        await self.db.flush()
        logger.info(f"Soft-deleted role {role_id} '{role.name}'")

    async def restore_role(self, role_id: int) -> Dict[str, Any]:
        role = await self._require_role(role_id, include_deleted=True)
        if role.deleted_at is None:
            raise ConflictError(f"Role {role_id} is not deleted")

        role.deleted_at = None
        role.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        logger.info(f"Restored role {role_id} '{role.name}'")
        return await self.get_role(role_id)

    async def _load_assignable(self, permission_ids: List[int]) -> List[Permission]:
        """Active permissions for every id, or NotFound naming the missing ones."""
        ids = list(dict.fromkeys(permission_ids))
        if not ids:
            return []

        result = await self.db.execute(
            select(Permission).where(
                Permission.id.in_(ids),
                Permission.deleted_at.is_(None),
            )
        )
        permissions = list(result.scalars().all())

        found = {p.id for p in permissions}
        missing = [pid for pid in ids if pid not in found]
        if missing:
            raise PermissionNotFoundError(
                f"Permissions not found: {missing}",
                details={"missing_ids": missing},
            )

        reserved = [p.name for p in permissions if p.name in RESERVED_PERMISSIONS]
        if reserved:
            raise ValidationError(f"Permission '{reserved[0]}' cannot be assigned")

        return permissions

    async def assign_permissions(self, role_id: int, permission_ids: List[int]) -> Dict[str, Any]:
        """
        Replace the role's permission set with the given ids.

        A role that already holds a reserved permission keeps it.
        """
        role = await self._require_role(role_id)
        permissions = await self._load_assignable(permission_ids)

        kept = [p for p in role.permissions if p.name in RESERVED_PERMISSIONS]
        role.permissions = kept + permissions
        role.updated_at = datetime.now(timezone.utc)
        await self.db.flush()

        logger.info(f"Role {role_id} permissions replaced with {len(permissions)} permission(s)")
        return await self.get_role(role_id)

    async def remove_permissions(self, role_id: int, permission_ids: List[int]) -> Dict[str, Any]:
        """Subtract the given ids from the role's permission set."""
        if not permission_ids:
            raise ValidationError("At least one permission id is required")

        role = await self._require_role(role_id)
        to_remove = set(permission_ids)

        reserved = [
            p.name for p in role.permissions
            if p.id in to_remove and p.name in RESERVED_PERMISSIONS
        ]
        if reserved:
            raise ValidationError(f"Permission '{reserved[0]}' cannot be removed")

        role.permissions = [p for p in role.permissions if p.id not in to_remove]
        role.updated_at = datetime.now(timezone.utc)
        await self.db.flush()

        logger.info(f"Removed {len(to_remove)} permission id(s) from role {role_id}")
        return await self.get_role(role_id)

    async def seed_default_roles(self) -> Dict[str, int]:
        """
        Seed default roles from the catalog templates.

        Missing roles are created; existing roles gain any template
        permission they lack. Permissions are linked by name and must
        already exist (run the permission sync first).
        """
        created = 0
        updated = 0

        for template in DEFAULT_ROLES:
            result = await self.db.execute(
                select(Permission).where(
                    Permission.name.in_(template["permissions"]),
                    Permission.deleted_at.is_(None),
                )
            )
            permissions = list(result.scalars().all())

            role = await self.get_role_by_name(template["name"])
            if role is None:
                role = Role(
                    name=template["name"],
                    description=template["description"],
                    permissions=permissions,
                )
                self.db.add(role)
                created += 1
                logger.info(f"Created default role: {template['name']}")
                continue

            held = {p.id for p in role.permissions}
            missing = [p for p in permissions if p.id not in held]
            if missing:
                role.permissions = list(role.permissions) + missing
                updated += 1

        await self.db.flush()
        return {"created": created, "updated": updated}
