"""
Permission Service

Persistence of permission rows: listing, CRUD with soft delete, bulk
operations and the catalog sync. The admin:full_access sentinel is never
listed, and never edited or deleted through here.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AuthzBaseError,
    ConflictError,
    PermissionNotFoundError,
    ValidationError,
)
from app.core.permissions import (
    ALL_PERMISSIONS,
    RESERVED_PERMISSIONS,
    SUPER_ADMIN_PERMISSION,
    is_valid_permission_name,
    permission_category,
)
from app.models.permission import Permission, role_permissions

logger = logging.getLogger(__name__)

# Allowed sort keys -> column; anything else sorts by created_at
SORT_FIELDS = {
    "id": Permission.id,
    "name": Permission.name,
    "description": Permission.description,
    "createdAt": Permission.created_at,
    "created_at": Permission.created_at,
    "updatedAt": Permission.updated_at,
    "updated_at": Permission.updated_at,
    "deletedAt": Permission.deleted_at,
    "deleted_at": Permission.deleted_at,
}


def default_description(name: str) -> str:
    """"blogs:permanent_delete" -> "Permanent delete blogs"."""
    resource, _, action = name.partition(":")
    return f"{action.replace('_', ' ').capitalize()} {resource.replace('_', ' ')}"


class PermissionService:
    """
    Service for managing permission rows.

    Features:
    - Paginated listing with search, sort allow-list and deleted filters
    - Create/update with name format and uniqueness checks
    - Soft delete, restore, guarded permanent delete
    - Bulk variants collecting per-id failures
    - Idempotent sync from the static catalog
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_permissions(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        include_deleted: bool = False,
        deleted: bool = False,
    ) -> Tuple[List[Permission], int, int, int]:
        """
        List permissions.

        Args:
            page: 1-based page number
            limit: Page size, clamped to MAX_PAGE_SIZE
            search: Case-insensitive match on name, description and meta fields
            sort_by: Sort key; unknown keys fall back to createdAt
            sort_order: "asc" or "desc"
            include_deleted: Return active and deleted rows
            deleted: Return only deleted rows (wins over include_deleted)

        Returns:
            (permissions, total, page, limit)
        """
        page = max(1, page or 1)
        limit = min(settings.MAX_PAGE_SIZE, max(1, limit or settings.DEFAULT_PAGE_SIZE))

        conditions = [Permission.name != SUPER_ADMIN_PERMISSION]

        if deleted:
            conditions.append(Permission.deleted_at.isnot(None))
        elif not include_deleted:
            conditions.append(Permission.deleted_at.is_(None))

        if search and search.strip():
            term = f"%{search.strip()}%"
            conditions.append(or_(
                Permission.name.ilike(term),
                Permission.description.ilike(term),
                Permission.meta_title.ilike(term),
                Permission.meta_description.ilike(term),
            ))

        sort_column = SORT_FIELDS.get(sort_by, Permission.created_at)
        order = sort_column.asc() if sort_order == "asc" else sort_column.desc()

        total_result = await self.db.execute(
            select(func.count(Permission.id)).where(*conditions)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Permission)
            .where(*conditions)
            .order_by(order, Permission.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        permissions = list(result.scalars().all())

        logger.debug(f"Found {len(permissions)} permissions out of {total} total")
        return permissions, total, page, limit

    async def get_by_id(self, permission_id: int, include_deleted: bool = False) -> Optional[Permission]:
        query = select(Permission).where(Permission.id == permission_id)
        if not include_deleted:
            query = query.where(Permission.deleted_at.is_(None))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_name(self, name: str) -> Optional[Permission]:
        """Get a permission by exact name, soft-deleted rows included."""
        result = await self.db.execute(
            select(Permission).where(Permission.name == name)
        )
        return result.scalar_one_or_none()

    async def get_permission(self, permission_id: int) -> Permission:
        permission = await self.get_by_id(permission_id)
        if not permission:
            raise PermissionNotFoundError(f"Permission {permission_id} not found")
        return permission

    async def create_permission(
        self,
        name: str,
        description: Optional[str] = None,
        meta_title: Optional[str] = None,
        meta_description: Optional[str] = None,
    ) -> Permission:
        """
        Create a permission.

        Raises:
            ValidationError: Name not in resource:action form, or reserved
            ConflictError: Name already taken (deleted rows count)
        """
        name = (name or "").strip()
        self._validate_name(name)

        if await self.get_by_name(name):
            raise ConflictError(f"Permission '{name}' already exists")

        permission = Permission(
            name=name,
            description=description,
            meta_title=meta_title,
            meta_description=meta_description,
        )
        self.db.add(permission)
        await self.db.flush()

        logger.info(f"Created permission {permission.id} '{name}'")
        return permission

    async def update_permission(self, permission_id: int, data: Dict[str, Any]) -> Permission:
        """
        Update a permission.

        Uniqueness is only re-checked when the name changes.
        """
        permission = await self.get_permission(permission_id)
        self._guard_reserved(permission)

        name = data.get("name")
        if name is not None:
            name = name.strip()
            if name != permission.name:
                self._validate_name(name)
                existing = await self.get_by_name(name)
                if existing and existing.id != permission.id:
                    raise ConflictError(f"Permission '{name}' already exists")
                permission.name = name

        for field in ("description", "meta_title", "meta_description"):
            if field in data and data[field] is not None:
                setattr(permission, field, data[field])

        permission.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        return permission

    async def delete_permission(self, permission_id: int) -> Permission:
        """Soft delete. Roles keep their reference to the row."""
        permission = await self.get_permission(permission_id)
        self._guard_reserved(permission)

        permission.deleted_at = datetime.now(timezone.utc)
        await self.db.flush()

        logger.info(f"Soft-deleted permission {permission_id} '{permission.name}'")
        return permission

    async def restore_permission(self, permission_id: int) -> Permission:
        permission = await self.get_by_id(permission_id, include_deleted=True)
        if not permission:
            raise PermissionNotFoundError(f"Permission {permission_id} not found")
        if permission.deleted_at is None:
            raise ConflictError(f"Permission {permission_id} is not deleted")

        permission.deleted_at = None
        permission.updated_at = datetime.now(timezone.utc)
        await self.db.flush()

        logger.info(f"Restored permission {permission_id} '{permission.name}'")
        return permission

    async def count_role_references(self, permission_id: int) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(role_permissions).where(
                role_permissions.c.permission_id == permission_id
            )
        )
        return result.scalar() or 0

    async def permanent_delete_permission(self, permission_id: int) -> None:
        """
        Physically remove a permission.

        Raises:
            ConflictError: Any role still references it
        """
        permission = await self.get_by_id(permission_id, include_deleted=True)
        if not permission:
            raise PermissionNotFoundError(f"Permission {permission_id} not found")
        self._guard_reserved(permission)

        blocking = await self.count_role_references(permission_id)
        if blocking:
            raise ConflictError(
                f"Permission '{permission.name}' is used by {blocking} role(s)",
                details={"role_count": blocking},
            )

        await self.db.delete(permission)
        await self.db.flush()
        logger.warning(f"Permanently deleted permission {permission_id} '{permission.name}'")

    async def bulk_delete(self, permission_ids: List[int]) -> Dict[str, Any]:
        return await self._bulk(permission_ids, self.delete_permission, "deleted")

    async def bulk_restore(self, permission_ids: List[int]) -> Dict[str, Any]:
        return await self._bulk(permission_ids, self.restore_permission, "restored")

    async def bulk_permanent_delete(self, permission_ids: List[int]) -> Dict[str, Any]:
        return await self._bulk(permission_ids, self.permanent_delete_permission, "permanently deleted")

    async def _bulk(self, permission_ids: List[int], operation, verb: str) -> Dict[str, Any]:
        validate_bulk_ids(permission_ids)

        done: List[int] = []
        failed: List[int] = []
        for permission_id in permission_ids:
            try:
                await operation(permission_id)
                done.append(permission_id)
            except AuthzBaseError as e:
                logger.warning(f"Bulk operation failed for permission {permission_id}: {e.message}")
                failed.append(permission_id)

        return {
            "success_count": len(done),
            "failed_ids": failed,
            "message": f"{len(done)}/{len(permission_ids)} permissions {verb}",
        }

    async def get_options(self) -> List[Dict[str, Any]]:
        """
        Active permissions grouped for a multi-select.

        Returns:
            [{"group": "Blogs", "options": [{"value": id, "label": name}]}]
        """
        result = await self.db.execute(
            select(Permission.id, Permission.name)
            .where(
                Permission.deleted_at.is_(None),
                Permission.name != SUPER_ADMIN_PERMISSION,
            )
            .order_by(Permission.name)
        )

        groups: Dict[str, List[Dict[str, Any]]] = {}
        for permission_id, name in result.all():
            groups.setdefault(permission_category(name), []).append(
                {"value": permission_id, "label": name}
            )

        return [{"group": group, "options": options} for group, options in groups.items()]

    async def get_stats(self) -> Dict[str, int]:
        active_result = await self.db.execute(
            select(func.count(Permission.id)).where(Permission.deleted_at.is_(None))
        )
        deleted_result = await self.db.execute(
            select(func.count(Permission.id)).where(Permission.deleted_at.isnot(None))
        )
        active = active_result.scalar() or 0
        deleted = deleted_result.scalar() or 0
        return {"total": active + deleted, "active": active, "deleted": deleted}

    async def _existing_by_name(self, names: List[str]) -> Dict[str, Permission]:
        result = await self.db.execute(
            select(Permission).where(Permission.name.in_(names))
        )
        return {permission.name: permission for permission in result.scalars().all()}

    async def sync_permissions(self, names: Iterable[str] = ALL_PERMISSIONS) -> Dict[str, Any]:
        """
        Upsert every catalog permission by name.

        New names are created with a generated description; existing rows
        keep their description and metadata and only get their timestamp
        bumped. Each name is written in its own savepoint, so a failing
        name is reported in `errors` and the rest of the run still lands.
        """
        names = list(dict.fromkeys(names))
        existing = await self._existing_by_name(names)

        created = 0
        updated = 0
        errors: List[str] = []
        now = datetime.now(timezone.utc)

        for name in names:
            if not is_valid_permission_name(name):
                errors.append(f"{name}: permission name must be in 'resource:action' format")
                continue

            permission = existing.get(name)
            try:
                async with self.db.begin_nested():
                    if permission is None:
                        self.db.add(Permission(name=name, description=default_description(name)))
                    else:
                        permission.updated_at = now
            except SQLAlchemyError as e:
                logger.warning(f"Permission sync failed for '{name}': {e}")
                errors.append(f"{name}: {e}")
                continue

            if permission is None:
                created += 1
            else:
                updated += 1

        result = await self.db.execute(select(func.count(Permission.id)))
        total = result.scalar() or 0

        logger.info(f"Permission sync: {created} created, {updated} updated, {len(errors)} errors")
        return {"created": created, "updated": updated, "total": total, "errors": errors}

    @staticmethod
    def _validate_name(name: str) -> None:
        if not is_valid_permission_name(name):
            raise ValidationError(
                "Permission name must be in 'resource:action' format",
                details={"name": name},
            )
        if name in RESERVED_PERMISSIONS:
            raise ValidationError(f"Permission '{name}' is reserved")

    @staticmethod
    def _guard_reserved(permission: Permission) -> None:
        if permission.name in RESERVED_PERMISSIONS:
            raise ValidationError(f"Permission '{permission.name}' is reserved and cannot be modified")


def validate_bulk_ids(ids: List[int]) -> None:
    if not ids:
        raise ValidationError("At least one id is required")
    if len(ids) > settings.MAX_BULK_OPERATION_SIZE:
        raise ValidationError(
            f"Cannot process more than {settings.MAX_BULK_OPERATION_SIZE} items at once"
        )
