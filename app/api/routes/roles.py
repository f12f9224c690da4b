"""
Role Management Routes

Role CRUD and role <-> permission assignment.
"""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import authorize
from app.core.authorization import Principal, requires_any
from app.core.database import get_db
from app.core.permissions import Permission
from app.schemas.role import RoleCreate, RolePermissionIds, RoleResponse, RoleUpdate
from app.services.role_service import RoleService

router = APIRouter()


def role_access(permission: str):
    return authorize(requires_any(permission, Permission.ROLES_FULL_ACCESS))


@router.get("", response_model=List[RoleResponse])
async def list_roles(
    include_deleted: bool = Query(False, alias="includeDeleted"),
    principal: Principal = Depends(role_access(Permission.ROLES_READ)),
    db: AsyncSession = Depends(get_db)
):
    """
    List roles with their active permissions and user counts.

    Requires: roles:read
    """
    return await RoleService(db).list_roles(include_deleted=include_deleted)


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: int,
    principal: Principal = Depends(role_access(Permission.ROLES_READ)),
    db: AsyncSession = Depends(get_db)
):
    return await RoleService(db).get_role(role_id)


@router.post("", response_model=RoleResponse, status_code=201)
async def create_role(
    body: RoleCreate,
    principal: Principal = Depends(role_access(Permission.ROLES_CREATE)),
    db: AsyncSession = Depends(get_db)
):
    return await RoleService(db).create_role(body.name, body.description)


@router.patch("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: int,
    body: RoleUpdate,
    principal: Principal = Depends(role_access(Permission.ROLES_UPDATE)),
    db: AsyncSession = Depends(get_db)
):
    return await RoleService(db).update_role(role_id, body.name, body.description)


@router.delete("/{role_id}", status_code=204)
async def delete_role(
    role_id: int,
    principal: Principal = Depends(role_access(Permission.ROLES_DELETE)),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete. 409 while active users hold the role."""
    await RoleService(db).delete_role(role_id)


@router.post("/{role_id}/restore", response_model=RoleResponse)
async def restore_role(
    role_id: int,
    principal: Principal = Depends(role_access(Permission.ROLES_RESTORE)),
    db: AsyncSession = Depends(get_db)
):
    return await RoleService(db).restore_role(role_id)


@router.put("/{role_id}/permissions", response_model=RoleResponse)
async def assign_role_permissions(
    role_id: int,
    body: RolePermissionIds,
    principal: Principal = Depends(role_access(Permission.ROLES_ASSIGN_PERMISSIONS)),
    db: AsyncSession = Depends(get_db)
):
    """
    Replace the role's permission set.

    Requires: roles:assign_permissions
    """
    return await RoleService(db).assign_permissions(role_id, body.permission_ids)


@router.delete("/{role_id}/permissions", response_model=RoleResponse)
async def remove_role_permissions(
    role_id: int,
    body: RolePermissionIds,
    principal: Principal = Depends(role_access(Permission.ROLES_ASSIGN_PERMISSIONS)),
    db: AsyncSession = Depends(get_db)
):
    """Remove the given permission ids from the role."""
    return await RoleService(db).remove_permissions(role_id, body.permission_ids)
