"""
Permission Management Routes

CRUD, bulk operations and catalog sync for permission rows.
"""
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import authorize
from app.core.authorization import Principal, requires, requires_any
from app.core.database import get_db
from app.core.permissions import Permission
from app.core.rate_limit import get_admin_limit
from app.schemas.common import BulkIds, BulkResult, Paginated, PaginationMeta
from app.schemas.permission import (
    PermissionCreate,
    PermissionOptionGroup,
    PermissionResponse,
    PermissionStats,
    PermissionUpdate,
    SyncResult,
)
from app.services.permission_management_service import PermissionManagementService
from app.services.permission_service import PermissionService

router = APIRouter()

CAN_READ = requires_any(Permission.PERMISSIONS_READ, Permission.PERMISSIONS_FULL_ACCESS)


@router.get("", response_model=Paginated[PermissionResponse])
async def list_permissions(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = Query(None),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    include_deleted: bool = Query(False, alias="includeDeleted"),
    deleted: bool = Query(False),
    principal: Principal = Depends(authorize(CAN_READ)),
    db: AsyncSession = Depends(get_db)
):
    """
    List permissions with pagination, search and sorting.

    Requires: permissions:read
    """
    permissions, total, page, limit = await PermissionService(db).list_permissions(
        page=page,
        limit=limit,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        include_deleted=include_deleted,
        deleted=deleted,
    )
    return Paginated[PermissionResponse](
        data=[PermissionResponse.model_validate(p) for p in permissions],
        meta=PaginationMeta.build(total, page, limit),
    )


@router.get("/options", response_model=List[PermissionOptionGroup])
async def get_permission_options(
    principal: Principal = Depends(authorize(CAN_READ)),
    db: AsyncSession = Depends(get_db)
):
    """Active permissions grouped for multi-select inputs."""
    return await PermissionService(db).get_options()


@router.get("/stats", response_model=PermissionStats)
async def get_permission_stats(
    principal: Principal = Depends(authorize(CAN_READ)),
    db: AsyncSession = Depends(get_db)
):
    return await PermissionService(db).get_stats()


@router.get("/usage")
async def get_permission_usage(
    principal: Principal = Depends(authorize(CAN_READ)),
    db: AsyncSession = Depends(get_db)
):
    """Permission, role and user totals plus per-category counts."""
    return await PermissionManagementService(db).get_stats()


@router.get("/by-category")
async def get_permissions_by_category(
    principal: Principal = Depends(authorize(CAN_READ)),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, List[dict]]:
    return await PermissionManagementService(db).permissions_by_category()


@router.get("/{name}/users")
async def get_users_by_permission(
    name: str,
    principal: Principal = Depends(authorize(
        requires(Permission.PERMISSIONS_READ, Permission.USERS_READ)
    )),
    db: AsyncSession = Depends(get_db)
):
    """
    Users whose role grants the named permission.

    Requires: permissions:read and users:read
    """
    return await PermissionManagementService(db).users_by_permission(name)


@router.post("/sync", response_model=SyncResult)
@get_admin_limit()
async def sync_permissions(
    request: Request,
    principal: Principal = Depends(authorize(requires(Permission.PERMISSIONS_FULL_ACCESS))),
    db: AsyncSession = Depends(get_db)
):
    """
    Upsert every catalog permission.

    Requires: permissions:full_access. Rate limited.
    """
    return await PermissionService(db).sync_permissions()


@router.post("/bulk/delete", response_model=BulkResult)
async def bulk_delete_permissions(
    body: BulkIds,
    principal: Principal = Depends(authorize(requires_any(
        Permission.PERMISSIONS_BULK_DELETE, Permission.PERMISSIONS_FULL_ACCESS
    ))),
    db: AsyncSession = Depends(get_db)
):
    return await PermissionService(db).bulk_delete(body.ids)


@router.post("/bulk/restore", response_model=BulkResult)
async def bulk_restore_permissions(
    body: BulkIds,
    principal: Principal = Depends(authorize(requires_any(
        Permission.PERMISSIONS_BULK_RESTORE, Permission.PERMISSIONS_FULL_ACCESS
    ))),
    db: AsyncSession = Depends(get_db)
):
    return await PermissionService(db).bulk_restore(body.ids)


@router.post("/bulk/permanent-delete", response_model=BulkResult)
async def bulk_permanent_delete_permissions(
    body: BulkIds,
    principal: Principal = Depends(authorize(requires_any(
        Permission.PERMISSIONS_BULK_PERMANENT_DELETE, Permission.PERMISSIONS_FULL_ACCESS
    ))),
    db: AsyncSession = Depends(get_db)
):
    return await PermissionService(db).bulk_permanent_delete(body.ids)


@router.get("/{permission_id:int}", response_model=PermissionResponse)
async def get_permission(
    permission_id: int,
    principal: Principal = Depends(authorize(CAN_READ)),
    db: AsyncSession = Depends(get_db)
):
    return await PermissionService(db).get_permission(permission_id)


@router.post("", response_model=PermissionResponse, status_code=201)
async def create_permission(
    body: PermissionCreate,
    principal: Principal = Depends(authorize(requires_any(
        Permission.PERMISSIONS_CREATE, Permission.PERMISSIONS_FULL_ACCESS
    ))),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a permission.

    400 for a name not in resource:action form, 409 for a taken name.
    """
    return await PermissionService(db).create_permission(**body.model_dump())


@router.patch("/{permission_id:int}", response_model=PermissionResponse)
async def update_permission(
    permission_id: int,
    body: PermissionUpdate,
    principal: Principal = Depends(authorize(requires_any(
        Permission.PERMISSIONS_UPDATE, Permission.PERMISSIONS_FULL_ACCESS
    ))),
    db: AsyncSession = Depends(get_db)
):
    return await PermissionService(db).update_permission(
        permission_id, body.model_dump(exclude_unset=True)
    )


@router.delete("/{permission_id:int}", response_model=PermissionResponse)
async def delete_permission(
    permission_id: int,
    principal: Principal = Depends(authorize(requires_any(
        Permission.PERMISSIONS_DELETE, Permission.PERMISSIONS_FULL_ACCESS
    ))),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete. Roles keep referencing the permission."""
    return await PermissionService(db).delete_permission(permission_id)


@router.post("/{permission_id:int}/restore", response_model=PermissionResponse)
async def restore_permission(
    permission_id: int,
    principal: Principal = Depends(authorize(requires_any(
        Permission.PERMISSIONS_RESTORE, Permission.PERMISSIONS_FULL_ACCESS
    ))),
    db: AsyncSession = Depends(get_db)
):
    return await PermissionService(db).restore_permission(permission_id)


@router.delete("/{permission_id:int}/permanent", status_code=204)
async def permanent_delete_permission(
    permission_id: int,
    principal: Principal = Depends(authorize(requires_any(
        Permission.PERMISSIONS_PERMANENT_DELETE, Permission.PERMISSIONS_FULL_ACCESS
    ))),
    db: AsyncSession = Depends(get_db)
):
    """409 while any role still references the permission."""
    await PermissionService(db).permanent_delete_permission(permission_id)
