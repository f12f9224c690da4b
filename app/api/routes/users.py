"""
User Permission Routes

Permission lookups for users and for the current principal.
"""
from typing import List
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import authorize, get_current_principal
from app.core.authorization import Principal, requires_any
from app.core.database import get_db
from app.core.exceptions import ValidationError
from app.core.permissions import Permission
from app.schemas.permission import PermissionCheckRequest, PermissionCheckResponse
from app.services.ownership_service import OwnershipService
from app.services.permission_management_service import PermissionManagementService
from app.services.permission_service import validate_bulk_ids

router = APIRouter()
me_router = APIRouter()

CAN_READ_USERS = requires_any(Permission.USERS_READ, Permission.USERS_FULL_ACCESS)


class UserPermissionsResponse(BaseModel):
    user_id: int
    permissions: List[str]


class CurrentPrincipalResponse(BaseModel):
    user_id: int
    role_name: str | None
    permissions: List[str]
    is_super_admin: bool


class OwnershipCheckRequest(BaseModel):
    action: str = "update"
    ids: List[int] = Field(default_factory=list)


class OwnershipCheckResponse(BaseModel):
    resource_type: str
    action: str
    results: List[bool]


@router.get("/{user_id}/permissions", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user_id: int,
    principal: Principal = Depends(authorize(CAN_READ_USERS)),
    db: AsyncSession = Depends(get_db)
):
    """
    Flattened permission names of a user.

    Requires: users:read
    """
    permissions = await PermissionManagementService(db).get_user_permissions(user_id)
    return UserPermissionsResponse(user_id=user_id, permissions=permissions)


@router.post("/{user_id}/permissions/check", response_model=PermissionCheckResponse)
async def check_user_permission(
    user_id: int,
    body: PermissionCheckRequest,
    principal: Principal = Depends(authorize(CAN_READ_USERS)),
    db: AsyncSession = Depends(get_db)
):
    """
    Check one permission ("permission") or any of several ("permissions").
    """
    service = PermissionManagementService(db)
    if body.permission:
        allowed = await service.user_has_permission(user_id, body.permission)
    elif body.permissions:
        allowed = await service.user_has_any_permission(user_id, body.permissions)
    else:
        raise ValidationError("Provide 'permission' or 'permissions'")
    return PermissionCheckResponse(user_id=user_id, allowed=allowed)


@me_router.get("/permissions", response_model=CurrentPrincipalResponse)
async def get_my_permissions(
    principal: Principal = Depends(get_current_principal),
):
    """Permission snapshot of the caller. Any authenticated user."""
    return CurrentPrincipalResponse(
        user_id=principal.user_id,
        role_name=principal.role_name,
        permissions=sorted(principal.permissions),
        is_super_admin=principal.is_super_admin,
    )


@me_router.post("/ownership/{resource_type}", response_model=OwnershipCheckResponse)
async def check_my_ownership(
    resource_type: str,
    body: OwnershipCheckRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """
    Per-id ownership of resources, in request order.

    Used by clients to pre-filter bulk selections.
    """
    validate_bulk_ids(body.ids)
    results = await OwnershipService(db).check_bulk_ownership(
        principal, resource_type, body.action, body.ids
    )
    return OwnershipCheckResponse(resource_type=resource_type, action=body.action, results=results)
