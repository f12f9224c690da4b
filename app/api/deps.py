"""
API dependencies

Identity is resolved from the bearer token on every request and the
permission snapshot is reloaded from the store each time.
"""
import logging
import time
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit_log import (
    STATUS_DENIED,
    STATUS_ERROR,
    AuditEvent,
    action_for_method,
    audit_recorder,
)
from app.core.authorization import (
    AuthorizationEngine,
    Principal,
    RequirementLike,
    as_requirement,
)
from app.core.database import get_db
from app.core.exceptions import ForbiddenError, UnauthenticatedError, UserNotFoundError
from app.core.security import get_token_user_id
from app.services.ownership_service import OwnershipService
from app.services.permission_management_service import PermissionManagementService

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Principal:
    """
    Get the authenticated principal.

    Invalid token or unknown user -> 401. A store failure while loading the
    permission snapshot denies the request without retrying. Rejections
    here are audited like engine decisions.
    """
    started = time.perf_counter()

    if not credentials:
        _record_rejection(request, STATUS_DENIED, started)
        raise UnauthenticatedError("Not authenticated")

    user_id = get_token_user_id(credentials.credentials)
    if user_id is None:
        _record_rejection(request, STATUS_DENIED, started)
        raise UnauthenticatedError("Invalid or expired token")

    try:
        return await PermissionManagementService(db).load_principal(user_id)
    except UserNotFoundError:
        _record_rejection(request, STATUS_DENIED, started)
        raise UnauthenticatedError("User not found")
    except UnauthenticatedError:
        _record_rejection(request, STATUS_DENIED, started, user_id=user_id)
        raise
    except SQLAlchemyError as e:
        logger.error(f"Failed to load permissions for user {user_id}: {e}")
        _record_rejection(request, STATUS_ERROR, started, user_id=user_id)
        raise ForbiddenError("Unable to verify permissions")


async def get_authorization_engine(db: AsyncSession = Depends(get_db)) -> AuthorizationEngine:
    return AuthorizationEngine(resolver=OwnershipService(db), recorder=audit_recorder)


def _path_resource(request: Request) -> str:
    segments = [s for s in request.url.path.split("/") if s and s != "api"]
    return segments[0] if segments else "root"


def _record_rejection(
    request: Request,
    status: str,
    started: float,
    user_id: Optional[int] = None,
) -> None:
    audit_recorder.record(AuditEvent(
        user_id=user_id,
        action=action_for_method(request.method),
        resource=_path_resource(request),
        status=status,
        duration_ms=(time.perf_counter() - started) * 1000,
    ))


def _resource_name(requirement, request: Request) -> str:
    if requirement.ownership is not None:
        return requirement.ownership.resource_type
    for path in (requirement.all_of, requirement.any_of):
        if path is not None and path.permissions:
            return path.permissions[0].split(":", 1)[0]
    return _path_resource(request)


def authorize(requirement: RequirementLike, action: Optional[str] = None, id_param: str = "id"):
    """
    Dependency factory declaring a route's authorization requirement.

    Usage:
        @router.patch("/blogs/{id}")
        async def update_blog(
            principal: Principal = Depends(authorize(
                requires(Permission.BLOGS_UPDATE) | requires_ownership("blogs", "update")
            ))
        ):
            ...

    The resource id for ownership checks is read from the `id_param` path
    parameter. Every decision is reported to the audit recorder.
    """
    requirement = as_requirement(requirement)

    async def authorization_checker(
        request: Request,
        principal: Principal = Depends(get_current_principal),
        engine: AuthorizationEngine = Depends(get_authorization_engine),
    ) -> Principal:
        await engine.enforce(
            principal,
            requirement,
            resource=_resource_name(requirement, request),
            action=action or action_for_method(request.method),
            resource_id=request.path_params.get(id_param),
        )
        return principal

    return authorization_checker
