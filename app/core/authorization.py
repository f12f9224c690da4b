"""
Authorization decision engine

Requirements are declared per route as plain values:
    requires(Permission.BLOGS_UPDATE) | requires_ownership("blogs", "update")

Each declared part is an independent grant path. A request is allowed when
any path allows it (all-of, any-of, ownership), never their intersection.
The super admin sentinel allows everything before any path is looked at.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Protocol, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError

from app.core.audit_log import (
    AuditEvent,
    AuditRecorder,
    STATUS_DENIED,
    STATUS_ERROR,
    STATUS_SUCCESS,
)
from app.core.exceptions import ForbiddenError
from app.core.permissions import SUPER_ADMIN_PERMISSION
from app.core.resources import get_resource_policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """Verified identity with its flattened permission set."""
    user_id: int
    permissions: FrozenSet[str] = frozenset()
    role_name: Optional[str] = None

    @property
    def is_super_admin(self) -> bool:
        return SUPER_ADMIN_PERMISSION in self.permissions

    def has(self, permission: str) -> bool:
        return permission in self.permissions


@dataclass(frozen=True)
class RequireAll:
    permissions: Tuple[str, ...]


@dataclass(frozen=True)
class RequireAny:
    permissions: Tuple[str, ...]


@dataclass(frozen=True)
class RequireOwnership:
    resource_type: str
    action: str = "update"


@dataclass(frozen=True)
class Requirement:
    """
    Declared requirement of one operation.

    Unset paths are not evaluated. A requirement with no path is public.
    """
    all_of: Optional[RequireAll] = None
    any_of: Optional[RequireAny] = None
    ownership: Optional[RequireOwnership] = None

    @property
    def is_public(self) -> bool:
        return self.all_of is None and self.any_of is None and self.ownership is None

    def __or__(self, other: "RequirementLike") -> "Requirement":
        other = as_requirement(other)
        if self.ownership and other.ownership and self.ownership != other.ownership:
            # One ownership path per requirement
            raise ValueError(
                f"Conflicting ownership requirements: {self.ownership} and {other.ownership}"
            )
        return Requirement(
            all_of=_merge(self.all_of, other.all_of, RequireAll),
            any_of=_merge(self.any_of, other.any_of, RequireAny),
            ownership=other.ownership or self.ownership,
        )


RequirementLike = Union[Requirement, RequireAll, RequireAny, RequireOwnership]

PUBLIC = Requirement()


def _merge(left, right, kind):
    if left is None:
        return right
    if right is None:
        return left
    return kind(tuple(dict.fromkeys(left.permissions + right.permissions)))


def as_requirement(value: RequirementLike) -> Requirement:
    if isinstance(value, Requirement):
        return value
    if isinstance(value, RequireAll):
        return Requirement(all_of=value)
    if isinstance(value, RequireAny):
        return Requirement(any_of=value)
    if isinstance(value, RequireOwnership):
        return Requirement(ownership=value)
    raise TypeError(f"Not an authorization requirement: {value!r}")


def requires(*permissions: str) -> Requirement:
    """All listed permissions must be held."""
    return Requirement(all_of=RequireAll(tuple(permissions)))


def requires_any(*permissions: str) -> Requirement:
    """Any one of the listed permissions is enough."""
    return Requirement(any_of=RequireAny(tuple(permissions)))


def requires_ownership(resource_type: str, action: str = "update") -> Requirement:
    """Caller must own the target resource (or hold the type's manage-all)."""
    return Requirement(ownership=RequireOwnership(resource_type, action))


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: str
    missing_permissions: Tuple[str, ...] = field(default_factory=tuple)
    error: bool = False


class OwnerResolver(Protocol):
    async def get_owner_id(self, resource_type: str, resource_id: int) -> Optional[int]:
        ...


class AuthorizationEngine:
    """
    Decides allow/deny for a principal against a declared requirement.

    Order:
    1. super admin sentinel -> allow
    2. public -> allow
    3. all-of satisfied -> allow
    4. any-of satisfied -> allow
    5. ownership: manage-all holder, or resolved owner == caller -> allow
    6. deny, listing required-but-missing permissions

    Store failures while resolving ownership deny the request. They are not
    retried.
    """

    def __init__(self, resolver: Optional[OwnerResolver] = None, recorder: Optional[AuditRecorder] = None):
        self.resolver = resolver
        self.recorder = recorder

    async def evaluate(
        self,
        principal: Principal,
        requirement: RequirementLike,
        resource_id: Optional[Union[int, str]] = None,
    ) -> AuthorizationDecision:
        requirement = as_requirement(requirement)

        if principal.is_super_admin:
            return AuthorizationDecision(True, "super_admin")

        if requirement.is_public:
            return AuthorizationDecision(True, "public")

        if requirement.all_of is not None and requirement.all_of.permissions:
            if all(principal.has(p) for p in requirement.all_of.permissions):
                return AuthorizationDecision(True, "all_of")

        if requirement.any_of is not None and requirement.any_of.permissions:
            if any(principal.has(p) for p in requirement.any_of.permissions):
                return AuthorizationDecision(True, "any_of")

        if requirement.ownership is not None:
            try:
                reason = await self._check_ownership(principal, requirement.ownership, resource_id)
            except SQLAlchemyError as e:
                logger.error(
                    f"Ownership lookup failed for user {principal.user_id} on "
                    f"{requirement.ownership.resource_type}/{resource_id}: {e}"
                )
                return AuthorizationDecision(
                    False, "error", self._missing(principal, requirement), error=True
                )
            if reason:
                return AuthorizationDecision(True, reason)

        return AuthorizationDecision(False, "denied", self._missing(principal, requirement))

    async def _check_ownership(
        self,
        principal: Principal,
        ownership: RequireOwnership,
        resource_id: Optional[Union[int, str]],
    ) -> Optional[str]:
        policy = get_resource_policy(ownership.resource_type)
        if policy is None:
            # Unknown resource type: no ownership possible
            return None

        if principal.has(policy.manage_all_permission):
            return "manage_all"

        if not policy.is_ownership_action(ownership.action):
            return None

        target_id = _coerce_id(resource_id)
        if target_id is None or self.resolver is None:
            return None

        owner_id = await self.resolver.get_owner_id(policy.resource_type, target_id)
        # Missing resource folds into deny
        if owner_id is not None and owner_id == principal.user_id:
            return "owner"
        return None

    @staticmethod
    def _missing(principal: Principal, requirement: Requirement) -> Tuple[str, ...]:
        required: List[str] = []
        if requirement.all_of is not None:
            required.extend(requirement.all_of.permissions)
        if requirement.any_of is not None:
            required.extend(requirement.any_of.permissions)
        if requirement.ownership is not None:
            policy = get_resource_policy(requirement.ownership.resource_type)
            if policy is not None:
                required.append(policy.manage_all_permission)
        return tuple(p for p in dict.fromkeys(required) if not principal.has(p))

    async def authorize(
        self,
        principal: Principal,
        requirement: RequirementLike,
        *,
        resource: str,
        action: str,
        resource_id: Optional[Union[int, str]] = None,
    ) -> AuthorizationDecision:
        """Evaluate and report the outcome to the audit recorder."""
        started = time.perf_counter()
        decision = await self.evaluate(principal, requirement, resource_id)

        if self.recorder is not None:
            if decision.error:
                status = STATUS_ERROR
            elif decision.allowed:
                status = STATUS_SUCCESS
            else:
                status = STATUS_DENIED
            self.recorder.record(AuditEvent(
                user_id=principal.user_id,
                action=action,
                resource=resource,
                resource_id=str(resource_id) if resource_id is not None else None,
                status=status,
                duration_ms=(time.perf_counter() - started) * 1000,
            ))

        return decision

    async def enforce(
        self,
        principal: Principal,
        requirement: RequirementLike,
        *,
        resource: str,
        action: str,
        resource_id: Optional[Union[int, str]] = None,
    ) -> AuthorizationDecision:
        """Like `authorize`, but raises ForbiddenError on deny."""
        decision = await self.authorize(
            principal, requirement, resource=resource, action=action, resource_id=resource_id
        )
        if not decision.allowed:
            logger.warning(
                f"User {principal.user_id} denied {action} on {resource}"
                f"{'/' + str(resource_id) if resource_id is not None else ''}"
            )
            raise ForbiddenError(
                "You do not have permission to perform this action",
                missing_permissions=list(decision.missing_permissions),
            )
        return decision


def _coerce_id(resource_id: Optional[Union[int, str]]) -> Optional[int]:
    if resource_id is None:
        return None
    try:
        return int(resource_id)
    except (TypeError, ValueError):
        return None
