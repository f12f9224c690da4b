"""
Authorization Exception Hierarchy

Structured exception classes for the permission store and the authorization
decision path. All exceptions include code, message, and details so they can be
rendered to API clients and written to the audit trail.

Exception Hierarchy:
    AuthzBaseError
    ├── UnauthenticatedError
    ├── ForbiddenError
    ├── NotFoundError
    │   ├── PermissionNotFoundError
    │   ├── RoleNotFoundError
    │   └── UserNotFoundError
    ├── ConflictError
    └── ValidationError
"""
from typing import Optional, Dict, Any, List


class AuthzBaseError(Exception):
    """
    Base exception for all authorization subsystem errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging/audit
        status_code: HTTP status used when the error reaches a client
    """

    default_code: str = "AUTHZ_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class UnauthenticatedError(AuthzBaseError):
    """No verifiable identity is attached to the request."""
    default_code = "UNAUTHENTICATED"
    status_code = 401


class ForbiddenError(AuthzBaseError):
    """
    Identity resolved but access was denied.

    Only the permissions that were required and missing are exposed; whether
    the ownership path was the blocking one is never reported.
    """
    default_code = "FORBIDDEN"
    status_code = 403

    def __init__(
        self,
        message: str = "Access denied",
        missing_permissions: Optional[List[str]] = None,
        **kwargs
    ):
        self.missing_permissions = list(missing_permissions or [])
        details = kwargs.pop("details", {})
        if self.missing_permissions:
            details["missing_permissions"] = self.missing_permissions
        super().__init__(message, details=details, **kwargs)


class NotFoundError(AuthzBaseError):
    """Requested permission, role or user does not exist."""
    default_code = "NOT_FOUND"
    status_code = 404


class PermissionNotFoundError(NotFoundError):
    default_code = "PERMISSION_NOT_FOUND"


class RoleNotFoundError(NotFoundError):
    default_code = "ROLE_NOT_FOUND"


class UserNotFoundError(NotFoundError):
    default_code = "USER_NOT_FOUND"


class ConflictError(AuthzBaseError):
    """Duplicate name, or an operation blocked by existing references."""
    default_code = "CONFLICT"
    status_code = 409


class ValidationError(AuthzBaseError):
    """Malformed input rejected before any store mutation."""
    default_code = "VALIDATION_ERROR"
    status_code = 400
