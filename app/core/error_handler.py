"""
Error handling and sanitization middleware

- Authorization errors -> structured JSON with their own status code
- Unhandled errors -> generic 500, full details only logged
"""
import logging
import traceback

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.exceptions import AuthzBaseError

logger = logging.getLogger(__name__)


async def authz_error_handler(request: Request, exc: AuthzBaseError) -> JSONResponse:
    """Render AuthzBaseError subclasses as {"error", "message", "details"}."""
    if exc.status_code >= 500:
        logger.error(f"{exc!r} on {request.method} {request.url.path}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """
    Catch unhandled exceptions and sanitize error responses.

    - In production: Returns generic error, logs full details
    - In development: Returns full error for debugging
    """

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except HTTPException:
            # Let FastAPI handle HTTPExceptions normally
            raise
        except Exception as e:
            error_id = f"{request.client.host if request.client else 'unknown'}-{id(e)}"
            logger.error(
                f"Unhandled exception [{error_id}]: {type(e).__name__}: {str(e)}\n"
                f"Path: {request.url.path}\n"
                f"Method: {request.method}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            if settings.DEBUG:
                return JSONResponse(
                    status_code=500,
                    content={
                        "error": "internal_error",
                        "message": str(e),
                        "type": type(e).__name__,
                        "error_id": error_id,
                    }
                )
            return JSONResponse(
                status_code=500,
                content={
                    "error": "internal_error",
                    "message": "An unexpected error occurred. Please try again later.",
                    "error_id": error_id,
                }
            )
