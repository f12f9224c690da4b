"""
CMS Authorization Service
FastAPI application entry point

- Resource-scoped RBAC with super admin bypass and ownership grants
- Rate limiting with SlowAPI
- Error sanitization middleware
- Audit trail of every authorization decision
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.api.routes import permissions, roles, users
from app.core.config import settings
from app.core.database import AsyncSessionLocal, engine
from app.core.error_handler import ErrorSanitizationMiddleware, authz_error_handler
from app.core.exceptions import AuthzBaseError
from app.core.rate_limit import limiter, rate_limit_exceeded_handler

# Import models to register them with SQLAlchemy
from app.models import Permission, Role, User, Blog, BlogComment, Media, Recruitment  # noqa: F401

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown hooks. Schema is managed by migrations, not here."""
    logger.info(f"{settings.APP_NAME} starting ({settings.ENVIRONMENT})")
    yield
    await engine.dispose()
    logger.info("Database engine disposed")


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    description="Permission catalog, role management and authorization decisions for the CMS.",
    version="1.0.0",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(AuthzBaseError, authz_error_handler)

# Catches unhandled exceptions
app.add_middleware(ErrorSanitizationMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(permissions.router, prefix="/api/permissions", tags=["Permissions"])
app.include_router(roles.router, prefix="/api/roles", tags=["Roles"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(users.me_router, prefix="/api/me", tags=["Current User"])


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check with a DB ping. Returns 503 if the database is unreachable."""
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except SQLAlchemyError as e:
        health_status["database"] = f"error: {type(e).__name__}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
