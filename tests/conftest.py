"""
Pytest configuration and fixtures for authorization tests.
"""
import os
from typing import AsyncGenerator, Dict, Iterable, Optional

import pytest

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-only"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import Base, enable_sqlite_savepoints, get_db
from app.core.security import create_access_token
from app.models import Blog, Permission, Role, User
from app.services.permission_service import PermissionService


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(test_engine)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def catalog(db) -> Dict[str, Permission]:
    """Synced permission catalog, keyed by name."""
    await PermissionService(db).sync_permissions()
    result = await db.execute(select(Permission))
    permissions = {p.name: p for p in result.scalars().all()}
    # Tests share one connection; leave no transaction open
    await db.commit()
    return permissions


@pytest.fixture
def make_role(db, catalog):
    async def _make_role(name: str, permissions: Iterable[str] = ()) -> Role:
        role = Role(name=name, permissions=[catalog[p] for p in permissions])
        db.add(role)
        await db.commit()
        return role
    return _make_role


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make_user(role: Optional[Role] = None, **kwargs) -> User:
        counter["n"] += 1
        user = User(
            email=kwargs.pop("email", f"user{counter['n']}@example.com"),
            name=kwargs.pop("name", f"User {counter['n']}"),
            role_id=role.id if role else None,
            **kwargs,
        )
        db.add(user)
        await db.commit()
        return user
    return _make_user


@pytest.fixture
def make_blog(db):
    async def _make_blog(author: Optional[User]) -> Blog:
        blog = Blog(title="Post", author_id=author.id if author else None)
        db.add(blog)
        await db.commit()
        return blog
    return _make_blog


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """API client bound to the test database."""
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}
    return _auth_headers
