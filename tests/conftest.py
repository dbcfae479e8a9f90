import os
from datetime import date
from typing import AsyncGenerator, Awaitable, Callable, Dict

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from school_admin.api.v1.students.schemas import StudentCreate, StudentResponse
from school_admin.api.v1.students.service import create_student
from school_admin.auth.models import User
from school_admin.auth.security import build_token_claims, create_access_token, hash_password
from school_admin.core.enums import UserRole
from school_admin.db.init_db import create_tables
from school_admin.db.session import Base, get_db
from school_admin.main import app

TEST_DATABASE_URL = "sqlite+aiosqlite://"
TEST_PASSWORD = "secret123"


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """One in-memory SQLite database per test; StaticPool keeps every session on the same connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(engine)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(subject=build_token_claims(user.id, user.role))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    async def _make_user(
        role: UserRole = UserRole.TEACHER,
        email: str = None,
        password: str = TEST_PASSWORD,
        is_active: bool = True,
    ) -> User:
        user = User(
            username=f"{role.value}_user",
            email=email or f"{role.value}@school.edu",
            password_hash=hash_password(password),
            role=role.value,
            full_name=f"Test {role.value}",
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
async def admin_user(make_user) -> User:
    return await make_user(UserRole.ADMIN)


@pytest.fixture()
def admin_headers(admin_user: User) -> Dict[str, str]:
    return auth_headers(admin_user)


@pytest.fixture()
async def teacher_headers(make_user) -> Dict[str, str]:
    return auth_headers(await make_user(UserRole.TEACHER))


@pytest.fixture()
async def accountant_headers(make_user) -> Dict[str, str]:
    return auth_headers(await make_user(UserRole.ACCOUNTANT))


@pytest.fixture()
def student_payload() -> Callable[..., Dict]:
    """camelCase request body for POST /students."""

    def _payload(**overrides) -> Dict:
        body = {
            "firstName": "Emma",
            "lastName": "Smith",
            "dateOfBirth": "2014-05-10",
            "gender": "Female",
            "class": "5",
            "section": "A",
            "parentName": "Mr. & Mrs. Smith",
            "parentPhone": "8123456789",
        }
        body.update(overrides)
        return body

    return _payload


@pytest.fixture()
def make_student(db_session: AsyncSession) -> Callable[..., Awaitable[StudentResponse]]:
    async def _make_student(today: date = None, **fields) -> StudentResponse:
        data = {
            "first_name": "Noah",
            "last_name": "Johnson",
            "date_of_birth": date(2013, 3, 2),
            "gender": "Male",
            "class_name": "6",
            "section": "B",
            "parent_name": "Mr. Johnson",
            "parent_phone": "8000000001",
        }
        data.update(fields)
        return await create_student(db_session, StudentCreate(**data), today=today)

    return _make_student
