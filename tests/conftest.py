from typing import AsyncGenerator, Optional
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.models import Application, Base, User, UserRole
from app.db.session import get_async_session
from app.main import app
from app.schemas.storage_schemas import StoredFile
from app.services.actor import Actor
from app.services.minio_service import get_minio_service, validate_upload
from app.utils.auth import AuthUtils


# Test database setup
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_engine():
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def queued_emails():
    """Capture status emails instead of talking to the Celery broker."""
    with patch("app.services.email_service.send_email_task") as task:
        yield task.delay


# Test data factories
async def create_user(
    db_session: AsyncSession,
    email: str,
    role: UserRole,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    is_active: bool = True,
) -> User:
    user = User(
        email=email,
        role=role,
        first_name=first_name,
        last_name=last_name,
        is_active=is_active,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role)


@pytest_asyncio.fixture
async def applicant(db_session: AsyncSession) -> User:
    return await create_user(
        db_session, "aziza@example.com", UserRole.APPLICANT, "Aziza", "Karimova"
    )


@pytest_asyncio.fixture
async def other_applicant(db_session: AsyncSession) -> User:
    return await create_user(
        db_session, "timur@example.com", UserRole.APPLICANT, "Timur", "Rashidov"
    )


@pytest_asyncio.fixture
async def admin_a(db_session: AsyncSession) -> User:
    return await create_user(
        db_session, "alisher@alxorazmiy.uz", UserRole.ADMIN, "Alisher", "Navoiy"
    )


@pytest_asyncio.fixture
async def admin_b(db_session: AsyncSession) -> User:
    return await create_user(
        db_session, "bobur@alxorazmiy.uz", UserRole.ADMIN, "Bobur", "Mirzo"
    )


@pytest_asyncio.fixture
async def superadmin(db_session: AsyncSession) -> User:
    return await create_user(db_session, "root@alxorazmiy.uz", UserRole.SUPERADMIN)


@pytest_asyncio.fixture
async def case(db_session: AsyncSession, applicant: User) -> Application:
    application = Application(
        user_id=applicant.id, surname="Karimova", given_name="Aziza"
    )
    db_session.add(application)
    await db_session.commit()
    await db_session.refresh(application)
    return application


@pytest_asyncio.fixture
async def other_case(db_session: AsyncSession, other_applicant: User) -> Application:
    application = Application(
        user_id=other_applicant.id, surname="Rashidov", given_name="Timur"
    )
    db_session.add(application)
    await db_session.commit()
    await db_session.refresh(application)
    return application


# API client
class FakeMinIOService:
    """Stores nothing; validates like the real service and returns the object path."""

    def __init__(self):
        self.stored = []

    async def store(self, file, doc_type: str, owner_id: str) -> StoredFile:
        data = await file.read()
        validate_upload(doc_type, file.content_type, len(data))
        stored = StoredFile(
            file_path=f"{owner_id}/{doc_type}_test{file.filename[-4:]}",
            file_name=file.filename,
            size=len(data),
            content_type=file.content_type,
        )
        self.stored.append(stored)
        return stored


@pytest.fixture
def fake_storage() -> FakeMinIOService:
    return FakeMinIOService()


@pytest_asyncio.fixture
async def client(session_factory, fake_storage) -> AsyncGenerator[AsyncClient, None]:
    async def override_session():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_minio_service] = lambda: fake_storage

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://testserver"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    token = AuthUtils.generate_session_token(user.id, user.email, user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def as_actor():
    return actor_for


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def make_user(db_session: AsyncSession):
    async def _make_user(email: str, role: UserRole, **kwargs) -> User:
        return await create_user(db_session, email, role, **kwargs)

    return _make_user
