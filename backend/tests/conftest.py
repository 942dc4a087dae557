import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from vencura import models  # noqa: F401
from vencura.config import Settings
from vencura.core.deps import build_services, get_services
from vencura.database import Base, get_db
from vencura.main import app

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_KEY_SECRET = "test-key-encryption-secret-0123456789abcdef"
TEST_RPC_URL = "https://sepolia.example.org/v3/test-project"


def make_settings(**overrides) -> Settings:
    values = {"KEY_ENCRYPTION_SECRET": TEST_KEY_SECRET}
    values.update(overrides)
    return Settings(**values)


async def create_user(session_factory, email: str = "owner@example.com") -> str:
    async with session_factory() as session:
        user = models.User(email=email, password_hash="not-used")
        session.add(user)
        await session.commit()
        return user.id


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def services(session_factory):
    svc = build_services(make_settings(), session_factory)
    yield svc
    await svc.aclose()


@pytest_asyncio.fixture
async def onchain_services(session_factory):
    svc = build_services(
        make_settings(CHAIN_MODE="sepolia", SEPOLIA_RPC_URL=TEST_RPC_URL),
        session_factory,
    )
    yield svc
    await svc.aclose()


@pytest_asyncio.fixture
async def client(session_factory, services):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_services] = lambda: services
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """File-backed database with a connection per session, so sessions really run concurrently."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'vencura.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def file_services(file_session_factory):
    svc = build_services(make_settings(), file_session_factory)
    yield svc
    await svc.aclose()
