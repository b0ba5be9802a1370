"""
Pytest fixtures for testing.

Provides:
- Async database session on a fresh in-memory schema per test
- A test resource model (Article)
- Factory fixtures for users, roles, permissions and articles
- A statement counter for query-shape assertions
"""

from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from polyacl.models import Base, Permission, Role, User
from polyacl.models.database import configure_sqlite
from polyacl.services import PermissionCatalog, RoleCatalog

from sample_app import Article


# Test database URL (SQLite in-memory for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create database session with automatic rollback.

    Each test gets a fresh schema; pending work is rolled back after.
    """
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


class StatementCounter:
    """Counts SQL statements sent to the database, transaction control excluded."""

    CONTROL = ("BEGIN", "SAVEPOINT", "RELEASE", "ROLLBACK", "COMMIT")

    def __init__(self):
        self.count = 0

    def __call__(self, conn, cursor, statement, parameters, context, executemany):
        if not statement.lstrip().upper().startswith(self.CONTROL):
            self.count += 1

    def reset(self) -> None:
        self.count = 0


@pytest.fixture
def statements(db_engine) -> StatementCounter:
    """Statement counter attached to the test engine."""
    counter = StatementCounter()
    event.listen(db_engine.sync_engine, "before_cursor_execute", counter)
    yield counter
    event.remove(db_engine.sync_engine, "before_cursor_execute", counter)


# ============ Factory Fixtures ============


class UserFactory:
    """Factory for creating test users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, name: str = "Test User", email: str | None = None) -> User:
        """Create a user in the database."""
        email = email or f"test-{uuid4().hex[:8]}@example.com"
        user = User(email=email, name=name)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def create_many(self, count: int) -> list[User]:
        users = [
            User(email=f"user-{i}-{uuid4().hex[:6]}@example.com", name=f"User {i}")
            for i in range(count)
        ]
        self.db.add_all(users)
        await self.db.commit()
        return users


class ArticleFactory:
    """Factory for creating test articles."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, title: str = "Article", id: int | None = None) -> Article:
        article = Article(title=title) if id is None else Article(id=id, title=title)
        self.db.add(article)
        await self.db.commit()
        await self.db.refresh(article)
        return article


@pytest_asyncio.fixture
async def user_factory(db: AsyncSession) -> UserFactory:
    """Fixture that provides UserFactory."""
    return UserFactory(db)


@pytest_asyncio.fixture
async def article_factory(db: AsyncSession) -> ArticleFactory:
    """Fixture that provides ArticleFactory."""
    return ArticleFactory(db)


@pytest_asyncio.fixture
async def alice(user_factory: UserFactory) -> User:
    return await user_factory.create(name="Alice", email="alice@example.com")


@pytest_asyncio.fixture
async def bob(user_factory: UserFactory) -> User:
    return await user_factory.create(name="Bob", email="bob@example.com")


@pytest_asyncio.fixture
async def editor(db: AsyncSession) -> Role:
    """An 'editor' role."""
    return await RoleCatalog(db).create("editor", "Edits articles")


@pytest_asyncio.fixture
async def permissions(db: AsyncSession) -> list[Permission]:
    """A handful of global permissions."""
    return await PermissionCatalog(db).create_many(
        ["post.create", "post.update", "post.delete", "post.publish"]
    )


@pytest_asyncio.fixture
async def roles(db: AsyncSession) -> list[Role]:
    """Ten roles named role-0 ... role-9."""
    return await RoleCatalog(db).create_many([f"role-{i}" for i in range(10)])
