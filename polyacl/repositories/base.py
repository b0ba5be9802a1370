"""
Base repository with common CRUD operations.
"""

from contextlib import asynccontextmanager
from typing import TypeVar, Generic, Type, Any, AsyncIterator, Iterable, Sequence
from sqlalchemy import Select, select, func, delete, insert
from sqlalchemy.ext.asyncio import AsyncSession

from polyacl.models.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """
    Base repository providing common CRUD operations.

    Usage:
        class RoleRepository(BaseRepository[Role]):
            model = Role

        repo = RoleRepository(db)
        role = await repo.get_by_id(role_id)

    The model may also be given per instance, which is how pluggable
    Permission/Role classes reach the repositories:

        repo = BaseRepository(db, model=CustomPermission)
    """

    model: Type[ModelT]

    def __init__(self, db: AsyncSession, model: Type[ModelT] | None = None):
        self.db = db
        if model is not None:
            self.model = model

    def _base_query(self) -> Select:
        """Base query - override to add default filters."""
        return select(self.model)

    async def get_by_id(self, id: Any) -> ModelT | None:
        """Get entity by ID."""
        stmt = self._base_query().where(self.model.id == id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_ids(self, ids: Iterable[Any]) -> list[ModelT]:
        """Get multiple entities by IDs, ordered by ID."""
        ids = list(ids)
        if not ids:
            return []
        stmt = (
            self._base_query()
            .where(self.model.id.in_(ids))
            .order_by(self.model.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_one(self, **filters) -> ModelT | None:
        """Get single entity by filters (None values match NULL)."""
        stmt = self._base_query().where(*self._conditions(filters))
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def exists(self, **filters) -> bool:
        """Check if entity exists."""
        return await self.count(**filters) > 0

    async def count(self, **filters) -> int:
        """Count entities matching filters."""
        stmt = select(func.count()).select_from(self.model).where(*self._conditions(filters))
        return await self.db.scalar(stmt) or 0

    async def all(self, *where: Any, **filters) -> list[ModelT]:
        """Get all entities matching clauses and filters, ordered by ID."""
        stmt = (
            self._base_query()
            .where(*where, *self._conditions(filters))
            .order_by(self.model.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create(self, **data) -> ModelT:
        """Create new entity."""
        entity = self.model(**data)
        self.db.add(entity)
        await self.db.flush()
        await self.db.refresh(entity)
        return entity

    async def insert_many(self, items: Sequence[dict[str, Any]]) -> int:
        """Insert many rows in a single statement. Returns rows sent."""
        if not items:
            return 0
        await self.db.execute(insert(self.model), list(items))
        return len(items)

    async def delete(self, id: Any) -> bool:
        """Delete entity by ID (hard delete)."""
        entity = await self.get_by_id(id)
        if not entity:
            return False
        await self.db.delete(entity)
        await self.db.flush()
        return True

    async def delete_where(self, *where: Any, **filters) -> int:
        """Delete every entity matching clauses and filters."""
        stmt = delete(self.model).where(*where, *self._conditions(filters))
        result = await self.db.execute(stmt)
        return result.rowcount

    def _conditions(self, filters: dict[str, Any]) -> list[Any]:
        conditions = []
        for field, value in filters.items():
            column = getattr(self.model, field)
            conditions.append(column.is_(None) if value is None else column == value)
        return conditions


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[None]:
    """
    Run a block inside one transaction.

    Inside the caller's transaction the block runs under a SAVEPOINT: a
    failure rolls back the block alone and re-raises, and the caller still
    owns the final commit/rollback. Otherwise a transaction is begun and
    committed on exit.
    """
    if db.in_transaction():
        async with db.begin_nested():
            yield
        return
    async with db.begin():
        yield
