"""
Polymorphic association store.

Pure storage: batch primitives over the two join tables, no business
rules. Every predicate is a SQLAlchemy clause built with the helpers
below, so callers never touch column names directly.

Usage:
    store = SubjectPermissionStore(db)
    await store.insert_many([
        {"subject_type": "Role", "subject_id": "1", "permission_id": 7},
    ])
    n = await store.count_where(store.owned_by([("Role", "1")]))
"""

from collections import defaultdict
from typing import Any, Iterable, Sequence

from sqlalchemy import and_, delete, false, func, insert, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from polyacl.models.associations import HolderRole, SubjectPermission

OwnerKey = tuple[str, str]


class AssociationStore:
    """
    Batch primitives over one polymorphic join table.

    Subclasses name the table and its owner/target columns.
    """

    model: type[SubjectPermission] | type[HolderRole]
    owner_type_column: str
    owner_id_column: str
    target_column: str

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============================================================
    # PREDICATES
    # ============================================================

    def owned_by(self, owners: Iterable[OwnerKey]) -> Any:
        """Rows belonging to any of the given (type, id) owners."""
        by_type: dict[str, set[str]] = defaultdict(set)
        for owner_type, owner_id in owners:
            by_type[owner_type].add(owner_id)
        if not by_type:
            return false()

        type_col = getattr(self.model, self.owner_type_column)
        id_col = getattr(self.model, self.owner_id_column)
        return or_(*[
            and_(type_col == owner_type, id_col.in_(sorted(ids)))
            for owner_type, ids in by_type.items()
        ])

    def targeting(self, target_ids: Iterable[int]) -> Any:
        """Rows pointing at any of the given permission/role ids."""
        target_ids = list(target_ids)
        if not target_ids:
            return false()
        return getattr(self.model, self.target_column).in_(target_ids)

    # ============================================================
    # PRIMITIVES
    # ============================================================

    async def insert_many(self, rows: Sequence[dict[str, Any]]) -> int:
        """Insert rows in a single statement. Returns rows sent."""
        if not rows:
            return 0
        await self.db.execute(insert(self.model), list(rows))
        return len(rows)

    async def delete_where(self, *where: Any) -> int:
        """Delete rows matching all predicates. Returns rows deleted."""
        result = await self.db.execute(delete(self.model).where(*where))
        return result.rowcount

    async def query_where(self, *where: Any) -> list[Any]:
        """Fetch rows matching all predicates."""
        stmt = select(self.model).where(*where)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def target_ids_where(self, *where: Any) -> list[int]:
        """Fetch distinct target ids of the rows matching all predicates."""
        column = getattr(self.model, self.target_column)
        stmt = select(column).where(*where).distinct().order_by(column)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_where(self, *where: Any, distinct_targets: bool = False) -> int:
        """Count rows (or distinct targets) matching all predicates."""
        if distinct_targets:
            column = getattr(self.model, self.target_column)
            stmt = select(func.count(func.distinct(column)))
        else:
            stmt = select(func.count()).select_from(self.model)
        return await self.db.scalar(stmt.where(*where)) or 0

    async def exists_where(self, *where: Any) -> bool:
        """Check whether any row matches all predicates."""
        stmt = select(select(self.model).where(*where).exists())
        return bool(await self.db.scalar(stmt))

    async def existing_keys(self, rows: Sequence[dict[str, Any]]) -> set[tuple[str, str, int]]:
        """Return the (type, id, target) keys of ``rows`` already stored."""
        if not rows:
            return set()
        owners = {(r[self.owner_type_column], r[self.owner_id_column]) for r in rows}
        targets = {r[self.target_column] for r in rows}
        columns = (
            getattr(self.model, self.owner_type_column),
            getattr(self.model, self.owner_id_column),
            getattr(self.model, self.target_column),
        )
        stmt = select(*columns).where(self.owned_by(owners), self.targeting(targets))
        result = await self.db.execute(stmt)
        return {tuple(row) for row in result.all()}

    def key_of(self, row: dict[str, Any]) -> tuple[str, str, int]:
        return (
            row[self.owner_type_column],
            row[self.owner_id_column],
            row[self.target_column],
        )

    def row(self, owner: OwnerKey, target_id: int) -> dict[str, Any]:
        """Build one insertable row."""
        return {
            self.owner_type_column: owner[0],
            self.owner_id_column: owner[1],
            self.target_column: target_id,
        }


class SubjectPermissionStore(AssociationStore):
    """(subject_type, subject_id) <-> permission."""

    model = SubjectPermission
    owner_type_column = "subject_type"
    owner_id_column = "subject_id"
    target_column = "permission_id"


class HolderRoleStore(AssociationStore):
    """(holder_type, holder_id) <-> role."""

    model = HolderRole
    owner_type_column = "holder_type"
    owner_id_column = "holder_id"
    target_column = "role_id"
