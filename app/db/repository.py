"""
Generic, model-agnostic persistence operations.

A ``Repository`` wraps one model plus an optional *scope* — the criteria
every normal lookup must satisfy (exclude inactive users, secret tours…).
Scopes are passed in explicitly by the caller; models carry no query hooks.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class Repository(Generic[ModelT]):
    def __init__(
        self,
        model: type[ModelT],
        *,
        scope: Sequence[ColumnElement[bool]] = (),
    ) -> None:
        self.model = model
        self.scope = tuple(scope)

    def select(self) -> Select[Any]:
        stmt = select(self.model)
        if self.scope:
            stmt = stmt.where(*self.scope)
        return stmt

    # ── Reads ───────────────────────────────────────────────────────
    async def get(
        self,
        db: AsyncSession,
        record_id: int,
        *,
        expand: Iterable[str] = (),
    ) -> ModelT | None:
        stmt = self.select().where(self.model.id == record_id)  # type: ignore[attr-defined]
        options = [selectinload(getattr(self.model, name)) for name in expand]
        if options:
            stmt = stmt.options(*options)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_one(self, db: AsyncSession, *criteria: ColumnElement[bool]) -> ModelT | None:
        result = await db.execute(self.select().where(*criteria).limit(1))
        return result.scalar_one_or_none()

    async def find_many(self, db: AsyncSession, statement: Select[Any]) -> list[dict[str, Any]]:
        """Execute a column-level statement (see ``QueryFeatures``) into plain dicts."""
        result = await db.execute(statement)
        return [dict(row) for row in result.mappings().all()]

    # ── Writes ──────────────────────────────────────────────────────
    async def create(self, db: AsyncSession, data: Mapping[str, Any]) -> ModelT:
        record = self.model(**data)
        db.add(record)
        await db.commit()
        await db.refresh(record)
        return record

    async def update(
        self,
        db: AsyncSession,
        record_id: int,
        data: Mapping[str, Any],
        *,
        validate: Callable[[ModelT], None] | None = None,
    ) -> ModelT | None:
        """Apply *data* and commit. *validate* sees the merged record first and may raise."""
        record = await self.get(db, record_id)
        if record is None:
            return None
        for field, value in data.items():
            setattr(record, field, value)
        if validate is not None:
            try:
                validate(record)
            except Exception:
                await db.rollback()
                raise
        await db.commit()
        await db.refresh(record)
        return record

    async def delete(
        self,
        db: AsyncSession,
        record_id: int,
        *,
        soft_delete: str | None = None,
    ) -> bool:
        """Delete a record, or flip its *soft_delete* flag to ``False``."""
        record = await self.get(db, record_id)
        if record is None:
            return False
        if soft_delete:
            setattr(record, soft_delete, False)
        else:
            await db.delete(record)
        await db.commit()
        return True
