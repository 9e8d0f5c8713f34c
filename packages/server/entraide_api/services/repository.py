"""
Thin typed wrapper over an async SQLAlchemy session.

Handles:
- Conditional (owner-scoped) updates and deletes, reporting affected rows
- Classification of integrity errors into unique / foreign-key violations
- Logging and translation of every other store failure into UpstreamFailure
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Optional, Type, TypeVar

import structlog
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

from entraide_api.core.errors import UpstreamFailure

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=SQLModel)

UNIQUE_VIOLATION = "unique"
FOREIGN_KEY_VIOLATION = "foreign_key"
OTHER_VIOLATION = "other"

_SQLSTATE_KINDS = {
    "23505": UNIQUE_VIOLATION,
    "23503": FOREIGN_KEY_VIOLATION,
}

_MESSAGE_MARKERS = (
    ("unique constraint failed", UNIQUE_VIOLATION),
    ("duplicate key", UNIQUE_VIOLATION),
    ("foreign key constraint failed", FOREIGN_KEY_VIOLATION),
    ("violates foreign key", FOREIGN_KEY_VIOLATION),
)


class StoreConstraintError(Exception):
    """An insert or update was rejected by a store constraint."""

    def __init__(self, kind: str, detail: str):
        super().__init__(detail)
        self.kind = kind


def classify_integrity_error(exc: IntegrityError) -> str:
    """Return ``unique``, ``foreign_key`` or ``other`` for a driver integrity error."""
    orig = getattr(exc, "orig", None)
    sqlstate = (
        getattr(orig, "sqlstate", None)
        or getattr(orig, "pgcode", None)
        or getattr(getattr(orig, "__cause__", None), "sqlstate", None)
    )
    if sqlstate in _SQLSTATE_KINDS:
        return _SQLSTATE_KINDS[sqlstate]

    text = str(orig if orig is not None else exc).lower()
    for marker, kind in _MESSAGE_MARKERS:
        if marker in text:
            return kind
    return OTHER_VIOLATION


class Repository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _guard(self, operation: str):
        try:
            yield
        except IntegrityError as exc:
            await self.session.rollback()
            kind = classify_integrity_error(exc)
            logger.info("store.constraint_violation", operation=operation, kind=kind)
            raise StoreConstraintError(kind, str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("store.failure", operation=operation, error=str(exc))
            raise UpstreamFailure(operation, cause=str(exc)) from exc

    # -- reads ---------------------------------------------------------------

    async def get(self, model: Type[ModelT], entity_id: Any, *, fresh: bool = False) -> Optional[ModelT]:
        async with self._guard(f"{model.__tablename__}_fetch"):
            return await self.session.get(model, entity_id, populate_existing=fresh)

    async def owner_of(self, model: Type[SQLModel], entity_id: Any, owner_field: str) -> Optional[Any]:
        """Owner id of a row, or None when the row does not exist."""
        column = getattr(model, owner_field)
        async with self._guard(f"{model.__tablename__}_fetch"):
            result = await self.session.execute(select(column).where(model.id == entity_id))
            return result.scalar_one_or_none()

    async def exists(self, model: Type[SQLModel], entity_id: Any) -> bool:
        async with self._guard(f"{model.__tablename__}_fetch"):
            result = await self.session.execute(select(model.id).where(model.id == entity_id))
            return result.first() is not None

    async def existing_ids(self, model: Type[SQLModel], ids: list[Any]) -> set[Any]:
        if not ids:
            return set()
        async with self._guard(f"{model.__tablename__}_fetch"):
            result = await self.session.execute(select(model.id).where(model.id.in_(ids)))
            return {row[0] for row in result.all()}

    async def all(self, stmt) -> list[Any]:
        async with self._guard("query"):
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

    async def rows(self, stmt) -> list[Any]:
        async with self._guard("query"):
            result = await self.session.execute(stmt)
            return list(result.all())

    # -- writes --------------------------------------------------------------

    async def insert(self, row: ModelT) -> ModelT:
        """Add and flush a row; constraint violations raise StoreConstraintError."""
        async with self._guard(f"{row.__tablename__}_insert"):
            self.session.add(row)
            await self.session.flush()
            await self.session.refresh(row)
        return row

    async def insert_each(self, rows: list[ModelT], *, skip_kind: str) -> list[ModelT]:
        """Insert rows one savepoint at a time, skipping those rejected with ``skip_kind``.

        Any other violation rolls back the whole session like ``insert``.
        """
        inserted: list[ModelT] = []
        for row in rows:
            operation = f"{row.__tablename__}_insert"
            try:
                async with self.session.begin_nested():
                    self.session.add(row)
                    await self.session.flush()
            except IntegrityError as exc:
                kind = classify_integrity_error(exc)
                if kind != skip_kind:
                    await self.session.rollback()
                    logger.info("store.constraint_violation", operation=operation, kind=kind)
                    raise StoreConstraintError(kind, str(exc.orig)) from exc
                logger.info("store.row_skipped", operation=operation, kind=kind)
                continue
            except SQLAlchemyError as exc:
                await self.session.rollback()
                logger.error("store.failure", operation=operation, error=str(exc))
                raise UpstreamFailure(operation, cause=str(exc)) from exc
            inserted.append(row)
        return inserted

    async def update_owned(
        self,
        model: Type[SQLModel],
        entity_id: Any,
        owner_field: str,
        owner_id: Any,
        values: dict[str, Any],
    ) -> int:
        """``UPDATE ... WHERE id = ? AND owner = ?``; returns the affected row count."""
        stmt = (
            update(model)
            .where(model.id == entity_id, getattr(model, owner_field) == owner_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._guard(f"{model.__tablename__}_update"):
            result = await self.session.execute(stmt)
        return result.rowcount

    async def delete_owned(self, model: Type[SQLModel], entity_id: Any, owner_field: str, owner_id: Any) -> int:
        stmt = (
            delete(model)
            .where(model.id == entity_id, getattr(model, owner_field) == owner_id)
            .execution_options(synchronize_session=False)
        )
        async with self._guard(f"{model.__tablename__}_delete"):
            result = await self.session.execute(stmt)
        return result.rowcount

    async def update_where(self, model: Type[SQLModel], values: dict[str, Any], *criteria) -> int:
        stmt = update(model).where(*criteria).values(**values).execution_options(synchronize_session=False)
        async with self._guard(f"{model.__tablename__}_update"):
            result = await self.session.execute(stmt)
        return result.rowcount

    async def delete_where(self, model: Type[SQLModel], *criteria) -> int:
        stmt = delete(model).where(*criteria).execution_options(synchronize_session=False)
        async with self._guard(f"{model.__tablename__}_delete"):
            result = await self.session.execute(stmt)
        return result.rowcount

    async def commit(self) -> None:
        async with self._guard("commit"):
            await self.session.commit()
