"""Task storage: one parameterized statement per operation."""

import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import delete, insert, select, text, update
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from tasks_api import schemas
from tasks_api.errors import StorageError
from tasks_api.models import tasks_table


_ID_PATTERN = re.compile(r"[+-]?[0-9]+")


def _coerce_id(task_id: int | str, failure_message: str) -> int:
    # A non-numeric id is a storage-level type mismatch, not a client error.
    # Only plain ASCII digits count: no padding, underscores or non-ASCII digits.
    if isinstance(task_id, int):
        return task_id
    if not isinstance(task_id, str) or not _ID_PATTERN.fullmatch(task_id):
        cause = ValueError(f"invalid task id: {task_id!r}")
        raise StorageError(failure_message, cause)
    return int(task_id)


def _to_task(row: Any) -> schemas.Task:
    return schemas.Task.model_validate(dict(row._mapping))


class TaskRepository:
    """Storage handle shared by all requests.

    Wraps the engine's connection pool; every call checks out one connection
    for the duration of a single statement and returns it on every exit path.
    Anything raised while talking to storage (driver errors, but also
    overflow or encoding errors from the DBAPI layer) is re-raised as
    :class:`StorageError`.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def _connection(self, failure_message: str) -> AsyncIterator[AsyncConnection]:
        try:
            async with self._engine.begin() as conn:
                yield conn
        except Exception as exc:
            raise StorageError(failure_message, exc) from exc

    async def list_tasks(self) -> list[schemas.Task]:
        stmt = select(tasks_table).order_by(tasks_table.c.id.asc())
        async with self._connection("Error fetching tasks") as conn:
            result = await conn.execute(stmt)
            return [_to_task(row) for row in result]

    async def get_task(self, task_id: int | str) -> schemas.Task | None:
        message = "Error fetching task"
        stmt = select(tasks_table).where(tasks_table.c.id == _coerce_id(task_id, message))
        async with self._connection(message) as conn:
            row = (await conn.execute(stmt)).first()
        return _to_task(row) if row is not None else None

    async def create_task(self, title: Any, description: Any) -> schemas.Task:
        stmt = (
            insert(tasks_table)
            .values(title=title, description=description)
            .returning(*tasks_table.c)
        )
        async with self._connection("Error creating task") as conn:
            row = (await conn.execute(stmt)).one()
        return _to_task(row)

    async def update_task(
        self,
        task_id: int | str,
        title: Any,
        description: Any,
        completed: Any,
    ) -> schemas.Task | None:
        message = "Error updating task"
        stmt = (
            update(tasks_table)
            .where(tasks_table.c.id == _coerce_id(task_id, message))
            .values(title=title, description=description, completed=completed)
            .returning(*tasks_table.c)
        )
        async with self._connection(message) as conn:
            row = (await conn.execute(stmt)).first()
        return _to_task(row) if row is not None else None

    async def delete_task(self, task_id: int | str) -> schemas.Task | None:
        message = "Error deleting task"
        stmt = (
            delete(tasks_table)
            .where(tasks_table.c.id == _coerce_id(task_id, message))
            .returning(*tasks_table.c)
        )
        async with self._connection(message) as conn:
            row = (await conn.execute(stmt)).first()
        return _to_task(row) if row is not None else None

    async def ping(self) -> None:
        async with self._connection("Database unavailable") as conn:
            await conn.execute(text("SELECT 1"))
