"""
Repository functions for the todos table.

Every function takes the connection pool as its first argument and runs a
single parameterized statement inside its own transaction. One deadline covers
both the wait for a pooled connection and the statement itself
(``DEFAULT_DB_TIMEOUT_SECONDS`` unless the caller passes one).
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator, List, Mapping, Optional

import psycopg2
from psycopg2.extensions import QueryCanceledError

from .db import COLS, RETURNING_COLUMNS, BlockingConnectionPool, PoolTimeoutError, transaction
from .logger import get_logger
from .models import TodoEntity
from .settings import DEFAULT_DB_TIMEOUT_SECONDS

logger = get_logger(__name__)

_INSERT_SQL = f"""
    INSERT INTO {COLS.table} ({COLS.title}, {COLS.completed})
    VALUES (%s, %s)
    RETURNING {RETURNING_COLUMNS}
"""

_SELECT_ALL_SQL = f"""
    SELECT {RETURNING_COLUMNS}
    FROM {COLS.table}
    ORDER BY {COLS.created_at} DESC, {COLS.id} DESC
"""

_SELECT_BY_ID_SQL = f"""
    SELECT {RETURNING_COLUMNS}
    FROM {COLS.table}
    WHERE {COLS.id} = %s
"""


class RepositoryError(Exception):
    """A store operation failed (query error, lost connection, timeout...)."""


class RepositoryTimeoutError(RepositoryError):
    """The database did not answer within the call timeout."""


class TodoNotFoundError(RepositoryError):
    """No todo exists with the requested id."""

    def __init__(self, todo_id: int) -> None:
        super().__init__(f"Todo {todo_id} not found")
        self.todo_id = todo_id


def _row_to_entity(row: Mapping[str, Any]) -> TodoEntity:
    return {
        "id": int(row[COLS.id]),
        "title": str(row[COLS.title]),
        "completed": bool(row[COLS.completed]),
        "created_at": row[COLS.created_at],
        "updated_at": row[COLS.updated_at],
    }


def _call_timeout(timeout: Optional[float]) -> float:
    if timeout is None:
        return DEFAULT_DB_TIMEOUT_SECONDS
    if timeout <= 0:
        raise ValueError(f"timeout must be positive, got {timeout}")
    return timeout


@contextmanager
def _store_errors(action: str) -> Generator[None, None, None]:
    """Translate driver errors into repository errors, logging them once."""
    try:
        yield
    except (QueryCanceledError, PoolTimeoutError) as e:
        logger.error(f"Timed out trying to {action}: {e}")
        raise RepositoryTimeoutError(f"Timed out trying to {action}") from e
    except psycopg2.Error as e:
        logger.error(f"Unable to {action}: {e}")
        raise RepositoryError(f"Unable to {action}") from e


# PUBLIC_INTERFACE
def create_todo(
    pool: BlockingConnectionPool,
    title: str,
    completed: bool = False,
    timeout: Optional[float] = None,
) -> TodoEntity:
    """
    Insert a todo and return the stored row, including the id and timestamps
    assigned by the database.
    """
    with _store_errors("create todo"):
        with transaction(pool, _call_timeout(timeout)) as cur:
            cur.execute(_INSERT_SQL, (title, completed))
            row = cur.fetchone()
    if row is None:
        raise RepositoryError("Unable to create todo: no row returned")
    return _row_to_entity(row)


# PUBLIC_INTERFACE
def get_all_todos(pool: BlockingConnectionPool, timeout: Optional[float] = None) -> List[TodoEntity]:
    """Return every todo, newest first. An empty table yields an empty list."""
    with _store_errors("get todos"):
        with transaction(pool, _call_timeout(timeout)) as cur:
            cur.execute(_SELECT_ALL_SQL)
            rows = cur.fetchall()
    return [_row_to_entity(r) for r in rows]


# PUBLIC_INTERFACE
def get_todo_by_id(
    pool: BlockingConnectionPool,
    todo_id: int,
    timeout: Optional[float] = None,
) -> TodoEntity:
    """
    Return the todo with the given id.

    Raises:
        TodoNotFoundError: no row has this id.
        RepositoryError: the lookup itself failed.
    """
    with _store_errors("get todo"):
        with transaction(pool, _call_timeout(timeout)) as cur:
            cur.execute(_SELECT_BY_ID_SQL, (todo_id,))
            row = cur.fetchone()
    if row is None:
        raise TodoNotFoundError(todo_id)
    return _row_to_entity(row)
