"""
Prepared statement wrapper.

A Statement binds one compiled SQL statement to the shared aiosqlite
connection and exposes it as a reusable async unit with single-row fetch,
full iteration and mutation, each followed by an optional transform step.

Statements are single cursors: callers must await each call before issuing
the next one against the same instance.
"""

import sqlite3
from typing import Any, Callable, Generic, List, Optional, TypeVar

import aiosqlite

from ..core import (
    get_logger,
    ConstraintViolationError,
    DatabaseError,
    QueryError,
    StatementPreparationError,
    StatementReleasedError
)
from .models import RunResult

logger = get_logger(__name__)

R = TypeVar("R")


def _identity(value: Any) -> Any:
    return value


def _discard(_result: RunResult) -> None:
    return None


def bind_params(params: Any) -> Any:
    """
    Normalize statement parameters for sqlite3.

    Sequences and mappings pass through unchanged, None binds nothing and any
    other value is treated as the single positional parameter.
    """
    if params is None:
        return ()
    if isinstance(params, (tuple, list, dict)):
        return params
    return (params,)


def translate_error(error: sqlite3.Error, sql: str) -> DatabaseError:
    """Map an engine error onto the store's exception hierarchy."""
    if isinstance(error, sqlite3.IntegrityError):
        return ConstraintViolationError(f"Constraint violation: {error}", sql)
    return QueryError(f"Execution failed: {error}", sql)


class Statement(Generic[R]):
    """
    Reusable compiled statement bound to a connection.

    Use Statement.prepare() to construct one; it compiles the SQL once so that
    syntax and schema errors surface at preparation time rather than on first
    use.
    """

    def __init__(self, connection: aiosqlite.Connection, sql: str):
        self._connection = connection
        self.sql = sql

    @classmethod
    async def prepare(cls, connection: aiosqlite.Connection, sql: str) -> "Statement":
        """
        Compile a statement against the connection.

        The SQL is compiled through EXPLAIN, which validates it against the
        current schema without executing it. sqlite3 compiles before it checks
        bindings, so a binding-count complaint means compilation succeeded.

        Raises:
            StatementPreparationError: If the statement does not compile.
        """
        logger.debug(f"Preparing: {sql.strip()}")
        try:
            async with connection.execute(f"EXPLAIN {sql}"):
                pass
        except sqlite3.ProgrammingError as e:
            if "bindings" not in str(e):
                logger.error(f"Failed to prepare statement: {e}")
                raise StatementPreparationError(f"Failed to prepare statement: {e}", sql) from e
        except sqlite3.Error as e:
            logger.error(f"Failed to prepare statement: {e}")
            logger.error(f"Statement: {sql.strip()}")
            raise StatementPreparationError(f"Failed to prepare statement: {e}", sql) from e

        return cls(connection, sql)

    @property
    def released(self) -> bool:
        return self._connection is None

    def _check_released(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise StatementReleasedError(
                "Statement has been released",
                {"sql": self.sql}
            )
        return self._connection

    async def _execute(self, params: Any) -> aiosqlite.Cursor:
        connection = self._check_released()
        try:
            return await connection.execute(self.sql, bind_params(params))
        except sqlite3.Error as e:
            logger.error(f"Execution failed: {e}")
            logger.error(f"Statement: {self.sql.strip()}")
            raise translate_error(e, self.sql) from e

    async def get(
        self,
        params: Any = None,
        transform: Optional[Callable[[Optional[sqlite3.Row]], R]] = None
    ) -> Optional[R]:
        """
        Fetch at most one row.

        Args:
            params: Statement parameters.
            transform: Applied to the row, or to None when nothing matched.

        Returns:
            The transformed row.
        """
        transform = transform or _identity
        cursor = await self._execute(params)
        try:
            row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise translate_error(e, self.sql) from e
        finally:
            await cursor.close()

        return transform(row)

    async def all(
        self,
        params: Any = None,
        transform: Optional[Callable[[sqlite3.Row], R]] = None
    ) -> List[R]:
        """
        Fetch every matching row in retrieval order.

        A failure on any row, or in the transform, fails the whole call and no
        partial results are returned.
        """
        transform = transform or _identity
        cursor = await self._execute(params)
        try:
            return [transform(row) async for row in cursor]
        except sqlite3.Error as e:
            logger.error(f"Iteration failed: {e}")
            raise translate_error(e, self.sql) from e
        finally:
            await cursor.close()

    async def run(
        self,
        params: Any = None,
        transform: Optional[Callable[[RunResult], R]] = None
    ) -> Optional[R]:
        """
        Execute a mutating statement.

        Args:
            params: Statement parameters.
            transform: Applied to the RunResult; the default discards it.

        Returns:
            The transformed execution outcome.
        """
        transform = transform or _discard
        cursor = await self._execute(params)
        try:
            result = RunResult(changes=cursor.rowcount, last_row_id=cursor.lastrowid)
        finally:
            await cursor.close()

        return transform(result)

    async def release(self) -> None:
        """
        Release the statement.

        Raises:
            StatementReleasedError: If the statement was already released.
        """
        self._check_released()
        self._connection = None
        logger.debug(f"Released: {self.sql.strip()}")
