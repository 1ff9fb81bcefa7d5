"""
SQLite connection management for the loco store.

The Database class owns the single aiosqlite connection, bootstraps the
key-value table, negotiates the schema version on open, and keeps a registry
of the repositories and views opened against it so they can be released
before the handle is closed.
"""

import asyncio
import json
import sqlite3
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type, TypeVar, Union

import aiosqlite

from ..core import (
    get_config,
    get_logger,
    Config,
    DatabaseClosedError,
    DatabaseError,
    DatabaseIOError,
    SchemaError,
    SchemaVersionError,
    ValueDecodeError
)
from .models import RunResult
from .schema import (
    KV_TABLE,
    SCHEMA_VERSION,
    SCHEMA_VERSION_KEY,
    get_migrations,
    migration_script
)
from .statement import Statement, bind_params, translate_error

logger = get_logger(__name__)

MEMORY_PATH = ":memory:"

KeyValue = Union[str, int, float, bool]
RepositoryT = TypeVar("RepositoryT")


class Database:
    """
    Single-connection document store.

    Use Database.open() to construct one. Every public operation is a
    coroutine; a closed Database rejects all further calls with
    DatabaseClosedError.
    """

    def __init__(self, connection: aiosqlite.Connection, path: str, config: Config):
        self._connection = connection
        self.path = path
        self.config = config
        self._schema_version: Optional[int] = None
        self._closed = False

        self._repositories: Dict[str, Any] = {}
        self._views: Dict[str, Any] = {}
        self._view_statements = None
        self._pending: Dict[Tuple[str, str], asyncio.Task] = {}
        # Release order for close(), in registration order
        self._resources: List[Any] = []

    @classmethod
    async def open(cls, path: Union[str, Path] = None, config: Config = None) -> "Database":
        """
        Open a store and resolve its schema version.

        Args:
            path: Database file path or ":memory:". Defaults to the configured
                  database path.
            config: Settings to use. Defaults to the global config when no
                    path is given, built-in defaults otherwise.

        Returns:
            Open Database at SCHEMA_VERSION.

        Raises:
            DatabaseIOError: If the path cannot be opened.
            SchemaVersionError: If the store was written by a newer schema.
        """
        if config is None:
            config = get_config() if path is None else Config.defaults()
        if path is None:
            path = config.paths.database_path
        path = str(path)

        logger.debug(f"Opening database {path}...")
        try:
            connection = await aiosqlite.connect(
                path,
                isolation_level=None,
                timeout=config.database.busy_timeout_ms / 1000
            )
        except sqlite3.Error as e:
            logger.error(f"Failed to open {path}: {e}")
            raise DatabaseIOError(f"Failed to open database: {e}", path) from e

        db = cls(connection, path, config)
        try:
            await db._init()
        except BaseException:
            db._closed = True
            await connection.close()
            raise

        logger.debug(f"Database opened with schema {db.schema_version}")
        return db

    async def _init(self) -> None:
        self._connection.row_factory = aiosqlite.Row

        db_config = self.config.database
        if db_config.foreign_keys:
            await self.exec("PRAGMA foreign_keys = ON")
        if self.path != MEMORY_PATH:
            await self.exec(f"PRAGMA journal_mode = {db_config.journal_mode}")

        # The key-value table must exist before any schema script runs
        await self.exec(KV_TABLE)

        stored = await self._stored_schema_version()
        if stored is None:
            logger.info(f"Initialising new database at schema {SCHEMA_VERSION}")
            await self._migrate(0)
        elif stored > SCHEMA_VERSION:
            logger.error(f"Database schema {stored} is newer than supported {SCHEMA_VERSION}")
            raise SchemaVersionError(stored, SCHEMA_VERSION)
        elif stored < SCHEMA_VERSION:
            logger.info(f"Upgrading database from schema {stored} to {SCHEMA_VERSION}")
            await self._migrate(stored)
        else:
            logger.debug(f"Reopening database with schema {stored}")

        self._schema_version = await self._stored_schema_version()

    async def _stored_schema_version(self) -> Optional[int]:
        """Read the recorded schema version, None for a store that has none."""
        row = await self.get("SELECT value FROM _kv_store WHERE key = ?", (SCHEMA_VERSION_KEY,))
        if row is None:
            return None

        try:
            stored = json.loads(row["value"])
        except (ValueError, TypeError) as e:
            logger.error(f"Unreadable schema version {row['value']!r}: {e}")
            raise SchemaError("Unreadable schema version", {"value": row["value"]}) from e

        if isinstance(stored, bool) or not isinstance(stored, int):
            logger.error(f"Invalid schema version: {stored!r}")
            raise SchemaError(f"Invalid schema version: {stored!r}", {"value": stored})
        return stored

    async def _migrate(self, from_version: int) -> None:
        for version, script in get_migrations(from_version, self.config.search.tokenizer):
            logger.info(f"Running schema script {version}...")
            try:
                await self._connection.executescript(migration_script(version, script))
            except sqlite3.Error as e:
                if self._connection.in_transaction:
                    await self._connection.rollback()
                logger.error(f"Schema script {version} failed: {e}")
                raise translate_error(e, script) from e

    @property
    def schema_version(self) -> Optional[int]:
        return self._schema_version

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def connection(self) -> aiosqlite.Connection:
        """The underlying aiosqlite connection."""
        self._check_open()
        return self._connection

    def _check_open(self) -> None:
        if self._closed:
            raise DatabaseClosedError()

    async def close(self) -> None:
        """
        Release every registered repository and view, then close the handle.

        Raises:
            DatabaseClosedError: If the database is already closed.
        """
        if self._closed:
            raise DatabaseClosedError("Database is already closed")
        self._closed = True

        if self._pending:
            await asyncio.gather(*self._pending.values(), return_exceptions=True)

        release_error: Optional[BaseException] = None
        for resource in self._resources:
            try:
                await resource.release()
            except DatabaseError as e:
                logger.error(f"Failed to release {resource!r}: {e}")
                release_error = release_error or e
        self._resources.clear()
        self._repositories.clear()
        self._views.clear()

        if self._view_statements is not None:
            await self._view_statements.release()
            self._view_statements = None

        await self._connection.close()
        logger.debug(f"Database {self.path} closed")

        if release_error is not None:
            raise release_error

    async def exec(self, sql: str) -> None:
        """Execute one or more statements without parameters."""
        self._check_open()
        logger.debug(f"Directly executing: {sql.strip()}")
        try:
            await self._connection.executescript(sql)
        except sqlite3.Error as e:
            logger.error(f"Execution failed: {e}")
            logger.error(f"Statement: {sql.strip()}")
            raise translate_error(e, sql) from e

    async def _execute(self, sql: str, params: Any) -> aiosqlite.Cursor:
        self._check_open()
        logger.debug(f"Directly running: {sql.strip()}")
        try:
            return await self._connection.execute(sql, bind_params(params))
        except sqlite3.Error as e:
            logger.error(f"Execution failed: {e}")
            logger.error(f"Statement: {sql.strip()}")
            raise translate_error(e, sql) from e

    async def run(self, sql: str, params: Any = None) -> RunResult:
        """Execute a single mutating statement."""
        cursor = await self._execute(sql, params)
        try:
            return RunResult(changes=cursor.rowcount, last_row_id=cursor.lastrowid)
        finally:
            await cursor.close()

    async def get(self, sql: str, params: Any = None) -> Optional[dict]:
        """Fetch the first row of a query as a dict, or None."""
        cursor = await self._execute(sql, params)
        try:
            row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise translate_error(e, sql) from e
        finally:
            await cursor.close()
        return dict(row) if row is not None else None

    async def all(self, sql: str, params: Any = None) -> List[dict]:
        """Fetch every row of a query as dicts."""
        cursor = await self._execute(sql, params)
        try:
            return [dict(row) for row in await cursor.fetchall()]
        except sqlite3.Error as e:
            raise translate_error(e, sql) from e
        finally:
            await cursor.close()

    async def prepare(self, sql: str) -> Statement:
        """Compile a reusable statement against this connection."""
        self._check_open()
        return await Statement.prepare(self._connection, sql)

    async def set_value(self, key: str, value: KeyValue) -> None:
        """
        Insert or update a key-value entry.

        Values are stored JSON-encoded so their type survives the round trip.
        """
        if not isinstance(value, (str, int, float, bool)):
            raise TypeError(f"Unsupported value type: {type(value).__name__}")

        await self.run(
            """
            INSERT INTO _kv_store (key, value) VALUES (:key, :value)
            ON CONFLICT (key) DO UPDATE SET value = excluded.value
            """,
            {"key": key, "value": json.dumps(value)}
        )

    async def get_value(self, key: str) -> Optional[KeyValue]:
        """Read a key-value entry, None if unset."""
        row = await self.get("SELECT value FROM _kv_store WHERE key = ?", (key,))
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except (ValueError, TypeError) as e:
            logger.error(f"Cannot decode value for {key!r}: {e}")
            raise ValueDecodeError(key, {"value": row["value"]}) from e

    async def backup(self, path: Union[str, Path]) -> None:
        """
        Snapshot the live store into the file at path.

        Raises:
            DatabaseIOError: If the destination cannot be opened or written.
        """
        self._check_open()
        path = str(path)
        logger.info(f"Backing up {self.path} to {path}...")
        try:
            async with aiosqlite.connect(path) as target:
                await self._connection.backup(target)
        except sqlite3.Error as e:
            logger.error(f"Backup to {path} failed: {e}")
            raise DatabaseIOError(f"Failed to back up database: {e}", path) from e

    async def open_repository(self, repository_type: Type[RepositoryT]) -> RepositoryT:
        """
        Get the repository of the given type for this connection.

        Instances are cached under the type's registry key; concurrent
        requests for the same key share one preparation.

        Raises:
            StatementPreparationError: If the repository statements fail to
                compile. Nothing is cached in that case.
        """
        key = repository_type.registry_key()
        repository = await self._open_cached(
            self._repositories, ("repository", key),
            lambda: repository_type.create(self)
        )
        if not isinstance(repository, repository_type):
            raise DatabaseError(
                f"Repository key {key!r} is registered to {type(repository).__name__}",
                {"key": key}
            )
        return repository

    async def open_view(self, name: str):
        """
        Get the named loco view for this connection.

        Raises:
            ViewNotFoundError: If no view with that name exists.
        """
        from .views import LocoView

        return await self._open_cached(
            self._views, ("view", name),
            lambda: LocoView.get_view(self, name)
        )

    async def view_statements(self):
        """Get the view statement set for this connection, preparing it once."""
        self._check_open()
        if self._view_statements is not None:
            return self._view_statements

        key = ("view_statements", "")
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._prepare_view_statements())
            self._pending[key] = task
            task.add_done_callback(lambda _: self._pending.pop(key, None))
        return await task

    async def _prepare_view_statements(self):
        from .views import ViewStatements

        self._view_statements = await ViewStatements.prepare(self)
        return self._view_statements

    async def _open_cached(
        self,
        cache: Dict[str, Any],
        key: Tuple[str, str],
        create: Callable[[], Awaitable[Any]]
    ) -> Any:
        self._check_open()
        instance = cache.get(key[1])
        if instance is not None and not instance.released:
            return instance

        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._create_and_register(cache, key, create))
            self._pending[key] = task
            task.add_done_callback(lambda _: self._pending.pop(key, None))
        return await task

    async def _create_and_register(
        self,
        cache: Dict[str, Any],
        key: Tuple[str, str],
        create: Callable[[], Awaitable[Any]]
    ) -> Any:
        instance = await create()
        stale = cache.get(key[1])
        if stale is not None and stale in self._resources:
            self._resources.remove(stale)
        cache[key[1]] = instance
        self._resources.append(instance)
        logger.debug(f"Registered {key[0]} {key[1]!r}")
        return instance
