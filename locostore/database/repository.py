"""
Document repositories for CRUD and full-text search over JSON records.

A repository stores one record type in a table of (id, search_text, item)
rows, where item is the JSON document and search_text is a derived string
indexed by FTS5. Concrete repositories declare their table layout and how to
build the search text.
"""

import dataclasses
import json
from typing import Any, ClassVar, Dict, Generic, List, Optional, TypeVar

from ..core import (
    get_logger,
    DatabaseClosedError,
    QueryError,
    RecordNotFoundError,
    SchemaError,
    StatementPreparationError
)
from ..search import QueryParser
from .models import Loco
from .schema import check_identifier, document_table_sql

logger = get_logger(__name__)

T = TypeVar("T")


class Repository(Generic[T]):
    """
    Generic CRUD and search facade over a JSON document table.

    Repositories are opened through Database.open_repository(), which
    prepares the statements and caches one instance per registry key.
    Subclasses set table_name and usually override index_item_for_search().

    Records are dataclass instances of record_type, or plain dicts when
    record_type is dict. The row id is always injected into hydrated records.
    """

    table_name: ClassVar[Optional[str]] = None
    type_tag: ClassVar[Optional[str]] = None
    record_type: ClassVar[type] = dict

    id_column: ClassVar[str] = "id"
    search_column: ClassVar[str] = "search_text"
    data_column: ClassVar[str] = "item"

    def __init__(self, db):
        self._db = db
        self._statements: Dict[str, Any] = {}
        self._released = False
        self._query_parser = QueryParser()

    @classmethod
    def registry_key(cls) -> str:
        """Stable key used to cache this repository type per connection."""
        key = cls.type_tag or cls.table_name
        if not key:
            raise StatementPreparationError(f"{cls.__name__} declares no table name")
        return key

    @classmethod
    async def create(cls, db) -> "Repository[T]":
        """Construct and prepare a repository against db."""
        repository = cls(db)
        await repository.prepare()
        return repository

    def _statement_sql(self) -> Dict[str, str]:
        table = self.table_name
        fts = f"{table}_fts"
        id_col, search_col, data_col = self.id_column, self.search_column, self.data_column

        return {
            "list": f"SELECT {id_col} AS id, {data_col} AS data FROM {table} ORDER BY {id_col}",
            "search": f"""
                SELECT {table}.{id_col} AS id, {table}.{data_col} AS data
                FROM {fts}
                JOIN {table} ON {table}.{id_col} = {fts}.rowid
                WHERE {fts} MATCH ?
                ORDER BY {fts}.rank
            """,
            "get": f"SELECT {id_col} AS id, {data_col} AS data FROM {table} WHERE {id_col} = ?",
            "insert": f"INSERT INTO {table} ({search_col}, {data_col}) VALUES (?, json(?))",
            "update": f"UPDATE {table} SET {search_col} = ?, {data_col} = json(?) WHERE {id_col} = ?",
            "delete": f"DELETE FROM {table} WHERE {id_col} = ?",
        }

    async def prepare(self) -> None:
        """
        Ensure the document table exists and compile every statement.

        Raises:
            StatementPreparationError: If the table cannot be created or any
                statement fails to compile. No statement stays live.
        """
        if not self.table_name:
            raise StatementPreparationError(f"{type(self).__name__} declares no table name")

        try:
            for name in (self.table_name, self.id_column, self.search_column, self.data_column):
                check_identifier(name)
            await self._db.exec(document_table_sql(
                self.table_name,
                search_column=self.search_column,
                data_column=self.data_column,
                id_column=self.id_column,
                tokenizer=self._db.config.search.tokenizer
            ))
        except (SchemaError, QueryError) as e:
            raise StatementPreparationError(
                f"Failed to create table {self.table_name}: {e.message}"
            ) from e

        statements = {}
        try:
            for name, sql in self._statement_sql().items():
                statements[name] = await self._db.prepare(sql)
        except StatementPreparationError:
            for statement in statements.values():
                await statement.release()
            raise

        self._statements = statements
        logger.debug(f"Prepared repository {type(self).__name__} on {self.table_name}")

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> None:
        """Release all prepared statements. Safe to call more than once."""
        if self._released:
            return
        self._released = True

        for statement in self._statements.values():
            await statement.release()
        logger.debug(f"Released repository {type(self).__name__}")

    def _statement(self, name: str):
        if self._db.closed:
            raise DatabaseClosedError()
        return self._statements[name]

    def index_item_for_search(self, item: T) -> str:
        """
        Build the search text for an item.

        The default indexes every top-level string and number in the
        document; subclasses pick the fields that matter.
        """
        document = self.serialize(item)
        return " ".join(
            str(value) for key, value in document.items()
            if key != "id" and isinstance(value, (str, int, float)) and not isinstance(value, bool)
        )

    def serialize(self, item: T) -> dict:
        """Convert an item to its JSON document form."""
        if isinstance(item, dict):
            return dict(item)
        if dataclasses.is_dataclass(item):
            return dataclasses.asdict(item)
        raise TypeError(f"Cannot serialize {type(item).__name__}")

    def deserialize(self, document: dict) -> T:
        """Build an item from its JSON document form."""
        if self.record_type is dict:
            return document
        names = {f.name for f in dataclasses.fields(self.record_type)}
        return self.record_type(**{k: v for k, v in document.items() if k in names})

    def _hydrate(self, row) -> Optional[T]:
        if row is None:
            return None
        document = json.loads(row["data"])
        document["id"] = row["id"]
        return self.deserialize(document)

    @staticmethod
    def _item_id(item: Any) -> Optional[int]:
        if isinstance(item, dict):
            return item.get("id")
        return getattr(item, "id", None)

    async def list(self, query: str = None) -> List[T]:
        """
        List records, optionally filtered by a full-text query.

        Args:
            query: Free text matched against the search index. Results are
                   ranked by relevance. Omitted or blank lists every record
                   in id order; a query with no searchable terms matches
                   nothing.

        Returns:
            Hydrated records.
        """
        if not query or not query.strip():
            return await self._statement("list").all(transform=self._hydrate)

        search = self._statement("search")
        match = self._query_parser.parse(query, prefix=self._db.config.search.prefix_matching)
        if not match:
            return []
        return await search.all(match, transform=self._hydrate)

    async def get(self, item_id: int) -> Optional[T]:
        """Fetch a record by id, None if it does not exist."""
        return await self._statement("get").get(item_id, transform=self._hydrate)

    async def insert(self, item: T) -> int:
        """
        Insert a record.

        The item itself is not modified; the caller stores the returned id
        where it needs it.

        Returns:
            The id assigned by the store.
        """
        search_text = self.index_item_for_search(item)
        data = json.dumps(self.serialize(item))
        item_id = await self._statement("insert").run(
            (search_text, data),
            lambda result: result.last_row_id
        )
        logger.debug(f"Inserted {self.table_name} {item_id}")
        return item_id

    async def update(self, item: T) -> None:
        """
        Rewrite an existing record and its search text.

        Raises:
            ValueError: If the item carries no id.
            RecordNotFoundError: If the update did not affect exactly one row.
        """
        item_id = self._item_id(item)
        if item_id is None:
            raise ValueError("Cannot update an item without an id")

        search_text = self.index_item_for_search(item)
        data = json.dumps(self.serialize(item))
        changes = await self._statement("update").run(
            (search_text, data, item_id),
            lambda result: result.changes
        )
        if changes != 1:
            logger.error(f"Unexpected number of updates for {self.table_name} {item_id}: {changes}")
            raise RecordNotFoundError(item_id, changes)

    async def delete(self, item_id: int) -> None:
        """Delete a record. Deleting a missing id is not an error."""
        await self._statement("delete").run(item_id)


class LocoRepository(Repository[Loco]):
    """Repository for locomotives."""

    table_name = "locos"
    record_type = Loco

    def index_item_for_search(self, item: Loco) -> str:
        return f"{item.name} {item.address}"

    def serialize(self, item: Loco) -> dict:
        return item.to_document()

    def deserialize(self, document: dict) -> Loco:
        return Loco.from_document(document)
