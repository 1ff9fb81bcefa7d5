"""
Database schema definitions for the loco store.

Defines the key-value metadata table, the document table layout shared by
every repository (with its FTS5 index and synchronization triggers), and the
ordered migration scripts that build the application schema.
"""

import re
from typing import List, Tuple

from ..core import SchemaError

SCHEMA_VERSION = 3
SCHEMA_VERSION_KEY = "schemaVersion"

KV_TABLE = """
CREATE TABLE IF NOT EXISTS _kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def check_identifier(name: str) -> str:
    """
    Validate a table or column name before it is interpolated into SQL.

    Raises:
        SchemaError: If the name is not a plain identifier.
    """
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise SchemaError(f"Invalid identifier: {name!r}", {"identifier": name})
    return name


def document_table_sql(
    table: str,
    search_column: str = "search_text",
    data_column: str = "item",
    id_column: str = "id",
    tokenizer: str = "unicode61"
) -> str:
    """
    Generate the DDL for a JSON document table and its full-text index.

    The FTS5 table is an external-content index over the search column, kept
    in sync by insert, update and delete triggers. Every statement uses
    IF NOT EXISTS, so the script is safe to run against an existing table.

    Args:
        table: Document table name.
        search_column: Column holding the derived search text.
        data_column: Column holding the JSON document.
        id_column: Auto-increment primary key column.
        tokenizer: FTS5 tokenizer specification.

    Returns:
        SQL script suitable for executescript().
    """
    for name in (table, search_column, data_column, id_column):
        check_identifier(name)
    if "'" in tokenizer:
        raise SchemaError(f"Invalid tokenizer: {tokenizer!r}", {"tokenizer": tokenizer})

    fts = f"{table}_fts"

    return f"""
    CREATE TABLE IF NOT EXISTS {table} (
        {id_column} INTEGER PRIMARY KEY AUTOINCREMENT,
        {search_column} TEXT NOT NULL DEFAULT '',
        {data_column} TEXT NOT NULL
    );

    CREATE VIRTUAL TABLE IF NOT EXISTS {fts} USING fts5(
        {search_column},
        content='{table}',
        content_rowid='{id_column}',
        tokenize='{tokenizer}'
    );

    CREATE TRIGGER IF NOT EXISTS {table}_ai AFTER INSERT ON {table} BEGIN
        INSERT INTO {fts}(rowid, {search_column})
        VALUES (new.{id_column}, new.{search_column});
    END;

    CREATE TRIGGER IF NOT EXISTS {table}_ad AFTER DELETE ON {table} BEGIN
        INSERT INTO {fts}({fts}, rowid, {search_column})
        VALUES ('delete', old.{id_column}, old.{search_column});
    END;

    CREATE TRIGGER IF NOT EXISTS {table}_au AFTER UPDATE ON {table} BEGIN
        INSERT INTO {fts}({fts}, rowid, {search_column})
        VALUES ('delete', old.{id_column}, old.{search_column});
        INSERT INTO {fts}(rowid, {search_column})
        VALUES (new.{id_column}, new.{search_column});
    END;
    """


USER_SESSIONS_TABLE = """
CREATE TABLE IF NOT EXISTS user_sessions (
    id TEXT PRIMARY KEY,
    userId INTEGER NOT NULL,
    expires INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_user_sessions_expires ON user_sessions(expires);
"""

LOCO_VIEWS_TABLES = """
CREATE TABLE IF NOT EXISTS loco_views (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS loco_view_mapping (
    viewId INTEGER NOT NULL REFERENCES loco_views(id) ON DELETE CASCADE,
    locoId INTEGER NOT NULL REFERENCES locos(id) ON DELETE CASCADE,
    PRIMARY KEY (viewId, locoId)
);

CREATE INDEX IF NOT EXISTS idx_loco_view_mapping_loco ON loco_view_mapping(locoId);

INSERT OR IGNORE INTO loco_views (name) VALUES ('On Track');
"""


def _migrations(tokenizer: str) -> dict:
    return {
        1: document_table_sql("locos", tokenizer=tokenizer),
        2: USER_SESSIONS_TABLE,
        3: LOCO_VIEWS_TABLES,
    }


def get_migrations(from_version: int, tokenizer: str = "unicode61") -> List[Tuple[int, str]]:
    """
    Get the ordered migration steps needed to reach SCHEMA_VERSION.

    Args:
        from_version: Version currently recorded in the store, 0 for a new one.
        tokenizer: FTS5 tokenizer for document tables created by the steps.

    Returns:
        List of (version, script) pairs in application order.

    Raises:
        SchemaError: If a required step has no script.
    """
    migrations = _migrations(tokenizer)
    steps = []

    for version in range(from_version + 1, SCHEMA_VERSION + 1):
        script = migrations.get(version)
        if not script:
            raise SchemaError(
                f"No schema script found for version {version}",
                {"version": version}
            )
        steps.append((version, script))

    return steps


def migration_script(version: int, script: str) -> str:
    """
    Wrap a migration step in a transaction that also records its version.

    The version bump commits atomically with the step, so a failed step
    leaves the store at the previous version.
    """
    return f"""
    BEGIN;
    {script}
    INSERT INTO _kv_store (key, value) VALUES ('{SCHEMA_VERSION_KEY}', '{int(version)}')
    ON CONFLICT (key) DO UPDATE SET value = excluded.value;
    COMMIT;
    """
