"""
Database module for the SQLite document store.

Provides the connection and schema manager, prepared statements, JSON
document repositories with FTS5 search, and named loco views.
"""

from .connection import Database
from .statement import Statement
from .schema import SCHEMA_VERSION, SCHEMA_VERSION_KEY, document_table_sql, get_migrations
from .repository import Repository, LocoRepository
from .views import LocoView, ViewStatements, ON_TRACK_VIEW
from .models import Loco, FunctionConfig, FunctionMode, RunResult

__all__ = [
    "Database",
    "Statement",
    "SCHEMA_VERSION",
    "SCHEMA_VERSION_KEY",
    "document_table_sql",
    "get_migrations",
    "Repository",
    "LocoRepository",
    "LocoView",
    "ViewStatements",
    "ON_TRACK_VIEW",
    "Loco",
    "FunctionConfig",
    "FunctionMode",
    "RunResult"
]
