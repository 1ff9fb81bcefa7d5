"""
Search module for building full-text queries.

Turns free text into FTS5 MATCH expressions used by the repositories.
"""

from .query_parser import QueryParser

__all__ = [
    "QueryParser"
]
