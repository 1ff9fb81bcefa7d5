"""
Query parser for FTS5 full-text search.

Sanitizes user input from search boxes and transforms it into a MATCH
expression that cannot trip FTS5 syntax errors.
"""

from typing import List

from ..core import get_logger

logger = get_logger(__name__)


# Characters with special meaning in FTS5 that need escaping
FTS5_SPECIAL_CHARS = set('"\'*-+():^{}[],.;/\\')


class QueryParser:
    """
    Parses and sanitizes search queries for FTS5.

    Every term is quoted, so words such as OR or NOT are matched literally,
    and terms are implicitly ANDed together.
    """

    def terms(self, query: str) -> List[str]:
        """
        Split a raw query into clean search terms.

        Args:
            query: Raw user input.

        Returns:
            Terms with all FTS5 special characters removed.
        """
        if not query or not query.strip():
            return []

        cleaned = "".join(
            char if char not in FTS5_SPECIAL_CHARS else " "
            for char in query
        )

        return [term for term in cleaned.split() if term]

    def parse(self, query: str, prefix: bool = False) -> str:
        """
        Parse a query into an FTS5 MATCH expression.

        Args:
            query: Raw user input.
            prefix: Match each term as a prefix, so partial words typed into
                    a search box still find records.

        Returns:
            MATCH expression, or an empty string if nothing searchable remains.
        """
        suffix = "*" if prefix else ""
        expression = " ".join(f'"{term}"{suffix}' for term in self.terms(query))

        if query and not expression:
            logger.debug(f"Query {query!r} has no searchable terms")

        return expression
