"""
Named loco views backed by the loco_view_mapping junction table.

A view is a persisted set of loco ids under a name such as "On Track". The
statements shared by every view on a connection live in one ViewStatements
set owned by the Database, so separate connections never share state.
"""

from typing import Set

from ..core import get_logger, DatabaseClosedError, DatabaseError, ViewNotFoundError

logger = get_logger(__name__)

ON_TRACK_VIEW = "On Track"


class ViewStatements:
    """Prepared statements shared by all views of one connection."""

    SQL = {
        "lookup": "SELECT id FROM loco_views WHERE name = ?",
        "list": "SELECT locoId FROM loco_view_mapping WHERE viewId = ?",
        "has": "SELECT 1 FROM loco_view_mapping WHERE viewId = ? AND locoId = ?",
        "add": "INSERT OR IGNORE INTO loco_view_mapping (viewId, locoId) VALUES (?, ?)",
        "remove": "DELETE FROM loco_view_mapping WHERE viewId = ? AND locoId = ?",
    }

    def __init__(self, statements: dict):
        self._statements = statements
        self.lookup = statements["lookup"]
        self.list = statements["list"]
        self.has = statements["has"]
        self.add = statements["add"]
        self.remove = statements["remove"]
        self.released = False

    @classmethod
    async def prepare(cls, db) -> "ViewStatements":
        statements = {}
        try:
            for name, sql in cls.SQL.items():
                statements[name] = await db.prepare(sql)
        except DatabaseError:
            for statement in statements.values():
                await statement.release()
            raise
        logger.debug("Prepared view statements")
        return cls(statements)

    async def release(self) -> None:
        for statement in self._statements.values():
            await statement.release()
        self._statements = {}
        self.released = True
        logger.debug("Released view statements")


class LocoView:
    """
    Membership set of loco ids under a view name.

    Instances wrap an existing loco_views row; the id resolved at
    construction is fixed for the lifetime of the instance.
    """

    def __init__(self, statements: ViewStatements, view_id: int, view_name: str):
        self._statements = statements
        self.view_id = view_id
        self.view_name = view_name
        self._released = False

    @classmethod
    async def get_view(cls, db, name: str) -> "LocoView":
        """
        Resolve a view by name.

        Raises:
            ViewNotFoundError: If no view has that name.
        """
        statements = await db.view_statements()
        view_id = await statements.lookup.get(name, lambda row: row["id"] if row else None)
        if view_id is None:
            raise ViewNotFoundError(name)

        logger.debug(f"Resolved view {name!r} to {view_id}")
        return cls(statements, view_id, name)

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> None:
        self._released = True

    def _live(self) -> ViewStatements:
        # View statements are only released when the database closes
        if self._statements.released:
            raise DatabaseClosedError()
        return self._statements

    async def loco_ids(self) -> Set[int]:
        """Current members of the view."""
        ids = await self._live().list.all(self.view_id, lambda row: row["locoId"])
        return set(ids)

    async def has_loco(self, loco_id: int) -> bool:
        return await self._live().has.get((self.view_id, loco_id), lambda row: row is not None)

    async def add_loco(self, loco_id: int) -> None:
        """
        Add a loco to the view. Adding an existing member is a no-op.

        Raises:
            ConstraintViolationError: If the loco does not exist.
        """
        await self._live().add.run((self.view_id, loco_id))

    async def remove_loco(self, loco_id: int) -> None:
        """Remove a loco from the view. Removing a non-member is a no-op."""
        await self._live().remove.run((self.view_id, loco_id))
