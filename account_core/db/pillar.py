"""Code partition tracker operations.

LOCKING:
SQLite has no row locks. An atomic Core already holds the database write
lock; on any other connection acquire() takes it with BEGIN IMMEDIATE and
holds it until the owning Core commits or rolls back.
Two allocators can therefore never read the same last_issued_number.
"""

import sqlite3

from ..schema.types import PillarTracker
from ..utils import isodatetime


class PillarTrackerOperations:
    """Partition tracker store operations."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def acquire(self, base: int) -> PillarTracker:
        """Lock the tracker for ``base``, creating it on first use.

        A new partition starts with last_issued_number equal to its base,
        so the first code it yields is base + 1.
        """
        if not self._conn.in_transaction:
            self._conn.execute("BEGIN IMMEDIATE")

        now = isodatetime.now()
        self._conn.execute(
            """INSERT INTO code_pillar_tracker
               (sub_pillar_base, last_issued_number, created_at, updated_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT (sub_pillar_base) DO NOTHING""",
            (base, base, now, now)
        )
        row = self._conn.execute(
            "SELECT * FROM code_pillar_tracker WHERE sub_pillar_base = ?",
            (base,)
        ).fetchone()
        return PillarTracker.from_row(row)

    def get(self, base: int) -> PillarTracker | None:
        row = self._conn.execute(
            "SELECT * FROM code_pillar_tracker WHERE sub_pillar_base = ?",
            (base,)
        ).fetchone()
        return PillarTracker.from_row(row) if row else None

    def save(self, tracker: PillarTracker) -> PillarTracker:
        self._conn.execute(
            """UPDATE code_pillar_tracker
               SET last_issued_number = ?, updated_at = ?
               WHERE sub_pillar_base = ?""",
            (tracker.last_issued_number, isodatetime.now(), tracker.sub_pillar_base)
        )
        return tracker
