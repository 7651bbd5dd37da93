"""Database module for account-core.

This module provides the Core API for database operations.
Core encapsulates connection management and provides access to entity operations.

ARCHITECTURE:
- Core owns its connection (no Flask g.db dependency)
- Connection closes on context exit (atomic=True) or when the Core is collected
- Each entity type gets an encapsulated class with related operations:
    core.account        - users table (live accounts only)
    core.verification   - verification_codes table
    core.token          - secret_tokens table
    core.pillar         - code_pillar_tracker table (row locking)

TRANSACTIONS:
Every state-changing operation runs inside one atomic Core. Entering it
takes the database write lock (BEGIN IMMEDIATE), so every read made through
the Core already sees the state its writes will be applied to:

    with get_core(atomic=True) as core:
        account = core.account.get_by_email(email)
        core.account.save(account.mark_verified())
        core.on_commit(lambda: notifier.notify(...))
    # committed here; on_commit callbacks have run

AFTER-COMMIT CALLBACKS:
core.on_commit() defers side effects (notifications) until the transaction
has committed. A rollback discards them. A failing callback is logged and
never propagates, so it cannot undo or mask a committed state change.
"""

import logging
import sqlite3
from collections.abc import Callable
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING

from ..config import settings
from ..schema import SCHEMA_PATH

logger = logging.getLogger(__name__)

# Context-local storage for atomic Core
_core_context: ContextVar["Core"] = ContextVar("_core_context", default=None)

if TYPE_CHECKING:
    from .account import AccountOperations
    from .pillar import PillarTrackerOperations
    from .secret_token import SecretTokenOperations
    from .verification import VerificationCodeOperations


class Core:
    """
    Database Core with entity operations.

    Maintains its own connection and transaction state.
    Provides access to entity operations through properties.

    Connection Lifecycle:
    - atomic=True: Connection commits or rolls back, then closes, on __exit__
    - atomic=False: Caller commits explicitly with core.commit()
    """

    def __init__(self, connection: sqlite3.Connection, atomic: bool = False):
        """Initialize Core with a database connection.

        Args:
            connection: SQLite connection with row_factory set to sqlite3.Row
            atomic: If True, Core MUST be used as context manager.
                    If False, the caller is responsible for core.commit().
        """
        self._conn = connection
        self._atomic = atomic
        self._after_commit: list[Callable[[], None]] = []
        self._account_ops = None
        self._verification_ops = None
        self._token_ops = None
        self._pillar_ops = None

    @property
    def account(self) -> "AccountOperations":
        """Account store operations (soft-deleted rows excluded)."""
        if self._account_ops is None:
            from .account import AccountOperations
            self._account_ops = AccountOperations(self._conn)
        return self._account_ops

    @property
    def verification(self) -> "VerificationCodeOperations":
        """Verification code operations."""
        if self._verification_ops is None:
            from .verification import VerificationCodeOperations
            self._verification_ops = VerificationCodeOperations(self._conn)
        return self._verification_ops

    @property
    def token(self) -> "SecretTokenOperations":
        """Secret token operations (password and email reset)."""
        if self._token_ops is None:
            from .secret_token import SecretTokenOperations
            self._token_ops = SecretTokenOperations(self._conn)
        return self._token_ops

    @property
    def pillar(self) -> "PillarTrackerOperations":
        """Code partition tracker operations."""
        if self._pillar_ops is None:
            from .pillar import PillarTrackerOperations
            self._pillar_ops = PillarTrackerOperations(self._conn)
        return self._pillar_ops

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` after the current transaction commits."""
        self._after_commit.append(callback)

    def commit(self) -> None:
        """Commit the transaction, then run after-commit callbacks."""
        self._conn.commit()
        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("After-commit callback failed")

    def rollback(self) -> None:
        """Roll back the transaction and discard after-commit callbacks."""
        self._after_commit = []
        self._conn.rollback()

    def __enter__(self) -> "Core":
        """Enter context manager for atomic transaction.

        Takes the database write lock up front. It is held until __exit__
        commits or rolls back; other writers wait up to the busy timeout.

        Raises:
            RuntimeError: If Core was not created with atomic=True

        Returns:
            self for use in with-statement
        """
        if not self._atomic:
            raise RuntimeError(
                "Core must be created with atomic=True for context manager use. "
                "Use: with db.get_core(atomic=True) as core:"
            )
        if not self._conn.in_transaction:
            self._conn.execute("BEGIN IMMEDIATE")
        _core_context.set(self)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager, committing or rolling back transaction."""
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            # Always clear context and close connection
            _core_context.set(None)
            self._conn.close()

    def __del__(self):
        """Cleanup connection if not already closed.

        Called during garbage collection. Ignores errors since connection
        may already be closed or in an invalid state.
        """
        if hasattr(self, "_conn") and self._conn:
            try:
                self._conn.close()
            except sqlite3.Error:
                pass


def _create_connection() -> sqlite3.Connection:
    """Create a fresh database connection.

    Returns:
        SQLite connection with row_factory set to sqlite3.Row,
        foreign keys enabled and the configured busy timeout.
    """
    db_path = Path(settings.database_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), timeout=settings.database_busy_timeout)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def get_core(atomic: bool = False) -> Core:
    """
    Get a database Core instance.

    Args:
        atomic: If True, returns a Core that MUST be used as context manager.
                Use for every state-changing operation.
                If False (default), returns a Core for reads; the connection
                closes when the Core is garbage collected.

    Returns:
        Core instance with entity operations

    Examples:
        Read-only:
        >>> core = get_core()
        >>> account = core.account.get_by_id(account_id)

        Atomic mode (multi-operation transaction):
        >>> with get_core(atomic=True) as core:
        ...     code = allocator.allocate(core)
        ...     core.account.create(...)
        ...     # All operations commit together on exit
    """
    conn = _create_connection()
    return Core(conn, atomic=atomic)


# ============================================================================
# DATABASE INITIALIZATION
# ============================================================================

def init_db():
    """Initialize database by running schema.sql if not already initialized."""
    db_path = Path(settings.database_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with sqlite3.connect(str(db_path)) as db:
        # Check if database is already initialized
        cursor = db.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='_schema_metadata'"
        )
        if cursor.fetchone():
            return

        db.executescript(SCHEMA_PATH.read_text())
        db.commit()
        logger.info(f"Applied schema to {db_path}")


def get_schema_version(conn: sqlite3.Connection) -> str:
    """Get current schema version from _schema_metadata table."""
    row = conn.execute(
        "SELECT value FROM _schema_metadata WHERE key = 'version'"
    ).fetchone()
    return row[0] if row else "unknown"
