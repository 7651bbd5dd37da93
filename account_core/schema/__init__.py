"""Schema module for account-core.

This module provides the database schema as the source of truth for the data model.
"""

from pathlib import Path

from . import types

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

__all__ = ["types", "SCHEMA_PATH"]
