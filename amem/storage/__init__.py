"""amem storage backends.

This module provides the data-access layer for amem: the encrypted
connection, schema migrations, keyword query building and the
entity/observation/relationship repository.
"""

from .query import Column, KeywordFilter, build_keyword_filter, escape_like_pattern
from .schema import MIGRATIONS, SCHEMA_VERSION, Migration, migrate_schema, rollback_schema
from .sqlite import SQLiteStorage

__all__ = [
    # Implementations
    "SQLiteStorage",
    # Schema
    "Migration",
    "MIGRATIONS",
    "SCHEMA_VERSION",
    "migrate_schema",
    "rollback_schema",
    # Query building
    "Column",
    "KeywordFilter",
    "build_keyword_filter",
    "escape_like_pattern",
]
