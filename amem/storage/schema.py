"""Database schema and migration logic for amem storage.

Contains:
- Ordered schema migrations (MIGRATIONS), each with up and down statements
- Migration tracking table bootstrap (ensure_migrations_table)
- Schema version queries (current_version, applied_versions)
- Forward migration (migrate_schema) and rollback (rollback_schema)
- Table allowlist (ALLOWED_TABLES, validate_table_name)

Every migration step runs in its own transaction together with the row
recording it in ``schema_migrations``, so the two never disagree.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Set, Tuple

from amem.types import MigrationError

logger = logging.getLogger(__name__)

MIGRATIONS_TABLE = "schema_migrations"

# Allowed table names for SQL queries (security: prevents SQL injection via table names)
ALLOWED_TABLES = frozenset(
    {
        "entities",
        "observations",
        "relationships",
        MIGRATIONS_TABLE,
    }
)


def validate_table_name(table: str) -> str:
    """Validate table name against allowlist to prevent SQL injection.

    Args:
        table: Table name to validate

    Returns:
        The validated table name

    Raises:
        ValueError: If table name is not in allowlist
    """
    if table not in ALLOWED_TABLES:
        raise ValueError(f"Invalid table name: {table}")
    return table


@dataclass(frozen=True)
class Migration:
    """One schema version step.

    ``up`` reaches this version from the previous one; ``down`` undoes it.
    Statements are executed one at a time inside the step's transaction.
    """

    version: int
    up: Tuple[str, ...]
    down: Tuple[str, ...]


MIGRATIONS: Tuple[Migration, ...] = (
    Migration(
        version=1,
        up=(
            """
            CREATE TABLE entities (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                text TEXT NOT NULL UNIQUE
            )
            """,
            """
            CREATE TABLE observations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                entity_id INTEGER NOT NULL,
                text TEXT NOT NULL,
                timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (entity_id) REFERENCES entities(id) ON DELETE CASCADE
            )
            """,
            """
            CREATE TABLE relationships (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                from_id INTEGER NOT NULL,
                to_id INTEGER NOT NULL,
                type TEXT NOT NULL,
                timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (from_id) REFERENCES entities(id) ON DELETE CASCADE,
                FOREIGN KEY (to_id) REFERENCES entities(id) ON DELETE CASCADE
            )
            """,
            "CREATE INDEX idx_observations_entity ON observations(entity_id)",
            "CREATE INDEX idx_relationships_from ON relationships(from_id)",
            "CREATE INDEX idx_relationships_to ON relationships(to_id)",
            "CREATE INDEX idx_relationships_type ON relationships(type)",
        ),
        down=(
            "DROP INDEX IF EXISTS idx_relationships_type",
            "DROP INDEX IF EXISTS idx_relationships_to",
            "DROP INDEX IF EXISTS idx_relationships_from",
            "DROP INDEX IF EXISTS idx_observations_entity",
            "DROP TABLE IF EXISTS relationships",
            "DROP TABLE IF EXISTS observations",
            "DROP TABLE IF EXISTS entities",
        ),
    ),
)

# Schema version a fully migrated store reports
SCHEMA_VERSION = max(m.version for m in MIGRATIONS)

MIGRATIONS_TABLE_DDL = f"""
CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} (
    version INTEGER PRIMARY KEY,
    applied_at DATETIME DEFAULT CURRENT_TIMESTAMP
)
"""


def _ordered(migrations: Optional[Tuple[Migration, ...]]) -> List[Migration]:
    """Sort migrations ascending and reject duplicate versions."""
    ordered = sorted(migrations if migrations is not None else MIGRATIONS, key=lambda m: m.version)
    versions = [m.version for m in ordered]
    if len(versions) != len(set(versions)):
        raise ValueError(f"Duplicate migration versions: {versions}")
    return ordered


def ensure_migrations_table(conn: Any) -> None:
    """Create the migration tracking table if it does not exist."""
    try:
        conn.execute(MIGRATIONS_TABLE_DDL)
    except Exception as e:
        raise MigrationError(0, f"failed to create {MIGRATIONS_TABLE} table: {e}") from e


def applied_versions(conn: Any) -> Set[int]:
    """Return the set of migration versions recorded as applied."""
    rows = conn.execute(f"SELECT version FROM {MIGRATIONS_TABLE}").fetchall()
    return {row[0] for row in rows}


def current_version(conn: Any) -> int:
    """Return the highest applied schema version (0 for an empty store)."""
    row = conn.execute(f"SELECT COALESCE(MAX(version), 0) FROM {MIGRATIONS_TABLE}").fetchone()
    return row[0]


def _run_step(conn: Any, version: int, statements: Tuple[str, ...], record_sql: str) -> None:
    """Execute one migration step and its bookkeeping in a single transaction."""
    conn.execute("BEGIN IMMEDIATE")
    try:
        for statement in statements:
            conn.execute(statement)
        conn.execute(record_sql, (version,))
        conn.execute("COMMIT")
    except Exception:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise


def migrate_schema(conn: Any, migrations: Optional[Tuple[Migration, ...]] = None) -> List[int]:
    """Bring the schema up to the latest known version.

    Applies, in ascending order, exactly the migrations whose version is
    not yet recorded. Safe to call on an up-to-date store: it then reads
    the tracking table once and applies nothing.

    Args:
        conn: Open connection in autocommit mode.
        migrations: Migration units to apply, defaults to MIGRATIONS.

    Returns:
        The versions applied by this call, in order.

    Raises:
        MigrationError: If any step fails. That step is rolled back and
            no later step runs.
    """
    ensure_migrations_table(conn)
    ordered = _ordered(migrations)

    try:
        done = applied_versions(conn)
    except Exception as e:
        raise MigrationError(0, f"failed to get current version: {e}") from e

    applied: List[int] = []
    for migration in ordered:
        if migration.version in done:
            continue
        try:
            _run_step(
                conn,
                migration.version,
                migration.up,
                f"INSERT INTO {MIGRATIONS_TABLE} (version) VALUES (?)",
            )
        except Exception as e:
            logger.error(f"Migration {migration.version} failed: {e}")
            raise MigrationError(
                migration.version, f"failed to apply migration {migration.version}: {e}"
            ) from e
        logger.info(f"Applied schema migration {migration.version}")
        applied.append(migration.version)

    return applied


def rollback_schema(
    conn: Any, target_version: int, migrations: Optional[Tuple[Migration, ...]] = None
) -> List[int]:
    """Undo applied migrations above ``target_version``, newest first.

    Each down step runs in its own transaction with the removal of its
    tracking row.

    Returns:
        The versions rolled back, in the order they were undone.
    """
    if target_version < 0:
        raise ValueError(f"Invalid target version: {target_version}")

    ensure_migrations_table(conn)
    done = applied_versions(conn)

    rolled_back: List[int] = []
    for migration in reversed(_ordered(migrations)):
        if migration.version <= target_version or migration.version not in done:
            continue
        try:
            _run_step(
                conn,
                migration.version,
                migration.down,
                f"DELETE FROM {MIGRATIONS_TABLE} WHERE version = ?",
            )
        except Exception as e:
            raise MigrationError(
                migration.version, f"failed to roll back migration {migration.version}: {e}"
            ) from e
        logger.info(f"Rolled back schema migration {migration.version}")
        rolled_back.append(migration.version)

    return rolled_back
