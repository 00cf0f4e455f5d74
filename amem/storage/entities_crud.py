"""Entity CRUD operations extracted from SQLiteStorage.

Entities are unique by exact text. Adding an existing text resolves to
the existing row; deleting an entity cascades to its observations and
relationships through the store's foreign keys. All functions receive
the connection scope factory explicitly (``connect_fn``).
"""

import logging
from typing import Any, Callable, List, Optional, Sequence

from amem.types import ConflictError, Entity, KeywordMode, NotFoundError, StorageError

from .connection import IntegrityError, wrap_errors
from .query import ENTITY_COLUMNS, build_keyword_filter

logger = logging.getLogger(__name__)


def row_to_entity(row: Any) -> Entity:
    """Convert a database row to an Entity dataclass."""
    return Entity(id=row["id"], text=row["text"])


def resolve_entity_id(conn: Any, text: str) -> int:
    """Return the id for ``text``, inserting the entity if it is new.

    Runs on the caller's connection so it can share a transaction with a
    dependent insert.
    """
    with wrap_errors("insert entity"):
        conn.execute("INSERT OR IGNORE INTO entities (text) VALUES (?)", (text,))
    with wrap_errors("get entity id"):
        row = conn.execute("SELECT id FROM entities WHERE text = ?", (text,)).fetchone()
    if row is None:
        raise StorageError(f"failed to get entity id: no entity '{text}' after insert")
    return row["id"]


def add_entity(connect_fn: Callable, text: str) -> int:
    """Add an entity, returning its id whether new or pre-existing."""
    with connect_fn(write=True) as conn:
        return resolve_entity_id(conn, text)


def get_entity(connect_fn: Callable, entity_id: int) -> Optional[Entity]:
    """Get an entity by id."""
    with connect_fn() as conn, wrap_errors("get entity"):
        row = conn.execute("SELECT id, text FROM entities WHERE id = ?", (entity_id,)).fetchone()
    return row_to_entity(row) if row else None


def get_entity_by_text(connect_fn: Callable, text: str) -> Optional[Entity]:
    """Get an entity by exact text."""
    with connect_fn() as conn, wrap_errors("get entity"):
        row = conn.execute("SELECT id, text FROM entities WHERE text = ?", (text,)).fetchone()
    return row_to_entity(row) if row else None


def entity_exists(conn: Any, entity_id: int) -> bool:
    """Check whether an entity id is live, on the caller's connection."""
    with wrap_errors("check entity"):
        row = conn.execute(
            "SELECT COUNT(*) FROM entities WHERE id = ?", (entity_id,)
        ).fetchone()
    return row[0] > 0


def delete_entity(connect_fn: Callable, entity_id: int) -> None:
    """Delete an entity by id. Observations and relationships cascade."""
    with connect_fn(write=True) as conn, wrap_errors("delete entity"):
        cur = conn.execute("DELETE FROM entities WHERE id = ?", (entity_id,))
        deleted = cur.rowcount
    if deleted == 0:
        raise NotFoundError("entity", entity_id)
    logger.debug(f"Deleted entity {entity_id}")


def delete_entity_by_text(connect_fn: Callable, text: str) -> None:
    """Delete an entity by exact text. Observations and relationships cascade."""
    with connect_fn(write=True) as conn, wrap_errors("delete entity"):
        cur = conn.execute("DELETE FROM entities WHERE text = ?", (text,))
        deleted = cur.rowcount
    if deleted == 0:
        raise NotFoundError("entity", text)
    logger.debug(f"Deleted entity {text!r}")


def update_entity(connect_fn: Callable, old_text: str, new_text: str) -> None:
    """Rename an entity matched by its current text.

    Raises:
        NotFoundError: No entity has ``old_text``.
        ConflictError: ``new_text`` already belongs to another entity.
    """
    with connect_fn(write=True) as conn, wrap_errors("update entity"):
        try:
            cur = conn.execute("UPDATE entities SET text = ? WHERE text = ?", (new_text, old_text))
        except IntegrityError as e:
            if "UNIQUE" not in str(e):
                raise
            raise ConflictError(old_text, new_text, e) from e
        updated = cur.rowcount
    if updated == 0:
        raise NotFoundError("entity", old_text)


def search_entities(
    connect_fn: Callable,
    keywords: Sequence[str] = (),
    mode: KeywordMode = KeywordMode.ANY,
) -> List[Entity]:
    """Search entity text by keywords, ordered by text ascending."""
    query = "SELECT e.id, e.text FROM entities e"
    keyword_filter = build_keyword_filter(keywords, ENTITY_COLUMNS, mode)
    if keyword_filter:
        query += f" WHERE {keyword_filter.sql}"
    query += " ORDER BY e.text"

    with connect_fn() as conn, wrap_errors("search entities"):
        rows = conn.execute(query, keyword_filter.params).fetchall()

    return [row_to_entity(row) for row in rows]
