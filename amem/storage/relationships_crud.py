"""Relationship CRUD operations extracted from SQLiteStorage.

Relationships are directed, typed edges between two entities. Identical
(from, to, type) triples are distinct rows; every add inserts a new one.
Endpoints are resolved by text and created when missing, in the same
transaction as the insert.
"""

import logging
from typing import Any, Callable, List, Optional, Sequence

from amem.types import KeywordMode, NotFoundError, Relationship

from .connection import wrap_errors
from .entities_crud import resolve_entity_id
from .query import (
    RELATIONSHIP_COLUMNS,
    Column,
    build_keyword_filter,
    contains_pattern,
    like_clause,
)

logger = logging.getLogger(__name__)

SEARCH_RELATIONSHIPS_SQL = """
    SELECT r.id, r.from_id, ef.text AS from_text, r.to_id, et.text AS to_text,
           r.type, r.timestamp
    FROM relationships r
    JOIN entities ef ON r.from_id = ef.id
    JOIN entities et ON r.to_id = et.id
"""


def row_to_relationship(row: Any) -> Relationship:
    """Convert a database row to a Relationship dataclass."""
    return Relationship(
        id=row["id"],
        from_id=row["from_id"],
        to_id=row["to_id"],
        type=row["type"],
        timestamp=row["timestamp"],
        from_text=row["from_text"],
        to_text=row["to_text"],
    )


def add_relationship(connect_fn: Callable, from_text: str, to_text: str, rel_type: str) -> int:
    """Add a relationship, creating either endpoint if needed.

    ``from_text`` and ``to_text`` may name the same entity (self-loop).
    ``rel_type`` is free text and may be empty.

    Returns:
        The new relationship's id.
    """
    with connect_fn(write=True) as conn:
        from_id = resolve_entity_id(conn, from_text)
        to_id = resolve_entity_id(conn, to_text)
        with wrap_errors("insert relationship"):
            cur = conn.execute(
                "INSERT INTO relationships (from_id, to_id, type) VALUES (?, ?, ?)",
                (from_id, to_id, rel_type),
            )
        return cur.lastrowid


def get_relationship(connect_fn: Callable, relationship_id: int) -> Optional[Relationship]:
    """Get a relationship by id, with both endpoint texts."""
    with connect_fn() as conn, wrap_errors("get relationship"):
        row = conn.execute(
            SEARCH_RELATIONSHIPS_SQL + " WHERE r.id = ?", (relationship_id,)
        ).fetchone()
    return row_to_relationship(row) if row else None


def delete_relationship(connect_fn: Callable, relationship_id: int) -> None:
    """Delete a relationship by id."""
    with connect_fn(write=True) as conn, wrap_errors("delete relationship"):
        cur = conn.execute("DELETE FROM relationships WHERE id = ?", (relationship_id,))
        deleted = cur.rowcount
    if deleted == 0:
        raise NotFoundError("relationship", relationship_id)
    logger.debug(f"Deleted relationship {relationship_id}")


def search_relationships(
    connect_fn: Callable,
    from_text: Optional[str] = None,
    to_text: Optional[str] = None,
    rel_type: Optional[str] = None,
    keywords: Sequence[str] = (),
    mode: KeywordMode = KeywordMode.ANY,
) -> List[Relationship]:
    """Search relationships, most recent first.

    ``from_text``, ``to_text`` and ``rel_type`` are independent substring
    filters, ANDed together and with the keyword predicate. Keywords match
    the from-text, the to-text or the type.
    """
    query = SEARCH_RELATIONSHIPS_SQL
    where: List[str] = []
    params: List[Any] = []

    for column, value in (
        (Column.FROM_TEXT, from_text),
        (Column.TO_TEXT, to_text),
        (Column.RELATIONSHIP_TYPE, rel_type),
    ):
        if value:
            where.append(like_clause(column))
            params.append(contains_pattern(value))

    keyword_filter = build_keyword_filter(keywords, RELATIONSHIP_COLUMNS, mode)
    if keyword_filter:
        where.append(f"({keyword_filter.sql})")
        params.extend(keyword_filter.params)

    if where:
        query += " WHERE " + " AND ".join(where)
    query += " ORDER BY r.timestamp DESC, r.id DESC"

    with connect_fn() as conn, wrap_errors("search relationships"):
        rows = conn.execute(query, params).fetchall()

    return [row_to_relationship(row) for row in rows]
