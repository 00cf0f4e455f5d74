"""Observation CRUD operations extracted from SQLiteStorage.

Observations belong to exactly one entity. Adding one by entity text
creates the entity if needed, in the same transaction as the insert.
"""

import logging
from typing import Any, Callable, List, Optional, Sequence

from amem.types import KeywordMode, NotFoundError, Observation

from .connection import wrap_errors
from .entities_crud import entity_exists, resolve_entity_id
from .query import OBSERVATION_COLUMNS, Column, build_keyword_filter, contains_pattern, like_clause

logger = logging.getLogger(__name__)

SEARCH_OBSERVATIONS_SQL = """
    SELECT o.id, o.entity_id, e.text AS entity_text, o.text, o.timestamp
    FROM observations o
    JOIN entities e ON o.entity_id = e.id
"""


def row_to_observation(row: Any) -> Observation:
    """Convert a database row to an Observation dataclass."""
    return Observation(
        id=row["id"],
        entity_id=row["entity_id"],
        text=row["text"],
        timestamp=row["timestamp"],
        entity_text=row["entity_text"],
    )


def add_observation(connect_fn: Callable, entity_text: str, text: str) -> int:
    """Add an observation about an entity, creating the entity if needed.

    Returns:
        The new observation's id.
    """
    with connect_fn(write=True) as conn:
        entity_id = resolve_entity_id(conn, entity_text)
        with wrap_errors("insert observation"):
            cur = conn.execute(
                "INSERT INTO observations (entity_id, text) VALUES (?, ?)",
                (entity_id, text),
            )
        return cur.lastrowid


def get_observation(connect_fn: Callable, observation_id: int) -> Optional[Observation]:
    """Get an observation by id, with its entity text."""
    with connect_fn() as conn, wrap_errors("get observation"):
        row = conn.execute(
            SEARCH_OBSERVATIONS_SQL + " WHERE o.id = ?", (observation_id,)
        ).fetchone()
    return row_to_observation(row) if row else None


def delete_observation(connect_fn: Callable, observation_id: int) -> None:
    """Delete an observation by id."""
    with connect_fn(write=True) as conn, wrap_errors("delete observation"):
        cur = conn.execute("DELETE FROM observations WHERE id = ?", (observation_id,))
        deleted = cur.rowcount
    if deleted == 0:
        raise NotFoundError("observation", observation_id)
    logger.debug(f"Deleted observation {observation_id}")


def update_observation(connect_fn: Callable, observation_id: int, new_text: str) -> None:
    """Replace an observation's text. An empty string is a valid value."""
    with connect_fn(write=True) as conn, wrap_errors("update observation"):
        cur = conn.execute(
            "UPDATE observations SET text = ? WHERE id = ?", (new_text, observation_id)
        )
        updated = cur.rowcount
    if updated == 0:
        raise NotFoundError("observation", observation_id)


def update_observation_entity(
    connect_fn: Callable, observation_id: int, new_entity_id: int
) -> None:
    """Move an observation to another entity.

    The target entity is checked before writing, inside the same
    transaction as the update.

    Raises:
        NotFoundError: The entity or the observation does not exist.
    """
    with connect_fn(write=True) as conn:
        if not entity_exists(conn, new_entity_id):
            raise NotFoundError("entity", new_entity_id)
        with wrap_errors("update observation"):
            cur = conn.execute(
                "UPDATE observations SET entity_id = ? WHERE id = ?",
                (new_entity_id, observation_id),
            )
            updated = cur.rowcount
        if updated == 0:
            raise NotFoundError("observation", observation_id)


def search_observations(
    connect_fn: Callable,
    about: Optional[str] = None,
    keywords: Sequence[str] = (),
    mode: KeywordMode = KeywordMode.ANY,
) -> List[Observation]:
    """Search observations, most recent first.

    Args:
        about: Optional substring filter on the owning entity's text,
            ANDed with the keyword predicate.
        keywords: Matched against observation text and entity text.
        mode: How keywords combine.
    """
    query = SEARCH_OBSERVATIONS_SQL
    where: List[str] = []
    params: List[Any] = []

    if about:
        where.append(like_clause(Column.ENTITY_TEXT))
        params.append(contains_pattern(about))

    keyword_filter = build_keyword_filter(keywords, OBSERVATION_COLUMNS, mode)
    if keyword_filter:
        where.append(f"({keyword_filter.sql})")
        params.extend(keyword_filter.params)

    if where:
        query += " WHERE " + " AND ".join(where)
    query += " ORDER BY o.timestamp DESC, o.id DESC"

    with connect_fn() as conn, wrap_errors("search observations"):
        rows = conn.execute(query, params).fetchall()

    return [row_to_observation(row) for row in rows]
