"""Keyword filter construction for the search operations.

Builds parameterized LIKE predicates from a keyword list and a set of
columns. Columns come from the ``Column`` enum only, so no caller-supplied
string ever reaches the SQL text; keywords are always bound as parameters.
"""

from enum import Enum
from typing import List, NamedTuple, Sequence

from amem.types import KeywordMode


class Column(str, Enum):
    """Searchable columns, qualified with the aliases the search queries use."""

    ENTITY_TEXT = "e.text"
    OBSERVATION_TEXT = "o.text"
    FROM_TEXT = "ef.text"
    TO_TEXT = "et.text"
    RELATIONSHIP_TYPE = "r.type"


ENTITY_COLUMNS = (Column.ENTITY_TEXT,)
OBSERVATION_COLUMNS = (Column.OBSERVATION_TEXT, Column.ENTITY_TEXT)
RELATIONSHIP_COLUMNS = (Column.FROM_TEXT, Column.TO_TEXT, Column.RELATIONSHIP_TYPE)


class KeywordFilter(NamedTuple):
    """A SQL predicate fragment and its positional parameters."""

    sql: str
    params: List[str]

    def __bool__(self) -> bool:
        return bool(self.sql)


def escape_like_pattern(pattern: str) -> str:
    """Escape LIKE pattern special characters to prevent pattern injection."""
    return pattern.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def like_clause(column: Column) -> str:
    """Return ``<column> LIKE ? ESCAPE '\\'`` for a validated column."""
    if not isinstance(column, Column):
        raise TypeError(f"Invalid search column: {column!r}")
    return f"{column.value} LIKE ? ESCAPE '\\'"


def contains_pattern(text: str) -> str:
    """Wrap text as an escaped substring pattern."""
    return f"%{escape_like_pattern(text)}%"


def build_keyword_filter(
    keywords: Sequence[str],
    columns: Sequence[Column],
    mode: KeywordMode = KeywordMode.ANY,
) -> KeywordFilter:
    """Build a keyword predicate across columns.

    Each keyword yields a parenthesized OR across all columns. The
    per-keyword clauses are joined with AND for ``KeywordMode.ALL`` and
    with OR for ``KeywordMode.ANY``.

    Args:
        keywords: Search terms. Empty means no filtering.
        columns: Columns to search, at least one.
        mode: How the per-keyword clauses combine.

    Returns:
        KeywordFilter with an empty ``sql`` when there are no keywords,
        otherwise the predicate and its parameters in placeholder order.

    Raises:
        TypeError: If a column is not a ``Column`` member.
        ValueError: If keywords are given but no columns.
    """
    if not keywords:
        return KeywordFilter("", [])
    if not columns:
        raise ValueError("At least one column is required for keyword search")

    mode = KeywordMode(mode)
    column_clauses = [like_clause(col) for col in columns]

    clauses = []
    params: List[str] = []
    for keyword in keywords:
        pattern = contains_pattern(keyword)
        clauses.append(f"({' OR '.join(column_clauses)})")
        params.extend([pattern] * len(column_clauses))

    joiner = " AND " if mode is KeywordMode.ALL else " OR "
    return KeywordFilter(joiner.join(clauses), params)
