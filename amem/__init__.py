"""
amem - Persistent, queryable memory for LLM agents.

Entities, observations and relationships in a small encrypted local store.
"""

from .storage import SQLiteStorage
from .types import Entity, KeywordMode, Observation, Relationship

try:
    from importlib.metadata import version

    __version__ = version("amem")
except Exception:
    __version__ = "0.0.0"

__all__ = ["SQLiteStorage", "Entity", "Observation", "Relationship", "KeywordMode"]
