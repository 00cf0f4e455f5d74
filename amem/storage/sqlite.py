"""SQLite storage backend for amem.

Local encrypted storage with:
- SQLCipher for encryption at rest
- Versioned schema migrations
- Keyword search across entities, observations and relationships
"""

import contextlib
import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence, Union

from amem.types import (
    Entity,
    KeywordMode,
    MigrationError,
    Observation,
    Relationship,
    SearchResults,
    StorageError,
)

from . import entities_crud, observations_crud, relationships_crud
from .connection import (
    REKEY_SUFFIX,
    connect,
    export_rekeyed,
    remove_quietly,
    require_key,
    secure_permissions,
    wrap_errors,
)
from .schema import current_version, migrate_schema, validate_table_name

logger = logging.getLogger(__name__)


class SQLiteStorage:
    """Encrypted SQLite storage for amem.

    Holds one open connection for its lifetime. Every operation runs in a
    transaction scope from ``_connect()``; operations that resolve or
    create an entity before a dependent insert do both in one scope.

    Use ``SQLiteStorage.open()`` for an existing store and
    ``SQLiteStorage.init()`` to create one (or bring one up to date).
    """

    def __init__(self, db_path: Union[str, Path], key: str, *, create: bool = False):
        require_key(key)
        self.db_path = Path(db_path)
        self._key = key

        if create:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = connect(self.db_path, key, create=create)
        if create:
            secure_permissions(self.db_path)

    @classmethod
    def open(cls, db_path: Union[str, Path], key: str) -> "SQLiteStorage":
        """Open an existing store. Does not run migrations."""
        return cls(db_path, key)

    @classmethod
    def init(cls, db_path: Union[str, Path], key: str) -> "SQLiteStorage":
        """Open or create a store and bring its schema up to date.

        Raises:
            MigrationError: A pending migration failed. The handle is closed.
        """
        storage = cls(db_path, key, create=True)
        try:
            storage.migrate()
        except MigrationError:
            storage.close()
            raise
        return storage

    @property
    def path(self) -> Path:
        return self.db_path

    def __enter__(self) -> "SQLiteStorage":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @property
    def closed(self) -> bool:
        return self._conn is None

    @contextlib.contextmanager
    def _connect(self, write: bool = False):
        """Context manager that scopes one transaction on the shared connection.

        Handles:
        - BEGIN (IMMEDIATE for writes, so the write lock is taken up front)
        - Commit on success
        - Rollback on exception
        Nested scopes join the enclosing transaction.
        """
        if self._conn is None:
            raise StorageError("database is closed")

        conn = self._conn
        if conn.in_transaction:
            yield conn
            return

        with wrap_errors("begin transaction"):
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
        try:
            yield conn
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        else:
            with wrap_errors("commit transaction"):
                conn.execute("COMMIT")

    # === Schema ===

    def migrate(self) -> List[int]:
        """Apply pending schema migrations. Returns the versions applied."""
        if self._conn is None:
            raise StorageError("database is closed")
        return migrate_schema(self._conn)

    def schema_version(self) -> int:
        """Get the highest applied schema version."""
        with self._connect() as conn, wrap_errors("get schema version"):
            return current_version(conn)

    # === Store state ===

    def exists(self) -> bool:
        """Check whether the store file exists on disk."""
        return self.db_path.is_file()

    def is_readable(self) -> bool:
        """Check that the store decrypts and answers a query."""
        try:
            with self._connect() as conn:
                conn.execute("SELECT COUNT(*) FROM sqlite_master").fetchone()
            return True
        except Exception as e:
            logger.debug(f"Store not readable: {e}")
            return False

    def rekey(self, new_key: str) -> None:
        """Re-encrypt the store under ``new_key`` in place.

        The store is exported to a sibling file under the new key, the copy
        is verified, and only then swapped in with an atomic rename. If any
        step fails the original file is untouched and this handle keeps
        working under the old key.
        """
        require_key(new_key)
        if self._conn is None:
            raise StorageError("database is closed")

        scratch = self.db_path.with_name(self.db_path.name + REKEY_SUFFIX)
        remove_quietly(scratch)

        logger.info(f"Re-encrypting {self.db_path}")
        try:
            with wrap_errors("export database"):
                export_rekeyed(self._conn, scratch, new_key)
            connect(scratch, new_key).close()
            secure_permissions(scratch)
        except Exception:
            remove_quietly(scratch)
            raise

        self._conn.close()
        self._conn = None
        try:
            os.replace(scratch, self.db_path)
        except OSError as e:
            remove_quietly(scratch)
            self._conn = connect(self.db_path, self._key)
            raise StorageError(f"failed to replace database: {e}") from e

        self._key = new_key
        self._conn = connect(self.db_path, new_key)
        logger.info(f"Re-encrypted {self.db_path}")

    # === Entities ===

    def add_entity(self, text: str) -> int:
        """Add an entity, returning its id whether new or pre-existing."""
        return entities_crud.add_entity(self._connect, text)

    def get_entity(self, entity_id: int) -> Optional[Entity]:
        return entities_crud.get_entity(self._connect, entity_id)

    def get_entity_by_text(self, text: str) -> Optional[Entity]:
        return entities_crud.get_entity_by_text(self._connect, text)

    def delete_entity(self, entity_id: int) -> None:
        """Delete an entity by id, cascading to its observations and relationships."""
        entities_crud.delete_entity(self._connect, entity_id)

    def delete_entity_by_text(self, text: str) -> None:
        """Delete an entity by text, cascading to its observations and relationships."""
        entities_crud.delete_entity_by_text(self._connect, text)

    def update_entity(self, old_text: str, new_text: str) -> None:
        """Rename an entity."""
        entities_crud.update_entity(self._connect, old_text, new_text)

    def search_entities(
        self, keywords: Sequence[str] = (), mode: KeywordMode = KeywordMode.ANY
    ) -> List[Entity]:
        return entities_crud.search_entities(self._connect, keywords, mode)

    # === Observations ===

    def add_observation(self, entity_text: str, text: str) -> int:
        """Add an observation, creating the entity if needed."""
        return observations_crud.add_observation(self._connect, entity_text, text)

    def get_observation(self, observation_id: int) -> Optional[Observation]:
        return observations_crud.get_observation(self._connect, observation_id)

    def delete_observation(self, observation_id: int) -> None:
        observations_crud.delete_observation(self._connect, observation_id)

    def update_observation(self, observation_id: int, new_text: str) -> None:
        observations_crud.update_observation(self._connect, observation_id, new_text)

    def update_observation_entity(self, observation_id: int, new_entity_id: int) -> None:
        observations_crud.update_observation_entity(self._connect, observation_id, new_entity_id)

    def search_observations(
        self,
        about: Optional[str] = None,
        keywords: Sequence[str] = (),
        mode: KeywordMode = KeywordMode.ANY,
    ) -> List[Observation]:
        return observations_crud.search_observations(self._connect, about, keywords, mode)

    # === Relationships ===

    def add_relationship(self, from_text: str, to_text: str, rel_type: str) -> int:
        """Add a relationship, creating either endpoint if needed."""
        return relationships_crud.add_relationship(self._connect, from_text, to_text, rel_type)

    def get_relationship(self, relationship_id: int) -> Optional[Relationship]:
        return relationships_crud.get_relationship(self._connect, relationship_id)

    def delete_relationship(self, relationship_id: int) -> None:
        relationships_crud.delete_relationship(self._connect, relationship_id)

    def search_relationships(
        self,
        from_text: Optional[str] = None,
        to_text: Optional[str] = None,
        rel_type: Optional[str] = None,
        keywords: Sequence[str] = (),
        mode: KeywordMode = KeywordMode.ANY,
    ) -> List[Relationship]:
        return relationships_crud.search_relationships(
            self._connect, from_text, to_text, rel_type, keywords, mode
        )

    # === Search / Stats ===

    def search_all(
        self, keywords: Sequence[str] = (), mode: KeywordMode = KeywordMode.ANY
    ) -> SearchResults:
        """Search all three kinds with the same keywords, as three separate queries."""
        return SearchResults(
            entities=self.search_entities(keywords, mode),
            observations=self.search_observations(None, keywords, mode),
            relationships=self.search_relationships(None, None, None, keywords, mode),
        )

    def _count(self, table: str) -> int:
        table = validate_table_name(table)
        with self._connect() as conn, wrap_errors(f"count {table}"):
            return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def count_entities(self) -> int:
        return self._count("entities")

    def count_observations(self) -> int:
        return self._count("observations")

    def count_relationships(self) -> int:
        return self._count("relationships")
