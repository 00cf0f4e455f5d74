"""
Shared record types for amem.

The three record dataclasses are the vocabulary between storage and the
CLI: storage returns them, the CLI formats them. The error taxonomy used
across the package also lives here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, NamedTuple, Optional, Union

# === Enums ===


class KeywordMode(str, Enum):
    """How multiple search keywords combine.

    ANY is the union (a row matches if any keyword is found), ALL is the
    intersection (every keyword must be found in at least one column).
    """

    ANY = "any"
    ALL = "all"

    @classmethod
    def from_flags(cls, any_: bool = False, all_: bool = False) -> "KeywordMode":
        """Resolve --any/--all style flags. Defaults to ANY."""
        if any_ and all_:
            raise ValueError("cannot specify both --any and --all")
        return cls.ALL if all_ else cls.ANY


# === Records ===


@dataclass
class Entity:
    """A named thing the agent can remember."""

    id: int
    text: str

    def format(self, with_id: bool = False) -> str:
        if with_id:
            return f"[{self.id}] {self.text}"
        return self.text


@dataclass
class Observation:
    """A timestamped note about one entity.

    ``entity_text`` is denormalized from the owning entity at read time.
    """

    id: int
    entity_id: int
    text: str
    timestamp: str
    entity_text: str = ""

    def format(self, with_id: bool = False) -> str:
        body = f"{self.entity_text}: {self.text} ({self.timestamp})"
        if with_id:
            return f"[{self.id}] {body}"
        return body


@dataclass
class Relationship:
    """A directed, typed edge between two entities (self-loops allowed)."""

    id: int
    from_id: int
    to_id: int
    type: str
    timestamp: str
    from_text: str = ""
    to_text: str = ""

    def format(self, with_id: bool = False) -> str:
        body = f"{self.from_text} -[{self.type}]-> {self.to_text} ({self.timestamp})"
        if with_id:
            return f"[{self.id}] {body}"
        return body


class SearchResults(NamedTuple):
    """Results of a search across all three record kinds."""

    entities: List[Entity]
    observations: List[Observation]
    relationships: List[Relationship]

    @property
    def total(self) -> int:
        return len(self.entities) + len(self.observations) + len(self.relationships)


# === Errors ===


class AmemError(Exception):
    """Base for all amem errors."""

    pass


class ConfigError(AmemError):
    """Raised when configuration is missing, malformed or incomplete."""

    pass


class StoreAccessError(AmemError):
    """Raised when a store cannot be opened. Never retried."""

    pass


class MissingKeyError(StoreAccessError):
    """Raised when no (or an empty) encryption key is supplied."""

    def __init__(self, message: str = "encryption key is required"):
        super().__init__(message)


class WrongKeyError(StoreAccessError):
    """Raised when the store cannot be decrypted with the supplied key."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"failed to open database at {path}: wrong encryption key")


class StoreNotFoundError(StoreAccessError):
    """Raised when the store file does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"database file not found at {path}")


class MigrationError(AmemError):
    """Raised when a pending schema migration cannot be applied."""

    def __init__(self, version: int, message: str):
        self.version = version
        super().__init__(message)


class StorageError(AmemError):
    """Raised on any other store failure, wrapped with operation context."""

    pass


class NotFoundError(AmemError):
    """Raised when a delete or update targets a missing id or text."""

    def __init__(self, kind: str, ident: Union[int, str]):
        self.kind = kind
        self.ident = ident
        if isinstance(ident, int):
            message = f"{kind} with ID {ident} not found"
        else:
            message = f"{kind} '{ident}' not found"
        super().__init__(message)


class ConflictError(AmemError):
    """Raised when a rename collides with an existing entity's text."""

    def __init__(self, old_text: str, new_text: str, cause: Optional[Exception] = None):
        self.old_text = old_text
        self.new_text = new_text
        self.cause = cause
        super().__init__(f"cannot rename entity '{old_text}': entity '{new_text}' already exists")
