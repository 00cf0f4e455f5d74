"""SQLCipher connection handling for amem storage.

Opens encrypted store files, validates the key, enables foreign-key
enforcement and re-encrypts a store under a new key. The driver is
``sqlcipher3``, a drop-in DB-API replacement for ``sqlite3`` built
against SQLCipher.
"""

import contextlib
import logging
import os
from pathlib import Path
from typing import Union

from sqlcipher3 import dbapi2 as sqlcipher

from amem.types import MissingKeyError, StorageError, StoreNotFoundError, WrongKeyError

logger = logging.getLogger(__name__)

# Re-exported so storage modules catch driver errors without importing the driver
DatabaseError = sqlcipher.DatabaseError
IntegrityError = sqlcipher.IntegrityError
Row = sqlcipher.Row

CIPHER_PAGE_SIZE = 4096
BUSY_TIMEOUT_MS = 5000
REKEY_SUFFIX = ".rekey"

PathLike = Union[str, Path]


def require_key(key: str) -> str:
    """Reject a missing or empty key before touching the filesystem."""
    if not key:
        raise MissingKeyError()
    return key


def quote_key(key: str) -> str:
    """Quote a passphrase as a SQL string literal for PRAGMA key/rekey.

    PRAGMA statements do not accept bound parameters.
    """
    return "'" + key.replace("'", "''") + "'"


def connect(path: PathLike, key: str, *, create: bool = False):
    """Open an encrypted store and verify the key.

    Args:
        path: Store file location.
        key: Passphrase. Must be non-empty.
        create: Allow creating the file when it does not exist.

    Returns:
        An open connection in autocommit mode with foreign keys enabled.

    Raises:
        MissingKeyError: Key is empty.
        StoreNotFoundError: File is absent and ``create`` is False.
        WrongKeyError: The file cannot be decrypted with ``key``.
        StorageError: Any other driver failure.
    """
    require_key(key)
    path = Path(path)
    if not create and not path.is_file():
        raise StoreNotFoundError(str(path))

    try:
        conn = sqlcipher.connect(str(path), isolation_level=None)
    except sqlcipher.Error as e:
        raise StorageError(f"failed to open database: {e}") from e

    try:
        conn.row_factory = sqlcipher.Row
        conn.execute(f"PRAGMA key = {quote_key(key)}")
        conn.execute(f"PRAGMA cipher_page_size = {CIPHER_PAGE_SIZE}")
        try:
            conn.execute("SELECT COUNT(*) FROM sqlite_master").fetchone()
        except sqlcipher.DatabaseError as e:
            raise WrongKeyError(str(path)) from e
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
    except WrongKeyError:
        conn.close()
        raise
    except sqlcipher.Error as e:
        conn.close()
        raise StorageError(f"failed to connect to database: {e}") from e

    return conn


def secure_permissions(path: PathLike) -> None:
    """Restrict the store file to owner read/write where the OS allows."""
    try:
        os.chmod(path, 0o600)
    except OSError as e:
        logger.warning(f"Could not set secure permissions: {e}")


def export_rekeyed(conn, target: PathLike, new_key: str) -> None:
    """Copy the open store into ``target`` encrypted under ``new_key``.

    Uses ``sqlcipher_export`` on an attached database. ``target`` must not
    exist yet.
    """
    require_key(new_key)
    target = Path(target)
    if target.exists():
        raise StorageError(f"refusing to overwrite existing file {target}")

    conn.execute("ATTACH DATABASE ? AS rekeyed KEY ?", (str(target), new_key))
    try:
        conn.execute("SELECT sqlcipher_export('rekeyed')").fetchone()
        version = conn.execute("PRAGMA user_version").fetchone()[0]
        conn.execute(f"PRAGMA rekeyed.user_version = {int(version)}")
    finally:
        conn.execute("DETACH DATABASE rekeyed")


def remove_quietly(path: PathLike) -> None:
    """Delete a scratch file if it exists."""
    with contextlib.suppress(FileNotFoundError):
        os.remove(path)


@contextlib.contextmanager
def wrap_errors(operation: str):
    """Re-raise driver errors as StorageError naming the failed operation."""
    try:
        yield
    except sqlcipher.Error as e:
        raise StorageError(f"failed to {operation}: {e}") from e
