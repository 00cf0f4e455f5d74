"""OS keychain access for amem encryption keys.

Keys are stored under the ``amem`` service with one account per config:
``global`` for the global config and ``local:<project dir>`` for local
ones. When the keychain is unavailable or has no entry, the
``AMEM_ENCRYPTION_KEY`` environment variable is used instead.
"""

import logging
import os

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from amem.types import ConfigError

logger = logging.getLogger(__name__)

SERVICE = "amem"
KEY_ENV_VAR = "AMEM_ENCRYPTION_KEY"


def set_key(account: str, key: str) -> None:
    """Store an encryption key in the OS keychain.

    Raises:
        KeyringError: The keychain backend rejected the write.
    """
    keyring.set_password(SERVICE, account, key)
    logger.debug(f"Stored encryption key for account {account!r}")


def get_key(account: str) -> str:
    """Retrieve an encryption key, falling back to AMEM_ENCRYPTION_KEY.

    Raises:
        ConfigError: Neither the keychain nor the environment has a key.
    """
    reason = "no keychain entry"
    try:
        key = keyring.get_password(SERVICE, account)
    except KeyringError as e:
        logger.debug(f"Keychain lookup failed for {account!r}: {e}")
        key = None
        reason = str(e)

    if key:
        return key

    env_key = os.environ.get(KEY_ENV_VAR)
    if env_key:
        return env_key

    raise ConfigError(f"key not found in keychain and {KEY_ENV_VAR} not set: {reason}")


def delete_key(account: str) -> bool:
    """Remove an encryption key from the OS keychain.

    Returns:
        True if a key was removed, False if there was none.
    """
    try:
        keyring.delete_password(SERVICE, account)
    except PasswordDeleteError:
        return False
    return True
