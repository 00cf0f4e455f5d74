"""Store setup commands: init, check, change-encryption-key."""

import logging
import sys
from pathlib import Path

from keyring.errors import KeyringError

from amem.config import (
    DEFAULT_DB_FILENAME,
    GLOBAL_SCOPE,
    LOCAL_SCOPE,
    Config,
    global_config_path,
    keyring_account_for,
    load_config,
    local_config_path,
    write_config,
)
from amem.keychain import KEY_ENV_VAR, set_key
from amem.storage import SQLiteStorage
from amem.storage.connection import require_key
from amem.types import AmemError, ConfigError, StorageError, StoreNotFoundError

from .helpers import Prompter

logger = logging.getLogger(__name__)

AGENT_DOCS = """<memory>
\t- If the user instructs you to use your memory, use the 'amem' utility.
\t- Run 'amem help' to see the available commands.
\t- Use 'amem search' to find relevant memories based on the conversation and user's request.
\t- As the conversation progresses, use 'amem add' to add new memories.
\t- Be judicious with the memories you add, making sure each is likely to have long-term value.
\t- Prefer proper relationships over relational observations.
</memory>"""


def cmd_agent_docs(args) -> None:
    """Print the snippet to paste into an agent's instructions."""
    print(AGENT_DOCS)


def cmd_init(args, prompter: Prompter) -> None:
    """Create a new store and save its config and key."""
    if args.use_global and args.local:
        raise ValueError("cannot specify both --global and --local")

    cwd = Path.cwd()
    if args.local:
        config_path = local_config_path(cwd)
        scope = LOCAL_SCOPE
    else:
        config_path = global_config_path()
        scope = GLOBAL_SCOPE

    db_path = args.db_path
    if not db_path:
        default = (cwd if args.local else Path.home()) / DEFAULT_DB_FILENAME
        db_path = prompter.prompt("Database path", str(default))

    key = args.encryption_key or prompter.secret_confirmed("Encryption key")
    require_key(key)

    if config_path.exists():
        print(f"Warning: overwriting existing config at {config_path}", file=sys.stderr)

    db_file = Path(db_path).expanduser().absolute()
    if db_file.is_dir():
        db_file = db_file / DEFAULT_DB_FILENAME
    if db_file.exists():
        raise ConfigError(f"database already exists at {db_file} (will not overwrite)")

    with SQLiteStorage.init(db_file, key):
        pass

    write_config(config_path, Config(db_path=str(db_file)))
    set_key(keyring_account_for(config_path, scope), key)

    print(f"Database initialized at {db_file}")
    print(f"Config saved to {config_path}")


def cmd_check(args) -> None:
    """Verify the config, key and store, and print record counts."""
    config = load_config()
    print(f"✓ Config loaded ({config.scope}): {config.config_path}")
    print(f"✓ Database path: {config.db_path}")

    if not Path(config.db_path).is_file():
        print(f"✗ Database file not found at {config.db_path}")
        raise StoreNotFoundError(config.db_path)
    print("✓ Database file exists")

    with SQLiteStorage.open(config.db_path, config.encryption_key) as storage:
        print("✓ Encryption key valid")
        entities = storage.count_entities()
        observations = storage.count_observations()
        relationships = storage.count_relationships()

    print("\nDatabase contents:")
    print(f"  Entities: {entities}")
    print(f"  Observations: {observations}")
    print(f"  Relationships: {relationships}")


def cmd_change_key(args, prompter: Prompter) -> None:
    """Re-encrypt the store under a new key and update the keychain."""
    new_key = args.new_key
    require_key(new_key)

    config = load_config()
    if not Path(config.db_path).is_file():
        raise StoreNotFoundError(config.db_path)

    print("WARNING: This will re-encrypt the database with a new key.")
    print("Make sure you have a backup of your database before proceeding.")
    print(f"Database: {config.db_path}")
    print()
    confirmation = prompter.prompt("Continue? Type 'yes' to confirm")
    if confirmation != "yes":
        print("Operation cancelled.")
        return

    with SQLiteStorage.open(config.db_path, config.encryption_key) as storage:
        storage.rekey(new_key)

    try:
        set_key(config.keyring_account, new_key)
    except KeyringError as e:
        logger.warning(f"Failed to save new key to keychain: {e}")
        print("Database re-encrypted, but the new key could not be saved to the keychain.")
        print(f"New key: {new_key}")
        print(f"Set {KEY_ENV_VAR} to this key to keep using the database.")
        return

    try:
        with SQLiteStorage.open(config.db_path, new_key):
            pass
    except AmemError as e:
        raise StorageError(f"database re-encrypted but verification failed: {e}") from e

    print("✓ Database encryption key changed successfully")
