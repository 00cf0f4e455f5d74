"""Configuration file handling for amem.

A config file is a small JSON document naming the store path:

    {"db_path": "/home/me/amem.db"}

It lives either globally (``$XDG_CONFIG_HOME/amem/config.json``) or
locally to a project (``<dir>/.amem/config.json``). Local configs win and
are found by searching the working directory and its parents. The
encryption key is never written here; see ``amem.keychain``.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from amem.types import ConfigError

logger = logging.getLogger(__name__)

APP_NAME = "amem"
CONFIG_FILENAME = "config.json"
LOCAL_DIRNAME = ".amem"
DEFAULT_DB_FILENAME = "amem.db"

GLOBAL_SCOPE = "global"
LOCAL_SCOPE = "local"

PathLike = Union[str, Path]


@dataclass
class Config:
    """Contents of a config file."""

    db_path: str

    def to_dict(self) -> dict:
        return {"db_path": self.db_path}


@dataclass
class LoadedConfig:
    """A discovered config together with where it came from and its key."""

    db_path: str
    encryption_key: str
    config_path: Path
    scope: str
    keyring_account: str


def global_config_path() -> Path:
    """Get the global config path, honouring XDG_CONFIG_HOME."""
    base = os.environ.get("XDG_CONFIG_HOME")
    config_home = Path(base) if base else Path.home() / ".config"
    return (config_home / APP_NAME / CONFIG_FILENAME).absolute()


def local_config_path(directory: PathLike) -> Path:
    """Get the local config path for a project directory."""
    return Path(directory) / LOCAL_DIRNAME / CONFIG_FILENAME


def find_local_config(start: PathLike) -> Optional[Path]:
    """Search ``start`` and its parents for a local config file."""
    start = Path(start).absolute()
    for directory in (start, *start.parents):
        candidate = local_config_path(directory)
        if candidate.is_file():
            return candidate
    return None


def keyring_account_for(config_path: Path, scope: str) -> str:
    """Keychain account name for a config: ``global`` or ``local:<project dir>``."""
    if scope == LOCAL_SCOPE:
        return f"local:{config_path.parent.parent}"
    return GLOBAL_SCOPE


def read_config(path: PathLike) -> Config:
    """Read and validate a config file.

    Raises:
        FileNotFoundError: The file does not exist.
        ConfigError: The file is not valid JSON or has no db_path.
    """
    path = Path(path)
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"invalid config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"invalid config file {path}: expected a JSON object")
    db_path = data.get("db_path")
    if not isinstance(db_path, str) or not db_path:
        raise ConfigError(f"invalid config file {path}: db_path is required")
    return Config(db_path=db_path)


def write_config(path: PathLike, config: Config) -> None:
    """Write a config file, creating parent directories as needed."""
    if not config.db_path:
        raise ConfigError("db_path is required")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
        f.write("\n")
    logger.debug(f"Wrote config to {path}")


def discover_config(cwd: Optional[PathLike] = None) -> Tuple[Path, str]:
    """Find the config in effect for ``cwd``.

    Returns:
        (config_path, scope) for the local config if one exists above
        ``cwd``, otherwise for the global config.

    Raises:
        ConfigError: Neither a local nor a global config exists.
    """
    cwd = Path(cwd) if cwd is not None else Path.cwd()
    local = find_local_config(cwd)
    if local is not None:
        return local, LOCAL_SCOPE

    global_path = global_config_path()
    if global_path.is_file():
        return global_path, GLOBAL_SCOPE

    raise ConfigError(
        f"no config found (looked for {LOCAL_DIRNAME}/{CONFIG_FILENAME} from {cwd} "
        f"and {global_path}); run 'amem init' first"
    )


def load_config(cwd: Optional[PathLike] = None) -> LoadedConfig:
    """Discover the config, read it and look up its encryption key."""
    from amem.keychain import get_key

    config_path, scope = discover_config(cwd)
    try:
        config = read_config(config_path)
    except FileNotFoundError as e:
        raise ConfigError(f"failed to load config: {e}") from e

    account = keyring_account_for(config_path, scope)
    return LoadedConfig(
        db_path=config.db_path,
        encryption_key=get_key(account),
        config_path=config_path,
        scope=scope,
        keyring_account=account,
    )
