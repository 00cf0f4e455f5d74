"""Shared helper functions for CLI commands."""

import argparse
import contextlib
import getpass
import re
import sys
from typing import IO, List, Optional

from amem.config import load_config
from amem.storage import SQLiteStorage


def validate_input(value: str, field_name: str, max_length: int = 10000) -> str:
    """Validate and sanitize CLI inputs."""
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")

    if len(value) > max_length:
        raise ValueError(f"{field_name} too long (max {max_length} characters)")

    # Remove null bytes and control characters except tabs and newlines
    sanitized = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", value)

    return sanitized


def parse_ids(value: str) -> List[int]:
    """Parse an --ids value: one id or a comma-separated list."""
    ids = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid id: '{part}'")
    if not ids:
        raise argparse.ArgumentTypeError("at least one id is required")
    return ids


def flatten_ids(groups: Optional[List[List[int]]]) -> List[int]:
    """Flatten repeated --ids values into one list."""
    return [i for group in groups or [] for i in group]


@contextlib.contextmanager
def open_configured_storage(cwd=None):
    """Open the store named by the config in effect, migrated to the latest schema."""
    config = load_config(cwd)
    storage = SQLiteStorage.open(config.db_path, config.encryption_key)
    try:
        storage.migrate()
        yield storage
    finally:
        storage.close()


class Prompter:
    """Interactive input for one CLI invocation.

    Reads from an explicit input stream so repeated prompts share one
    buffer. Secret input is hidden when the stream is a terminal.
    """

    def __init__(self, stdin: Optional[IO[str]] = None, stdout: Optional[IO[str]] = None):
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout

    def _readline(self) -> str:
        line = self.stdin.readline()
        if not line:
            raise ValueError("no input provided")
        return line.rstrip("\r\n")

    def prompt(self, message: str, default: str = "") -> str:
        """Ask for a value, returning ``default`` on an empty answer."""
        if default:
            self.stdout.write(f"{message} [{default}]: ")
        else:
            self.stdout.write(f"{message}: ")
        self.stdout.flush()

        value = self._readline().strip()
        if not value and default:
            return default
        return value

    def secret(self, message: str) -> str:
        """Ask for a secret without echoing it on a terminal."""
        if self.stdin.isatty():
            value = getpass.getpass(f"{message}: ", stream=self.stdout)
        else:
            self.stdout.write(f"{message}: ")
            self.stdout.flush()
            value = self._readline()
            self.stdout.write("\n")

        value = value.strip()
        if not value:
            raise ValueError("no input provided")
        return value

    def secret_confirmed(self, message: str) -> str:
        """Ask for a secret twice and require both answers to match."""
        first = self.secret(message)
        second = self.secret(f"{message} (confirm)")
        if first != second:
            raise ValueError("keys do not match")
        return first
