"""CLI command handlers."""

from .memory import cmd_add, cmd_delete, cmd_edit, cmd_search
from .store import cmd_agent_docs, cmd_change_key, cmd_check, cmd_init

__all__ = [
    "cmd_add",
    "cmd_agent_docs",
    "cmd_change_key",
    "cmd_check",
    "cmd_delete",
    "cmd_edit",
    "cmd_init",
    "cmd_search",
]
