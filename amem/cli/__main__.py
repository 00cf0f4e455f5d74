"""
amem CLI - Command-line interface for encrypted agent memory.

Usage:
    amem init [--global | --local] [--db-path PATH] [--encryption-key KEY]
    amem check
    amem change-encryption-key --new-key KEY
    amem add entity NAME...
    amem add observation --entity NAME --text TEXT
    amem add relationship --from NAME --to NAME --type TYPE
    amem search [entities|observations|relationships] [KEYWORD...] [--any | --all] [--with-ids]
    amem delete entity [NAME] [--ids ID,...]
    amem delete observation --ids ID,...
    amem delete relationship --ids ID,...
    amem edit entity NAME --new-name NAME
    amem edit observation --id ID [--new-text TEXT] [--new-entity-id ID]
    amem agent-docs
"""

import argparse
import logging
import os
import sys

from amem import __version__
from amem.types import AmemError

from .commands import (
    cmd_add,
    cmd_agent_docs,
    cmd_change_key,
    cmd_check,
    cmd_delete,
    cmd_edit,
    cmd_init,
    cmd_search,
)
from .commands.helpers import Prompter, open_configured_storage, parse_ids

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV_VAR = "AMEM_LOG_LEVEL"
SEARCH_TARGETS = ("all", "entities", "observations", "relationships")


def configure_logging() -> None:
    """Log warnings and above to stderr, or the level named by AMEM_LOG_LEVEL."""
    level = getattr(logging, os.environ.get(LOG_LEVEL_ENV_VAR, "").upper(), None)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _add_search_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("keywords", nargs="*", help="Keywords to match (substring, case-insensitive)")
    parser.add_argument("--with-ids", action="store_true", help="Show record IDs")
    parser.add_argument("--any", dest="match_any", action="store_true",
                        help="Match any keyword (default)")
    parser.add_argument("--all", dest="match_all", action="store_true",
                        help="Match all keywords")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="amem",
        description="Encrypted memory for AI agents: entities, observations and relationships",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("help", help="Show this help")
    subparsers.add_parser("version", help="Show the amem version")
    subparsers.add_parser("agent-docs", help="Print instructions for agents on using amem")

    # init
    p_init = subparsers.add_parser("init", help="Create a database and save its config")
    p_init.add_argument("--global", dest="use_global", action="store_true",
                        help="Save a global config (default)")
    p_init.add_argument("--local", action="store_true",
                        help="Save a config local to the current directory")
    p_init.add_argument("--db-path", help="Database file path (prompted if omitted)")
    p_init.add_argument("--encryption-key", help="Encryption key (prompted if omitted)")

    # check
    subparsers.add_parser("check", help="Verify config, encryption key and database")

    # change-encryption-key
    p_rekey = subparsers.add_parser("change-encryption-key", help="Re-encrypt the database with a new key")
    p_rekey.add_argument("--new-key", required=True, help="The new encryption key")

    # add
    p_add = subparsers.add_parser("add", help="Add memories")
    add_sub = p_add.add_subparsers(dest="add_type", required=True)

    add_entity = add_sub.add_parser("entity", help="Add one or more entities")
    add_entity.add_argument("names", nargs="*", help="Entity names")

    add_obs = add_sub.add_parser("observation", help="Add an observation about an entity")
    add_obs.add_argument("--entity", required=True, help="Entity the observation is about")
    add_obs.add_argument("--text", required=True, help="Observation text")

    add_rel = add_sub.add_parser("relationship", help="Add a relationship between entities")
    add_rel.add_argument("--from", dest="from_text", required=True, help="Source entity")
    add_rel.add_argument("--to", dest="to_text", required=True, help="Target entity")
    add_rel.add_argument("--type", required=True, help="Relationship type")

    # search
    p_search = subparsers.add_parser("search", help="Search memories")
    search_sub = p_search.add_subparsers(dest="search_target")

    _add_search_options(search_sub.add_parser("all", help="Search everything (default)"))
    _add_search_options(search_sub.add_parser("entities", help="Search entities"))

    search_obs = search_sub.add_parser("observations", help="Search observations")
    _add_search_options(search_obs)
    search_obs.add_argument("--about", help="Only observations about matching entities")

    search_rel = search_sub.add_parser("relationships", help="Search relationships")
    _add_search_options(search_rel)
    search_rel.add_argument("--from", dest="from_text", help="Only relationships from matching entities")
    search_rel.add_argument("--to", dest="to_text", help="Only relationships to matching entities")
    search_rel.add_argument("--type", help="Only relationships of matching type")

    # delete
    p_delete = subparsers.add_parser("delete", help="Delete memories")
    delete_sub = p_delete.add_subparsers(dest="delete_type", required=True)

    del_entity = delete_sub.add_parser("entity", help="Delete entities by name or ID")
    del_entity.add_argument("name", nargs="?", help="Entity name")
    del_entity.add_argument("--ids", type=parse_ids, action="append",
                            help="Entity IDs, comma-separated (repeatable)")

    for kind in ("observation", "relationship"):
        p = delete_sub.add_parser(kind, help=f"Delete {kind}s by ID")
        p.add_argument("--ids", type=parse_ids, action="append", required=True,
                       help=f"{kind.capitalize()} IDs, comma-separated (repeatable)")

    # edit
    p_edit = subparsers.add_parser("edit", help="Edit memories")
    edit_sub = p_edit.add_subparsers(dest="edit_type", required=True)

    edit_entity = edit_sub.add_parser("entity", help="Rename an entity")
    edit_entity.add_argument("name", help="Current entity name")
    edit_entity.add_argument("--new-name", required=True, help="New entity name")

    edit_obs = edit_sub.add_parser("observation", help="Edit an observation")
    edit_obs.add_argument("--id", type=int, required=True, help="Observation ID")
    edit_obs.add_argument("--new-text", default=None, help="New observation text")
    edit_obs.add_argument("--new-entity-id", type=int, default=None,
                          help="Move the observation to another entity")

    return parser


def route_bare_search(argv):
    """Insert the implicit ``all`` target after ``search`` when none is given.

    This is needed because argparse subparsers consume positional args
    before the parent parser, so ``amem search alice`` would otherwise be
    read as an unknown target.
    """
    argv = list(argv)
    for i, arg in enumerate(argv):
        if arg == "search":
            following = argv[i + 1] if i + 1 < len(argv) else None
            if following not in SEARCH_TARGETS and following not in ("-h", "--help"):
                argv.insert(i + 1, "all")
            break
        if not arg.startswith("-"):
            break
    return argv


def main(argv=None):
    configure_logging()

    parser = build_parser()
    argv = sys.argv[1:] if argv is None else argv
    args = parser.parse_args(route_bare_search(argv))

    prompter = Prompter()

    try:
        if args.command in (None, "help"):
            parser.print_help()
        elif args.command == "version":
            print(f"amem {__version__}")
        elif args.command == "agent-docs":
            cmd_agent_docs(args)
        elif args.command == "init":
            cmd_init(args, prompter)
        elif args.command == "check":
            cmd_check(args)
        elif args.command == "change-encryption-key":
            cmd_change_key(args, prompter)
        elif args.command == "add":
            cmd_add(args, open_configured_storage)
        elif args.command == "search":
            cmd_search(args, open_configured_storage)
        elif args.command == "delete":
            cmd_delete(args, open_configured_storage)
        elif args.command == "edit":
            cmd_edit(args, open_configured_storage)
    except (AmemError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)
    except Exception as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
