"""Memory commands: add, search, delete, edit."""

from amem.cli.view import print_all, print_entities, print_observations, print_relationships
from amem.types import KeywordMode

from .helpers import flatten_ids, validate_input


def cmd_add(args, open_storage) -> None:
    """Add entities, an observation or a relationship."""
    if args.add_type == "entity":
        names = [validate_input(n, "entity name") for n in args.names or []]
        if not names:
            raise ValueError("at least one entity name is required")
        with open_storage() as storage:
            for name in names:
                storage.add_entity(name)
                print(f"Added entity: {name}")

    elif args.add_type == "observation":
        entity = validate_input(args.entity, "entity")
        text = validate_input(args.text, "text")
        with open_storage() as storage:
            storage.add_observation(entity, text)
        print(f"Added observation about '{entity}'")

    elif args.add_type == "relationship":
        from_text = validate_input(args.from_text, "from")
        to_text = validate_input(args.to_text, "to")
        rel_type = validate_input(args.type, "type", max_length=200)
        with open_storage() as storage:
            storage.add_relationship(from_text, to_text, rel_type)
        print(f"Added relationship: {from_text} -[{rel_type}]-> {to_text}")


def cmd_search(args, open_storage) -> None:
    """Search memories and print the matches."""
    mode = KeywordMode.from_flags(args.match_any, args.match_all)
    keywords = [validate_input(k, "keyword") for k in args.keywords or []]
    target = getattr(args, "search_target", None) or "all"
    with_ids = args.with_ids

    with open_storage() as storage:
        if target == "entities":
            print_entities(storage.search_entities(keywords, mode), with_ids)
        elif target == "observations":
            about = validate_input(args.about, "about") if args.about else None
            print_observations(storage.search_observations(about, keywords, mode), with_ids)
        elif target == "relationships":
            print_relationships(
                storage.search_relationships(
                    from_text=args.from_text or None,
                    to_text=args.to_text or None,
                    rel_type=args.type or None,
                    keywords=keywords,
                    mode=mode,
                ),
                with_ids,
            )
        else:
            print_all(storage.search_all(keywords, mode), with_ids)


def cmd_delete(args, open_storage) -> None:
    """Delete entities, observations or relationships."""
    ids = flatten_ids(args.ids)

    if args.delete_type == "entity":
        if args.name and ids:
            raise ValueError("cannot specify both entity name and --ids")
        if not args.name and not ids:
            raise ValueError("must specify either entity name or --ids")
        name = validate_input(args.name, "entity name") if args.name else None
        with open_storage() as storage:
            if name:
                storage.delete_entity_by_text(name)
                print(f"Deleted entity: {name}")
            for entity_id in ids:
                storage.delete_entity(entity_id)
                print(f"Deleted entity ID {entity_id}")

    elif args.delete_type == "observation":
        with open_storage() as storage:
            for observation_id in ids:
                storage.delete_observation(observation_id)
                print(f"Deleted observation ID {observation_id}")

    elif args.delete_type == "relationship":
        with open_storage() as storage:
            for relationship_id in ids:
                storage.delete_relationship(relationship_id)
                print(f"Deleted relationship ID {relationship_id}")


def cmd_edit(args, open_storage) -> None:
    """Rename an entity or change an observation."""
    if args.edit_type == "entity":
        if not args.name:
            raise ValueError("entity name is required")
        name = validate_input(args.name, "entity name")
        new_name = validate_input(args.new_name, "new name")
        with open_storage() as storage:
            storage.update_entity(name, new_name)
        print(f"Updated entity '{name}' to '{new_name}'")

    elif args.edit_type == "observation":
        if args.new_text is None and args.new_entity_id is None:
            raise ValueError("at least one of --new-text or --new-entity-id must be provided")
        with open_storage() as storage:
            if args.new_text is not None:
                storage.update_observation(args.id, validate_input(args.new_text, "new text"))
            if args.new_entity_id is not None:
                storage.update_observation_entity(args.id, args.new_entity_id)
        print(f"Updated observation ID {args.id}")
