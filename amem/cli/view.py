"""Plain-text rendering of search results for the CLI."""

from typing import List

from amem.types import Entity, Observation, Relationship, SearchResults


def print_entities(entities: List[Entity], with_ids: bool = False) -> None:
    if not entities:
        print("No entities found")
        return
    print(f"Found {len(entities)} entities:")
    for e in entities:
        print(e.format(with_ids))


def print_observations(observations: List[Observation], with_ids: bool = False) -> None:
    if not observations:
        print("No observations found")
        return
    print(f"Found {len(observations)} observations:")
    for o in observations:
        print(o.format(with_ids))


def print_relationships(relationships: List[Relationship], with_ids: bool = False) -> None:
    if not relationships:
        print("No relationships found")
        return
    print(f"Found {len(relationships)} relationships:")
    for r in relationships:
        print(r.format(with_ids))


def print_all(results: SearchResults, with_ids: bool = False) -> None:
    """Print all three result kinds under section headers, skipping empty ones."""
    if results.total == 0:
        print("No results found")
        return

    sections = (
        ("Entities", results.entities),
        ("Observations", results.observations),
        ("Relationships", results.relationships),
    )
    for title, records in sections:
        if not records:
            continue
        print(f"\n{title} ({len(records)}):")
        for record in records:
            print(record.format(with_ids))
