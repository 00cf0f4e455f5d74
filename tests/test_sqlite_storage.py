"""Tests for the SQLite storage repository.

Covers:
- Entity, observation and relationship CRUD
- Cascading deletes and auto-created entities
- Keyword search in ANY and ALL modes
- Injection-shaped input
"""

import logging

import pytest

from amem.types import ConflictError, KeywordMode, NotFoundError, SearchResults


class TestEntities:
    def test_add_returns_id(self, storage):
        entity_id = storage.add_entity("Alice")
        assert entity_id > 0
        assert storage.get_entity(entity_id).text == "Alice"

    def test_add_is_idempotent(self, storage):
        first = storage.add_entity("Alice")
        second = storage.add_entity("Alice")
        assert first == second
        assert storage.count_entities() == 1

    def test_text_is_exact(self, storage):
        """Case and surrounding whitespace make distinct entities."""
        ids = {storage.add_entity(t) for t in ("Alice", " Alice", "Alice ")}
        assert len(ids) == 3
        assert len(storage.search_entities(["Alice"])) == 3
        assert storage.add_entity("alice") not in ids

    def test_get_missing_returns_none(self, storage):
        assert storage.get_entity(999) is None
        assert storage.get_entity_by_text("Nobody") is None

    def test_delete_by_text(self, storage):
        storage.add_entity("Alice")
        storage.delete_entity_by_text("Alice")
        assert storage.get_entity_by_text("Alice") is None

    def test_delete_missing_raises(self, storage):
        with pytest.raises(NotFoundError, match="entity with ID 42 not found"):
            storage.delete_entity(42)
        with pytest.raises(NotFoundError, match="entity 'Bob' not found"):
            storage.delete_entity_by_text("Bob")

    def test_delete_cascades(self, storage):
        storage.add_observation("Alice", "likes tea")
        storage.add_relationship("Alice", "Bob", "knows")
        storage.add_relationship("Carol", "Alice", "manages")
        storage.add_relationship("Bob", "Carol", "knows")

        storage.delete_entity_by_text("Alice")

        assert storage.count_observations() == 0
        remaining = storage.search_relationships()
        assert [(r.from_text, r.to_text) for r in remaining] == [("Bob", "Carol")]

    def test_rename(self, storage):
        entity_id = storage.add_entity("Bob")
        storage.add_observation("Bob", "plays chess")
        storage.update_entity("Bob", "Robert")

        assert storage.get_entity(entity_id).text == "Robert"
        assert storage.search_observations()[0].entity_text == "Robert"

    def test_rename_missing(self, storage):
        with pytest.raises(NotFoundError):
            storage.update_entity("Nobody", "Somebody")

    def test_rename_conflict_leaves_both(self, storage):
        storage.add_entity("Alice")
        storage.add_entity("Bob")
        with pytest.raises(ConflictError):
            storage.update_entity("Bob", "Alice")
        assert storage.get_entity_by_text("Alice") is not None
        assert storage.get_entity_by_text("Bob") is not None


class TestObservations:
    def test_add_creates_entity(self, storage):
        obs_id = storage.add_observation("Alice", "likes tea")
        obs = storage.get_observation(obs_id)
        assert obs.text == "likes tea"
        assert obs.entity_text == "Alice"
        assert obs.timestamp
        assert storage.get_entity_by_text("Alice") is not None

    def test_add_reuses_existing_entity(self, storage):
        entity_id = storage.add_entity("Alice")
        obs_id = storage.add_observation("Alice", "likes tea")
        assert storage.get_observation(obs_id).entity_id == entity_id
        assert storage.count_entities() == 1

    def test_duplicate_text_allowed(self, storage):
        first = storage.add_observation("Alice", "likes tea")
        second = storage.add_observation("Alice", "likes tea")
        assert first != second
        assert storage.count_observations() == 2

    def test_update_text(self, storage):
        obs_id = storage.add_observation("Alice", "likes tea")
        storage.update_observation(obs_id, "likes coffee")
        assert storage.get_observation(obs_id).text == "likes coffee"

    def test_update_text_to_empty(self, storage):
        obs_id = storage.add_observation("Alice", "likes tea")
        storage.update_observation(obs_id, "")
        assert storage.get_observation(obs_id).text == ""

    def test_move_to_other_entity(self, storage):
        obs_id = storage.add_observation("Alice", "likes tea")
        bob_id = storage.add_entity("Bob")
        storage.update_observation_entity(obs_id, bob_id)
        assert storage.get_observation(obs_id).entity_text == "Bob"

    def test_move_to_missing_entity(self, storage):
        obs_id = storage.add_observation("Alice", "likes tea")
        with pytest.raises(NotFoundError, match="entity with ID 999"):
            storage.update_observation_entity(obs_id, 999)

    def test_missing_observation(self, storage):
        with pytest.raises(NotFoundError, match="observation with ID 5"):
            storage.update_observation(5, "x")
        with pytest.raises(NotFoundError):
            storage.delete_observation(5)

    def test_delete(self, storage, caplog):
        obs_id = storage.add_observation("Alice", "likes tea")
        with caplog.at_level(logging.DEBUG, logger="amem.storage.observations_crud"):
            storage.delete_observation(obs_id)
        assert f"Deleted observation {obs_id}" in caplog.text
        assert storage.get_observation(obs_id) is None
        assert storage.get_entity_by_text("Alice") is not None


class TestRelationships:
    def test_add_creates_both_entities(self, storage):
        rel_id = storage.add_relationship("Alice", "Acme", "works_at")
        rel = storage.get_relationship(rel_id)
        assert (rel.from_text, rel.type, rel.to_text) == ("Alice", "works_at", "Acme")
        assert storage.count_entities() == 2

    def test_self_loop(self, storage):
        rel_id = storage.add_relationship("Alice", "Alice", "mentors")
        rel = storage.get_relationship(rel_id)
        assert rel.from_id == rel.to_id
        assert storage.count_entities() == 1

    def test_duplicates_allowed(self, storage):
        first = storage.add_relationship("Alice", "Bob", "knows")
        second = storage.add_relationship("Alice", "Bob", "knows")
        assert first != second
        found = storage.search_relationships(from_text="Alice", to_text="Bob", rel_type="knows")
        assert sorted(r.id for r in found) == sorted([first, second])

    def test_delete(self, storage, caplog):
        rel_id = storage.add_relationship("Alice", "Bob", "knows")
        with caplog.at_level(logging.DEBUG, logger="amem.storage.relationships_crud"):
            storage.delete_relationship(rel_id)
        assert f"Deleted relationship {rel_id}" in caplog.text
        assert storage.get_relationship(rel_id) is None
        with pytest.raises(NotFoundError, match="relationship with ID"):
            storage.delete_relationship(rel_id)

    def test_filters_are_substrings_and_anded(self, storage):
        storage.add_relationship("Alice", "Acme Corp", "works_at")
        storage.add_relationship("Alice", "Bob", "knows")
        storage.add_relationship("Bob", "Acme Corp", "works_at")

        results = storage.search_relationships(from_text="ali", rel_type="WORK")
        assert [(r.from_text, r.to_text) for r in results] == [("Alice", "Acme Corp")]

        results = storage.search_relationships(to_text="acme")
        assert len(results) == 2


class TestSearch:
    @pytest.fixture
    def populated(self, storage):
        storage.add_entity("Alice")
        storage.add_entity("Bob")
        storage.add_entity("Alice Smith")
        storage.add_observation("Alice", "drinks green tea")
        storage.add_observation("Bob", "drinks coffee")
        storage.add_relationship("Alice", "Bob", "knows")
        return storage

    def test_no_keywords_returns_all_sorted(self, populated):
        texts = [e.text for e in populated.search_entities()]
        assert texts == sorted(texts)
        assert len(texts) == 3

    def test_case_insensitive_substring(self, populated):
        texts = [e.text for e in populated.search_entities(["ALI"])]
        assert texts == ["Alice", "Alice Smith"]

    def test_any_is_union(self, populated):
        texts = [e.text for e in populated.search_entities(["smith", "bob"], KeywordMode.ANY)]
        assert texts == ["Alice Smith", "Bob"]

    def test_all_is_intersection(self, populated):
        texts = [e.text for e in populated.search_entities(["alice", "smith"], KeywordMode.ALL)]
        assert texts == ["Alice Smith"]

    def test_all_can_match_across_columns(self, populated):
        """ALL needs each keyword somewhere in the row, not in one column."""
        results = populated.search_observations(keywords=["alice", "tea"], mode=KeywordMode.ALL)
        assert [o.text for o in results] == ["drinks green tea"]

    def test_observation_keywords_match_entity_text(self, populated):
        results = populated.search_observations(keywords=["bob"])
        assert [o.text for o in results] == ["drinks coffee"]

    def test_observations_about(self, populated):
        results = populated.search_observations(about="alice", keywords=["drinks"])
        assert [o.entity_text for o in results] == ["Alice"]

    def test_observations_newest_first(self, storage):
        first = storage.add_observation("Alice", "one")
        second = storage.add_observation("Alice", "two")
        assert [o.id for o in storage.search_observations()] == [second, first]

    def test_relationship_keywords_match_type(self, populated):
        assert len(populated.search_relationships(keywords=["KNOWS"])) == 1

    def test_wildcards_are_literal(self, storage):
        storage.add_entity("100% done")
        storage.add_entity("1000 done")
        storage.add_entity("snake_case")
        storage.add_entity("snakeXcase")
        assert [e.text for e in storage.search_entities(["100%"])] == ["100% done"]
        assert [e.text for e in storage.search_entities(["e_c"])] == ["snake_case"]

    def test_search_all(self, populated):
        results = populated.search_all(["bob"])
        assert isinstance(results, SearchResults)
        assert [e.text for e in results.entities] == ["Bob"]
        assert [o.text for o in results.observations] == ["drinks coffee"]
        assert len(results.relationships) == 1

    def test_search_all_no_matches(self, populated):
        assert populated.search_all(["zebra"]).total == 0


class TestInjection:
    PAYLOADS = [
        "'; DROP TABLE entities; --",
        "Robert'); DELETE FROM observations; --",
        "\" OR 1=1 --",
    ]

    @pytest.mark.parametrize("payload", PAYLOADS)
    def test_stored_verbatim(self, storage, payload):
        storage.add_observation(payload, payload)
        storage.add_relationship(payload, "Alice", payload)

        assert storage.get_entity_by_text(payload) is not None
        assert [o.text for o in storage.search_observations(keywords=[payload])] == [payload]
        assert len(storage.search_relationships(rel_type=payload)) == 1
        assert storage.count_entities() == 2

    @pytest.mark.parametrize("payload", PAYLOADS)
    def test_search_does_not_alter_store(self, storage, payload):
        storage.add_observation("Alice", "likes tea")
        storage.search_all([payload])
        storage.search_observations(about=payload)
        assert storage.count_entities() == 1
        assert storage.count_observations() == 1


class TestCounts:
    def test_counts(self, storage):
        storage.add_observation("Alice", "likes tea")
        storage.add_relationship("Alice", "Bob", "knows")
        assert storage.count_entities() == 2
        assert storage.count_observations() == 1
        assert storage.count_relationships() == 1

    def test_empty_store(self, storage):
        assert storage.count_entities() == 0
        assert storage.search_all().total == 0
