# tests/unit/test_state.py

import pytest

from logbucket.state import InMemoryProcessedObjects


def test_set_processed_is_visible_to_readers():
    oracle = InMemoryProcessedObjects()

    oracle.set_processed("a")
    oracle.set_processed("b")

    assert oracle.processed_objects() == ["a", "b"]
    assert "a" in oracle
    assert len(oracle) == 2


def test_returned_collection_is_a_snapshot():
    oracle = InMemoryProcessedObjects(["a"])

    snapshot = oracle.processed_objects()
    oracle.set_processed("b")

    assert snapshot == ["a"]


def test_oldest_keys_are_evicted_past_capacity():
    oracle = InMemoryProcessedObjects(["a", "b"], max_entries=2)

    oracle.set_processed("a")  # refreshes "a"
    oracle.set_processed("c")

    assert oracle.processed_objects() == ["a", "c"]


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        InMemoryProcessedObjects(max_entries=0)
