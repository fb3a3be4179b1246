"""Tests for metric stores and the debounced writer."""

import json

import pytest

from paper_eval.storage.debounce import DebouncedWriter
from paper_eval.storage.metrics_store import InMemoryMetricsStore, JsonFileMetricsStore


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class CountingStore(InMemoryMetricsStore):
    def __init__(self):
        super().__init__()
        self.writes = []

    def set(self, path, value):
        self.writes.append((tuple(path), value))
        super().set(path, value)


# In-memory store

def test_set_get_and_snapshot():
    store = InMemoryMetricsStore()
    store.set(("accuracy", "metadata", "title"), {"score": 0.9})

    assert store.get(("accuracy", "metadata", "title")) == {"score": 0.9}
    assert store.get(("accuracy", "metadata")) == {"title": {"score": 0.9}}
    assert store.get(("quality", "metadata", "title")) is None
    assert store.snapshot() == {
        "accuracy": {"metadata": {"title": {"score": 0.9}}},
        "quality": {},
        "overall": {},
    }


def test_merge_updates_existing_mapping():
    store = InMemoryMetricsStore()
    store.set(("overall", "metadata", "title"), {"rating": 3, "comments": ""})
    store.merge(("overall", "metadata", "title"), {"comments": "typo"})
    assert store.get(("overall", "metadata", "title")) == {"rating": 3, "comments": "typo"}


def test_returned_values_are_copies():
    store = InMemoryMetricsStore()
    store.set(("overall", "metadata", "title"), {"rating": 3})
    store.get(("overall", "metadata", "title"))["rating"] = 0
    assert store.get(("overall", "metadata", "title")) == {"rating": 3}


@pytest.mark.parametrize("path", [("precision", "metadata"), (), ("accuracy", "a", "b", "c"), ("accuracy", "")])
def test_invalid_paths_rejected(path):
    store = InMemoryMetricsStore()
    with pytest.raises(ValueError):
        store.set(path, {})


# JSON file store

def test_json_store_persists_and_reloads(tmp_path):
    path = tmp_path / "metrics.json"
    store = JsonFileMetricsStore(path)
    store.set(("quality", "template", "name"), {"score": 0.5})

    reloaded = JsonFileMetricsStore(path)
    assert reloaded.get(("quality", "template", "name")) == {"score": 0.5}


def test_json_store_missing_file_is_empty(tmp_path):
    store = JsonFileMetricsStore(tmp_path / "absent.json")
    assert store.snapshot() == {"accuracy": {}, "quality": {}, "overall": {}}


def test_json_store_malformed_file_is_empty(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    assert JsonFileMetricsStore(path).snapshot() == {"accuracy": {}, "quality": {}, "overall": {}}


def test_json_store_drops_malformed_levels(tmp_path):
    path = tmp_path / "partial.json"
    path.write_text(json.dumps({"accuracy": {"metadata": "oops", "template": {"name": {}}}, "quality": []}))
    store = JsonFileMetricsStore(path)
    assert store.snapshot()["accuracy"] == {"template": {"name": {}}}
    assert store.snapshot()["quality"] == {}


# Debounced writer

def test_debounced_writes_coalesce():
    clock = FakeClock()
    store = CountingStore()
    writer = DebouncedWriter(store, delay=0.3, clock=clock)

    writer.set(("overall", "metadata", "title"), {"rating": 1})
    clock.advance(0.2)
    writer.set(("overall", "metadata", "title"), {"rating": 2})
    clock.advance(0.2)
    assert writer.poll() is False
    assert store.writes == []

    clock.advance(0.2)
    assert writer.poll() is True
    assert store.writes == [(("overall", "metadata", "title"), {"rating": 2})]
    assert writer.has_pending is False


def test_pending_values_are_visible_before_flush():
    clock = FakeClock()
    store = InMemoryMetricsStore()
    store.set(("overall", "metadata", "title"), {"rating": 1})
    writer = DebouncedWriter(store, clock=clock)

    writer.merge(("overall", "metadata", "title"), {"comments": "draft"})
    writer.set(("overall", "metadata", "doi"), {"rating": 4})

    assert writer.get(("overall", "metadata", "title")) == {"rating": 1, "comments": "draft"}
    assert writer.get(("overall", "metadata")) == {
        "title": {"rating": 1, "comments": "draft"},
        "doi": {"rating": 4},
    }
    assert store.get(("overall", "metadata", "doi")) is None
    assert writer.snapshot()["overall"]["metadata"]["doi"] == {"rating": 4}


def test_pending_parent_write_shadows_stored_child():
    store = InMemoryMetricsStore()
    store.set(("overall", "template", "name"), {"accuracyScore": 0.1})
    writer = DebouncedWriter(store, clock=FakeClock())

    writer.set(("overall", "template"), {"name": {"accuracyScore": 0.9}})

    assert writer.get(("overall", "template", "name")) == {"accuracyScore": 0.9}
    assert writer.get(("overall", "template", "label")) is None
    assert writer.snapshot()["overall"]["template"] == {"name": {"accuracyScore": 0.9}}


def test_later_child_write_overlays_pending_parent():
    store = InMemoryMetricsStore()
    store.set(("overall", "template", "name"), {"accuracyScore": 0.1})
    writer = DebouncedWriter(store, clock=FakeClock())

    writer.set(("overall", "template"), {"name": {"accuracyScore": 0.9}})
    writer.set(("overall", "template", "label"), {"rating": 4})

    expected = {"name": {"accuracyScore": 0.9}, "label": {"rating": 4}}
    assert writer.get(("overall", "template")) == expected
    writer.flush()
    assert store.get(("overall", "template")) == expected


def test_flush_forces_write():
    store = CountingStore()
    writer = DebouncedWriter(store, clock=FakeClock())
    writer.set(("accuracy", "template", "name"), {"score": 0.4})
    writer.flush()

    assert store.get(("accuracy", "template", "name")) == {"score": 0.4}
    assert writer.flush_count == 1
    writer.flush()
    assert writer.flush_count == 1
