"""Tests for persistence backends, projection and rehydration."""

import json
from unittest.mock import MagicMock

import pytest

from sentence_builder.errors import PersistenceError
from sentence_builder.models import actions as a
from sentence_builder.models.content import GeneratedContent
from sentence_builder.models.snapshot import initial_snapshot
from sentence_builder.state.store import SnapshotStore
from sentence_builder.storage.backends import JsonFileBackend, MemoryBackend, PersistenceAdapter
from sentence_builder.storage.persister import Persister
from sentence_builder.storage.projection import (
    PENDING_KEY,
    PROJECTION_KEY,
    apply_projection,
    project,
    rehydrate,
)


class BrokenBackend:
    def load(self, key):
        raise PersistenceError("disk gone")

    def save(self, key, value):
        raise PersistenceError("disk gone")

    def remove(self, key):
        raise PersistenceError("disk gone")


class TestJsonFileBackend:
    def test_save_and_load(self, tmp_path):
        backend = JsonFileBackend(tmp_path)
        backend.save("store-projection", {"a": 1})
        assert backend.load("store-projection") == {"a": 1}
        assert (tmp_path / "store-projection.json").exists()

    def test_missing_key(self, tmp_path):
        assert JsonFileBackend(tmp_path).load("nothing") is None

    def test_key_sanitized(self, tmp_path):
        backend = JsonFileBackend(tmp_path)
        backend.save("cache:patterns", [1, 2])
        assert (tmp_path / "cache_patterns.json").exists()
        assert backend.load("cache:patterns") == [1, 2]

    def test_corrupt_file_raises(self, tmp_path):
        (tmp_path / "bad.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(PersistenceError):
            JsonFileBackend(tmp_path).load("bad")

    def test_failed_write_leaves_no_temp_file(self, tmp_path):
        backend = JsonFileBackend(tmp_path)
        backend.save("k", {"v": 1})
        cyclic = []
        cyclic.append(cyclic)

        with pytest.raises(PersistenceError):
            backend.save("k", cyclic)

        assert sorted(p.name for p in tmp_path.glob("*.json")) == ["k.json"]
        assert backend.load("k") == {"v": 1}

    def test_remove(self, tmp_path):
        backend = JsonFileBackend(tmp_path)
        backend.save("k", 1)
        backend.remove("k")
        backend.remove("k")
        assert backend.load("k") is None


class TestPersistenceAdapter:
    def test_primary_used_when_healthy(self, tmp_path):
        fallback = MemoryBackend()
        adapter = PersistenceAdapter(JsonFileBackend(tmp_path), fallback)
        adapter.save("k", {"v": 1})
        assert adapter.load("k") == {"v": 1}
        assert fallback.load("k") is None

    def test_falls_back_on_primary_failure(self):
        fallback = MemoryBackend()
        adapter = PersistenceAdapter(BrokenBackend(), fallback)

        adapter.save("k", {"v": 1})

        assert fallback.load("k") == {"v": 1}
        assert adapter.load("k") == {"v": 1}

    def test_load_consults_fallback_when_primary_empty(self, tmp_path):
        fallback = MemoryBackend()
        fallback.save("k", [1])
        adapter = PersistenceAdapter(JsonFileBackend(tmp_path), fallback)
        assert adapter.load("k") == [1]

    def test_fallback_failure_is_swallowed(self):
        fallback = MagicMock()
        fallback.save.side_effect = RuntimeError("boom")
        adapter = PersistenceAdapter(BrokenBackend(), fallback)
        adapter.save("k", 1)
        fallback.save.assert_called_once_with("k", 1)


class TestProjection:
    def test_excludes_ui_and_generation_cache(self, store):
        store.dispatch(a.SetActiveView(view="progress"))
        store.dispatch(a.GenerationRequested(cache_key="space-basic"))
        store.dispatch(a.GenerationCompleted(
            cache_key="space-basic", content=GeneratedContent(topic="space", level="basic")
        ))

        data = project(store.get_snapshot())

        assert "ui" not in data
        assert "offline" not in data
        assert data["content"]["generated"] == {"credits": 99}
        assert "space-basic" not in json.dumps(data)

    def test_round_trip_restores_durable_sections(self, store):
        store.dispatch(a.UpdatePreferences(preferences={"theme": "dark"}))
        store.dispatch(a.AddCustomWord(word="robot", type="subject"))
        store.dispatch(a.ToggleFavorite(word="robot"))
        store.dispatch(a.SelectPattern(pattern_id="withObject"))
        store.dispatch(a.UnlockAchievement(achievement_id="first_10", notify=False))
        before = store.get_snapshot()

        restored = apply_projection(initial_snapshot(), json.loads(json.dumps(project(before))))

        assert restored.user == before.user
        assert restored.gamification == before.gamification
        assert restored.learning.progress == before.learning.progress
        assert restored.learning.current_pattern == "withObject"
        assert restored.content.word_banks.favorites == ("robot",)
        assert restored.content.word_banks.custom == before.content.word_banks.custom
        assert restored.learning.current_sentence == ()


class TestRehydrate:
    def test_restores_pending_queue_in_order(self, store):
        for word in ["A", "B", "C"]:
            store.dispatch(a.AddWord(word=word, type="subject"))
        adapter = PersistenceAdapter(MemoryBackend())
        Persister(adapter).commit(store.get_snapshot())

        restored = rehydrate(adapter, initial_snapshot())

        ops = restored.offline.queue.pending()
        assert [op.payload["word"] for op in ops] == ["A", "B", "C"]
        assert restored.offline.queue.next_seq == 4

    def test_empty_storage_gives_base(self):
        base = initial_snapshot()
        assert rehydrate(PersistenceAdapter(MemoryBackend()), base) is base

    def test_invalid_projection_skipped_but_queue_restored(self, store):
        store.dispatch(a.AddWord(word="A", type="subject"))
        adapter = PersistenceAdapter(MemoryBackend())
        Persister(adapter).commit(store.get_snapshot())
        adapter.save(PROJECTION_KEY, {"version": 1, "gamification": {"score": "lots"}})

        restored = rehydrate(adapter, initial_snapshot())

        assert restored.gamification.score == 0
        assert len(restored.offline.queue) == 1


class TestPersister:
    def test_commits_inline_without_loop(self, store):
        adapter = PersistenceAdapter(MemoryBackend())
        Persister(adapter).attach(store)

        store.dispatch(a.AddWord(word="A", type="subject"))

        assert len(adapter.load(PENDING_KEY)) == 1
        assert adapter.load(PROJECTION_KEY)["version"] == 1

    def test_ui_changes_not_written(self, store):
        adapter = MagicMock()
        Persister(adapter).attach(store)
        store.dispatch(a.SetActiveView(view="progress"))
        adapter.save.assert_not_called()

    def test_commit_failure_does_not_raise(self, store):
        adapter = MagicMock()
        adapter.save.side_effect = RuntimeError("boom")
        Persister(adapter).commit(store.get_snapshot())

    async def test_debounced_commit_and_flush(self, store):
        adapter = PersistenceAdapter(MemoryBackend())
        persister = Persister(adapter, debounce_seconds=10)
        persister.attach(store)

        store.dispatch(a.AddWord(word="A", type="subject"))
        store.dispatch(a.AddWord(word="B", type="subject"))
        assert adapter.load(PENDING_KEY) is None

        await persister.flush()
        assert len(adapter.load(PENDING_KEY)) == 2

    async def test_restart_keeps_unsynced_work(self, tmp_path, snapshot):
        adapter = PersistenceAdapter(JsonFileBackend(tmp_path))
        first = SnapshotStore(initial=snapshot)
        persister = Persister(adapter, debounce_seconds=0)
        persister.attach(first)
        first.dispatch(a.SetOnlineStatus(is_online=False))
        first.dispatch(a.AddWord(word="A", type="subject"))
        await persister.flush()

        restored = rehydrate(PersistenceAdapter(JsonFileBackend(tmp_path)), snapshot)
        assert [op.payload["word"] for op in restored.offline.queue.pending()] == ["A"]
