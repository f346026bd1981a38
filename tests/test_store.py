"""Tests for the snapshot store: dispatch, subscriptions, undo/redo, effects."""

import asyncio
import random

import pytest

from sentence_builder.errors import ValidationError
from sentence_builder.models import actions as a
from sentence_builder.models.operations import OperationKind
from sentence_builder.state.effects import AchievementUnlocked, ConnectivityRestored
from sentence_builder.state.history import TemporalHistory
from sentence_builder.state.store import SnapshotStore

CAT_SLEEPS = [
    {"kind": "add-word", "word": "The", "type": "article"},
    {"kind": "add-word", "word": "cat", "type": "subject"},
    {"kind": "add-word", "word": "sleeps", "type": "verb"},
]


def _complete_sentence(store: SnapshotStore) -> None:
    for action in CAT_SLEEPS:
        store.dispatch(action)
    store.dispatch(a.ValidateSentence())


class TestDispatch:
    def test_dispatch_returns_new_snapshot(self, store):
        before = store.get_snapshot()
        after = store.dispatch({"kind": "add-word", "word": "The", "type": "article"})
        assert after is store.get_snapshot()
        assert after is not before
        assert before.learning.current_sentence == ()

    def test_noop_keeps_identity(self, store):
        before = store.get_snapshot()
        assert store.dispatch(a.ClearSentence()) is before

    def test_unchanged_sections_shared(self, store):
        before = store.get_snapshot()
        after = store.dispatch(a.UpdatePreferences(preferences={"theme": "dark"}))
        assert after.learning is before.learning
        assert after.gamification is before.gamification
        assert after.user is not before.user

    def test_rejected_action_leaves_snapshot(self, store):
        before = store.get_snapshot()
        with pytest.raises(ValidationError):
            store.dispatch({"kind": "select-pattern", "pattern_id": "nope"})
        with pytest.raises(ValidationError):
            store.dispatch({"kind": "no-such-action"})
        assert store.get_snapshot() is before

    def test_snapshot_mappings_are_read_only(self, store):
        store.dispatch(a.SetUserProfile(profile={"name": "Sam", "tags": ["kid"]}))
        store.dispatch(CAT_SLEEPS[0])
        snapshot = store.get_snapshot()

        with pytest.raises(TypeError):
            snapshot.ui.modals["achievement"] = True
        with pytest.raises(TypeError):
            snapshot.content.word_banks.data["basic"]["verb"] = ()
        with pytest.raises(AttributeError):
            snapshot.content.patterns.data.pop("simple")
        with pytest.raises(TypeError):
            snapshot.user.profile["name"] = "Alex"
        with pytest.raises(TypeError):
            snapshot.offline.queue.pending()[0].payload["word"] = "A"

        assert store.get_snapshot().content.patterns.get("simple") is not None
        assert snapshot.user.profile["tags"] == ("kid",)
        dumped = snapshot.model_dump(mode="json")
        assert dumped["ui"]["modals"]["achievement"] is False
        assert dumped["user"]["profile"] == {"name": "Sam", "tags": ["kid"]}

    def test_sequential_dispatch_sees_previous_result(self, store):
        _complete_sentence(store)
        _complete_sentence(store)
        assert store.get_snapshot().learning.progress.current_streak == 2


class TestSubscriptions:
    def test_listener_receives_new_and_old(self, store):
        calls = []
        store.subscribe(lambda new, old: calls.append((new, old)))

        before = store.get_snapshot()
        after = store.dispatch(a.SetActiveView(view="progress"))

        assert calls == [(after, before)]

    def test_listener_not_called_on_noop(self, store):
        calls = []
        store.subscribe(lambda new, old: calls.append(new))
        store.dispatch(a.ClearSentence())
        assert calls == []

    def test_unsubscribe(self, store):
        calls = []
        unsubscribe = store.subscribe(lambda new, old: calls.append(new))
        unsubscribe()
        unsubscribe()
        store.dispatch(a.SetActiveView(view="progress"))
        assert calls == []

    def test_failing_listener_does_not_block_others(self, store):
        calls = []

        def broken(new, old):
            raise RuntimeError("listener bug")

        store.subscribe(broken)
        store.subscribe(lambda new, old: calls.append(new))
        store.dispatch(a.SetActiveView(view="progress"))
        assert len(calls) == 1

    def test_listener_can_dispatch(self, store):
        def follow_up(new, old):
            if new.ui.active_view == "progress" and new.ui.feedback.message:
                store.dispatch(a.DismissFeedback())

        store.subscribe(follow_up)
        store.dispatch(a.ShowFeedback(type="info", message="hello", duration=0))
        store.dispatch(a.SetActiveView(view="progress"))
        assert store.get_snapshot().ui.feedback.message == ""


class TestUndoRedo:
    def test_undo_restores_learning_and_gamification(self, store):
        _complete_sentence(store)
        completed = store.get_snapshot()
        assert completed.gamification.score == 10

        store.undo()
        assert store.get_snapshot().gamification.score == 0
        assert store.get_snapshot().learning.progress.total_sentences == 0
        assert [t.word for t in store.get_snapshot().learning.current_sentence] == [
            "The", "cat", "sleeps",
        ]

        store.redo()
        assert store.get_snapshot().learning == completed.learning
        assert store.get_snapshot().gamification == completed.gamification

    def test_undo_leaves_other_sections(self, store):
        _complete_sentence(store)
        store.dispatch(a.UpdatePreferences(preferences={"theme": "dark"}))
        queued = len(store.get_snapshot().offline.queue)

        store.undo()

        snapshot = store.get_snapshot()
        assert snapshot.user.preferences.theme == "dark"
        assert len(snapshot.offline.queue) == queued

    def test_undo_at_start_returns_none(self, store):
        before = store.get_snapshot()
        assert store.undo() is None
        assert store.get_snapshot() is before

    def test_redo_without_undo_returns_none(self, store):
        _complete_sentence(store)
        assert store.redo() is None

    def test_new_action_after_undo_drops_redo(self, store):
        store.dispatch(CAT_SLEEPS[0])
        store.dispatch(CAT_SLEEPS[1])
        store.undo()
        store.dispatch(a.SelectPattern(pattern_id="withObject"))
        assert store.redo() is None

    def test_ui_only_actions_not_recorded(self, store):
        store.dispatch(a.SetActiveView(view="progress"))
        store.dispatch(a.ShowFeedback(type="info", message="x"))
        assert len(store.history) == 1

    def test_undo_notifies_listeners(self, store):
        store.dispatch(CAT_SLEEPS[0])
        calls = []
        store.subscribe(lambda new, old: calls.append(new))
        store.undo()
        assert len(calls) == 1

    def test_undo_keeps_unlocked_achievements(self, store):
        seen = []
        store.on_effect(seen.append)
        for _ in range(5):
            _complete_sentence(store)

        store.undo()
        assert "streak_5" in store.get_snapshot().gamification.achievements.unlocked_ids
        store.dispatch(a.ValidateSentence())
        store.redo()

        assert seen.count(AchievementUnlocked(achievement_id="streak_5")) == 1
        unlock_ops = [
            op for op in store.get_snapshot().offline.queue.pending()
            if op.kind == OperationKind.ACHIEVEMENT_UNLOCK
        ]
        assert [op.payload["achievement_id"] for op in unlock_ops] == ["streak_5"]

    def test_history_bounded_over_random_sequences(self, snapshot, id_factory):
        rng = random.Random(1234)
        history = TemporalHistory(capacity=10)
        store = SnapshotStore(initial=snapshot, history=history, id_factory=id_factory)
        steps = [
            lambda: store.dispatch(rng.choice(CAT_SLEEPS)),
            lambda: store.dispatch(a.ValidateSentence()),
            lambda: store.dispatch(a.ClearSentence()),
            lambda: store.dispatch(
                a.SelectPattern(pattern_id=rng.choice(["simple", "withObject", "withAdjective"]))
            ),
            store.undo,
            store.redo,
        ]
        ever_unlocked = frozenset()
        for _ in range(500):
            rng.choice(steps)()
            assert len(history) <= 10
            progress = store.get_snapshot().learning.progress
            assert progress.total_sentences <= progress.total_attempts
            assert 0 <= progress.accuracy <= 100
            adaptive = store.get_snapshot().learning.adaptive
            assert 0.01 <= adaptive.confidence <= 0.99
            assert 1 <= adaptive.skill_level <= 10
            unlocked = store.get_snapshot().gamification.achievements.unlocked_ids
            assert unlocked >= ever_unlocked
            ever_unlocked = unlocked


class TestEffects:
    def test_achievement_effect_delivered_once(self, store):
        seen = []
        store.on_effect(seen.append)
        for _ in range(6):
            _complete_sentence(store)
        assert seen.count(AchievementUnlocked(achievement_id="streak_5")) == 1

    def test_connectivity_effect(self, store):
        seen = []
        store.on_effect(seen.append)
        store.dispatch(a.SetOnlineStatus(is_online=False))
        store.dispatch(a.SetOnlineStatus(is_online=True))
        assert seen == [ConnectivityRestored()]

    def test_remove_handler(self, store):
        seen = []
        remove = store.on_effect(seen.append)
        remove()
        store.dispatch(a.SetOnlineStatus(is_online=False))
        store.dispatch(a.SetOnlineStatus(is_online=True))
        assert seen == []

    def test_timer_skipped_without_loop(self, store):
        store.dispatch(a.ShowFeedback(type="success", message="Nice", duration=0.01))
        assert store.get_snapshot().ui.feedback.message == "Nice"

    async def test_scheduled_action_fires(self, store):
        store.dispatch(a.ShowFeedback(type="success", message="Nice", duration=0.01))
        assert store.get_snapshot().ui.feedback.message == "Nice"
        await asyncio.sleep(0.05)
        assert store.get_snapshot().ui.feedback.message == ""

    async def test_close_cancels_timers(self, store):
        store.dispatch(a.ShowFeedback(type="success", message="Nice", duration=0.01))
        store.close()
        await asyncio.sleep(0.05)
        assert store.get_snapshot().ui.feedback.message == "Nice"
