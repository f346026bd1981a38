"""Tests for the achievement evaluator and reward merging."""

from datetime import datetime

from sentence_builder.learning.achievements import ACHIEVEMENTS, apply_unlocks, evaluate
from sentence_builder.models.snapshot import GamificationState, LearningState, Progress, Snapshot

NOW = datetime(2026, 3, 1, 12, 0, 0)


def _snapshot(**progress) -> Snapshot:
    return Snapshot(learning=LearningState(progress=Progress(**progress)))


def _apply(snapshot: Snapshot, ids: list[str]) -> Snapshot:
    gamification, _ = apply_unlocks(snapshot.gamification, ids, NOW)
    return snapshot.model_copy(update={"gamification": gamification})


class TestEvaluate:
    def test_nothing_for_fresh_snapshot(self):
        assert evaluate(Snapshot()) == []

    def test_streak_thresholds(self):
        assert evaluate(_snapshot(current_streak=5)) == ["streak_5"]
        assert evaluate(_snapshot(current_streak=10)) == ["streak_5", "streak_10"]

    def test_sentence_count_thresholds(self):
        assert evaluate(_snapshot(total_sentences=10)) == ["first_10"]
        assert set(evaluate(_snapshot(total_sentences=100))) == {"first_10", "century"}

    def test_accuracy_needs_enough_attempts(self):
        assert evaluate(_snapshot(accuracy=100.0, total_attempts=19)) == []
        assert evaluate(_snapshot(accuracy=95.0, total_attempts=20)) == ["accuracy_master"]
        assert evaluate(_snapshot(accuracy=94.9, total_attempts=40)) == []

    def test_idempotent_after_apply(self):
        snapshot = _snapshot(current_streak=10, total_sentences=100)
        unlocked = evaluate(snapshot)
        assert unlocked
        assert evaluate(_apply(snapshot, unlocked)) == []

    def test_does_not_mutate_input(self):
        snapshot = _snapshot(current_streak=5)
        evaluate(snapshot)
        assert snapshot.gamification.achievements.unlocked == ()


class TestApplyUnlocks:
    def test_rewards_applied(self):
        gamification, added = apply_unlocks(GamificationState(), ["century"], NOW)
        assert added == ["century"]
        assert gamification.score == 500
        assert gamification.coins == 100
        assert gamification.gems == 5
        assert gamification.achievements.unlocked[0].id == "century"
        assert gamification.achievements.unlocked[0].unlocked_at == NOW

    def test_already_unlocked_not_rewarded_twice(self):
        once, _ = apply_unlocks(GamificationState(), ["streak_5"], NOW)
        twice, added = apply_unlocks(once, ["streak_5"], NOW)
        assert added == []
        assert twice is once
        assert twice.score == ACHIEVEMENTS["streak_5"].points

    def test_duplicate_ids_in_one_call(self):
        gamification, added = apply_unlocks(GamificationState(), ["first_10", "first_10"], NOW)
        assert added == ["first_10"]
        assert len(gamification.achievements.unlocked) == 1

    def test_recent_is_newest_first_and_capped(self):
        gamification = GamificationState()
        for achievement_id in ["first_10", "streak_5", "streak_10"]:
            gamification, _ = apply_unlocks(gamification, [achievement_id], NOW, recent_limit=2)
        assert [r.id for r in gamification.achievements.recent] == ["streak_10", "streak_5"]
        assert len(gamification.achievements.unlocked) == 3
