"""Achievement rules, rewards and challenge definitions."""

from collections.abc import Callable, Iterable
from datetime import datetime

from pydantic import BaseModel

from sentence_builder.models.snapshot import (
    AchievementRecord,
    AchievementsState,
    GamificationState,
    Progress,
    Snapshot,
)

RECENT_ACHIEVEMENTS_LIMIT = 10


class Achievement(BaseModel):
    """A one-time milestone and the reward granted when it unlocks."""

    id: str
    name: str
    points: int = 0
    coins: int = 0
    gems: int = 0


ACHIEVEMENTS: dict[str, Achievement] = {
    a.id: a
    for a in [
        Achievement(id="streak_5", name="On Fire!", points=50, coins=10),
        Achievement(id="streak_10", name="Unstoppable!", points=100, coins=25),
        Achievement(id="first_10", name="Getting Started", points=25, coins=5),
        Achievement(id="century", name="Century Club", points=500, coins=100, gems=5),
        Achievement(id="accuracy_master", name="Precision Expert", points=200, coins=50),
    ]
}

# Threshold predicates over learning progress, keyed by achievement id
RULES: dict[str, Callable[[Progress], bool]] = {
    "streak_5": lambda p: p.current_streak >= 5,
    "streak_10": lambda p: p.current_streak >= 10,
    "first_10": lambda p: p.total_sentences >= 10,
    "century": lambda p: p.total_sentences >= 100,
    "accuracy_master": lambda p: p.accuracy >= 95 and p.total_attempts >= 20,
}


class Challenge(BaseModel):
    id: str
    name: str
    points: int = 0
    xp: int = 0


CHALLENGES: dict[str, Challenge] = {
    c.id: c
    for c in [
        Challenge(id="daily_easy", name="Daily Easy", points=25, xp=50),
        Challenge(id="daily_medium", name="Daily Medium", points=50, xp=100),
        Challenge(id="daily_hard", name="Daily Hard", points=100, xp=200),
    ]
}


def evaluate(snapshot: Snapshot) -> list[str]:
    """Return achievement ids whose rule now holds and that are not yet unlocked.

    Pure: the caller merges the result with ``apply_unlocks``. Running it
    again on the merged snapshot returns an empty list.
    """
    progress = snapshot.learning.progress
    unlocked = snapshot.gamification.achievements.unlocked_ids
    return [
        achievement_id
        for achievement_id, rule in RULES.items()
        if achievement_id not in unlocked and rule(progress)
    ]


def apply_unlocks(
    gamification: GamificationState,
    achievement_ids: Iterable[str],
    now: datetime,
    recent_limit: int = RECENT_ACHIEVEMENTS_LIMIT,
) -> tuple[GamificationState, list[str]]:
    """Merge unlocked ids and their rewards into the gamification section.

    Ids already present are skipped, so unlocking is idempotent.

    Args:
        gamification: Current section.
        achievement_ids: Ids to unlock.
        now: Unlock timestamp.
        recent_limit: Size cap for the newest-first ``recent`` list.

    Returns:
        (new section, ids that were actually added).
    """
    seen = set(gamification.achievements.unlocked_ids)
    added: list[str] = []
    for achievement_id in achievement_ids:
        if achievement_id not in seen:
            seen.add(achievement_id)
            added.append(achievement_id)
    if not added:
        return gamification, []

    records = tuple(AchievementRecord(id=a, unlocked_at=now) for a in added)
    recent = (tuple(reversed(records)) + gamification.achievements.recent)[:recent_limit]

    score, coins, gems = gamification.score, gamification.coins, gamification.gems
    for achievement_id in added:
        reward = ACHIEVEMENTS.get(achievement_id)
        if reward:
            score += reward.points
            coins += reward.coins
            gems += reward.gems

    updated = gamification.model_copy(update={
        "score": score,
        "coins": coins,
        "gems": gems,
        "achievements": AchievementsState(
            unlocked=gamification.achievements.unlocked + records,
            recent=recent,
        ),
    })
    return updated, added


def keep_unlocked(restored: GamificationState, live: GamificationState) -> GamificationState:
    """Carry achievements unlocked in ``live`` into a restored history slice.

    Undo and redo swap the whole gamification section; unlocked ids are
    append-only, so records missing from the restored slice are re-attached
    with their original timestamps and no second reward.
    """
    known = restored.achievements.unlocked_ids
    missing = tuple(r for r in live.achievements.unlocked if r.id not in known)
    if not missing:
        return restored
    return restored.model_copy(update={
        "achievements": AchievementsState(
            unlocked=restored.achievements.unlocked + missing,
            recent=live.achievements.recent,
        ),
    })
