"""Immutable application state.

A ``Snapshot`` is the whole state at one instant. Every section is a frozen
pydantic model; reducers build new values with ``model_copy(update=...)`` so
untouched sections are shared between consecutive snapshots and any change
produces a new root object.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sentence_builder.models.content import GeneratedContent, Pattern
from sentence_builder.models.frozen import FrozenDict
from sentence_builder.models.operations import SyncStatus
from sentence_builder.models.user_profile import UserState
from sentence_builder.sync.queue import OfflineQueue


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, validate_default=True)


# ===== LEARNING =====


class WordToken(_Frozen):
    """A typed word placed in the sentence under construction."""

    id: str
    word: str
    type: str
    added_at: datetime


class SentenceRecord(_Frozen):
    words: tuple[WordToken, ...]
    pattern: str
    completed_at: datetime


class SentenceValidation(_Frozen):
    valid: bool
    errors: tuple[str, ...] = ()


class Progress(_Frozen):
    level: int = 1
    xp: int = 0
    total_sentences: int = 0
    total_attempts: int = 0
    perfect_streak: int = 0
    current_streak: int = 0
    accuracy: float = 100.0
    mastered_patterns: tuple[str, ...] = ()
    unlocked_content: tuple[str, ...] = ("basic",)


class AdaptiveModel(_Frozen):
    skill_level: float = 1.0  # [1, 10]
    confidence: float = 0.5  # [0.01, 0.99] once updated
    learning_rate: float = 1.0


class SessionMetrics(_Frozen):
    words_per_minute: int = 0
    vocabulary_size: int = 0
    grammar_accuracy: float = 100.0


class LearningState(_Frozen):
    current_sentence: tuple[WordToken, ...] = ()
    current_pattern: str = "simple"
    session_started_at: datetime | None = None
    session_sentences: tuple[SentenceRecord, ...] = ()
    progress: Progress = Field(default_factory=Progress)
    adaptive: AdaptiveModel = Field(default_factory=AdaptiveModel)
    metrics: SessionMetrics = Field(default_factory=SessionMetrics)
    last_validation: SentenceValidation | None = None


# ===== GAMIFICATION =====


class AchievementRecord(_Frozen):
    id: str
    unlocked_at: datetime


class AchievementsState(_Frozen):
    unlocked: tuple[AchievementRecord, ...] = ()
    recent: tuple[AchievementRecord, ...] = ()  # newest first

    @property
    def unlocked_ids(self) -> frozenset[str]:
        return frozenset(record.id for record in self.unlocked)


class ChallengeState(_Frozen):
    id: str
    started_at: datetime
    progress: float = 0.0
    completed: bool = False
    completed_at: datetime | None = None


class ChallengesState(_Frozen):
    active: tuple[ChallengeState, ...] = ()
    completed: tuple[ChallengeState, ...] = ()


class GamificationState(_Frozen):
    score: int = 0
    coins: int = 0
    gems: int = 0
    energy: int = 100
    achievements: AchievementsState = Field(default_factory=AchievementsState)
    challenges: ChallengesState = Field(default_factory=ChallengesState)


# ===== CONTENT =====


class CustomWord(_Frozen):
    word: str
    type: str


class WordBanksState(_Frozen):
    loaded: bool = False
    data: FrozenDict[str, FrozenDict[str, tuple[str, ...]]] = Field(default_factory=dict)
    custom: tuple[CustomWord, ...] = ()
    favorites: tuple[str, ...] = ()


class PatternsState(_Frozen):
    loaded: bool = False
    data: FrozenDict[str, Pattern] = Field(default_factory=dict)
    custom: tuple[Pattern, ...] = ()
    history: tuple[str, ...] = ()

    def get(self, pattern_id: str) -> Pattern | None:
        found = self.data.get(pattern_id)
        if found is not None:
            return found
        return next((p for p in self.custom if p.id == pattern_id), None)


class GeneratedContentState(_Frozen):
    cache: FrozenDict[str, GeneratedContent] = Field(default_factory=dict)
    pending: tuple[str, ...] = ()
    credits: int = 100


class ContentState(_Frozen):
    word_banks: WordBanksState = Field(default_factory=WordBanksState)
    patterns: PatternsState = Field(default_factory=PatternsState)
    generated: GeneratedContentState = Field(default_factory=GeneratedContentState)


# ===== OFFLINE =====


class OfflineState(_Frozen):
    is_online: bool = True
    queue: OfflineQueue = Field(default_factory=OfflineQueue)
    last_sync: datetime | None = None
    sync_status: SyncStatus = SyncStatus.IDLE
    last_error: str | None = None


# ===== UI (ephemeral) =====


class FeedbackMessage(_Frozen):
    type: str | None = None  # success, error, info, warning
    message: str = ""
    duration: float = 3.0


class UIState(_Frozen):
    active_view: str = "builder"
    modals: FrozenDict[str, bool] = Field(
        default_factory=lambda: {
            "achievement": False,
            "settings": False,
            "help": False,
            "share": False,
        }
    )
    celebrating: bool = False
    transitioning: bool = False
    particle_type: str | None = None
    feedback: FeedbackMessage = Field(default_factory=FeedbackMessage)


# ===== COLLABORATION (stub) =====


class CollaborationState(_Frozen):
    session_id: str | None = None
    peers: tuple[str, ...] = ()
    can_edit: bool = True
    can_chat: bool = True
    is_host: bool = False


class Snapshot(_Frozen):
    user: UserState = Field(default_factory=UserState)
    learning: LearningState = Field(default_factory=LearningState)
    gamification: GamificationState = Field(default_factory=GamificationState)
    content: ContentState = Field(default_factory=ContentState)
    offline: OfflineState = Field(default_factory=OfflineState)
    ui: UIState = Field(default_factory=UIState)
    collaboration: CollaborationState = Field(default_factory=CollaborationState)


class HistorySlice(_Frozen):
    """The versioned part of a snapshot."""

    learning: LearningState
    gamification: GamificationState

    @classmethod
    def of(cls, snapshot: Snapshot) -> "HistorySlice":
        return cls(learning=snapshot.learning, gamification=snapshot.gamification)


def initial_snapshot(
    patterns: dict[str, Pattern] | None = None,
    word_banks: dict[str, dict[str, tuple[str, ...]]] | None = None,
    credits: int = 100,
    is_online: bool = True,
    **sections: Any,
) -> Snapshot:
    """Build a fresh snapshot, optionally preloaded with content."""
    content = ContentState(
        word_banks=WordBanksState(loaded=word_banks is not None, data=word_banks or {}),
        patterns=PatternsState(loaded=patterns is not None, data=patterns or {}),
        generated=GeneratedContentState(credits=credits),
    )
    return Snapshot(
        content=content,
        offline=OfflineState(is_online=is_online),
        **sections,
    )
