"""Pure reducers: (snapshot, action, context) -> (new snapshot, effects).

Reducers never perform I/O and never read the clock or generate ids
themselves; both come from the ``ReducerContext`` supplied by the store.
Any rejection raises ``ValidationError`` before a new snapshot exists, so a
failed dispatch leaves the store untouched.
"""

import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sentence_builder.errors import ValidationError
from sentence_builder.learning.achievements import (
    ACHIEVEMENTS,
    CHALLENGES,
    RECENT_ACHIEVEMENTS_LIMIT,
    apply_unlocks,
    evaluate,
)
from sentence_builder.learning.adaptive import update_adaptive
from sentence_builder.learning.personalization import personalized_settings
from sentence_builder.learning.validation import validate_structure
from sentence_builder.models import actions as a
from sentence_builder.models.frozen import freeze
from sentence_builder.models.operations import OperationKind, SyncStatus
from sentence_builder.models.snapshot import (
    ChallengeState,
    CollaborationState,
    CustomWord,
    FeedbackMessage,
    GamificationState,
    LearningState,
    OfflineState,
    SentenceRecord,
    SessionMetrics,
    Snapshot,
    UIState,
    UserState,
    WordToken,
)
from sentence_builder.state.effects import (
    AchievementUnlocked,
    ConnectivityRestored,
    Effect,
    ScheduleAction,
    Transition,
)

ACHIEVEMENT_MODAL_SECONDS = 5.0
CELEBRATION_SECONDS = 2.5
TRANSITION_SECONDS = 0.3


class ReducerContext:
    """Clock and id source for one dispatch.

    Args:
        now: Timestamp applied to everything created by the dispatch.
        id_factory: Returns a fresh unique id on each call.
        recent_achievements_limit: Cap for the recent achievements list.
    """

    def __init__(
        self,
        now: datetime,
        id_factory: Callable[[], str] | None = None,
        recent_achievements_limit: int = RECENT_ACHIEVEMENTS_LIMIT,
    ):
        self.now = now
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self.recent_achievements_limit = recent_achievements_limit

    def new_id(self) -> str:
        return self._id_factory()


def reduce(snapshot: Snapshot, action: a.Action, ctx: ReducerContext) -> Transition:
    """Apply one action.

    Args:
        snapshot: Current committed snapshot.
        action: A member of the closed ``Action`` union.
        ctx: Clock and id source.

    Returns:
        Transition with the new snapshot (the same object when nothing
        changed) and the effects to run after commit.

    Raises:
        ValidationError: If the action references missing content or state.
    """
    match action:
        # User
        case a.SetUserProfile():
            user = snapshot.user.model_copy(update={
                "id": action.user_id or snapshot.user.id,
                "profile": freeze(action.profile),
            })
            return Transition(snapshot.model_copy(update={"user": user}))
        case a.UpdatePreferences():
            return Transition(_update_preferences(snapshot, action.preferences.changes()))
        case a.CompleteOnboarding():
            return Transition(_complete_onboarding(snapshot, action.responses))

        # Learning
        case a.AddWord():
            return _add_word(snapshot, action, ctx)
        case a.RemoveWord():
            return _remove_word(snapshot, action, ctx)
        case a.SelectPattern():
            return Transition(_select_pattern(snapshot, action.pattern_id))
        case a.ValidateSentence():
            return _validate_sentence(snapshot, ctx)
        case a.ClearSentence():
            return Transition(_clear_sentence(snapshot, ctx))

        # Gamification
        case a.UnlockAchievement():
            return _unlock_achievement(snapshot, action, ctx)
        case a.DismissAchievement():
            modals = freeze({**snapshot.ui.modals, "achievement": False})
            return Transition(_with_ui(snapshot, modals=modals, celebrating=False))
        case a.StartChallenge():
            return Transition(_start_challenge(snapshot, action.challenge_id, ctx))
        case a.UpdateChallengeProgress():
            return Transition(_update_challenge(snapshot, action, ctx))

        # UI
        case a.SetActiveView():
            return Transition(
                _with_ui(snapshot, active_view=action.view, transitioning=True),
                (ScheduleAction(action=a.EndTransition(), delay=TRANSITION_SECONDS),),
            )
        case a.EndTransition():
            return Transition(_with_ui(snapshot, transitioning=False))
        case a.ShowFeedback():
            feedback = FeedbackMessage(
                type=action.type, message=action.message, duration=action.duration
            )
            effects: tuple[Effect, ...] = ()
            if action.duration > 0:
                effects = (ScheduleAction(action=a.DismissFeedback(), delay=action.duration),)
            return Transition(_with_ui(snapshot, feedback=feedback), effects)
        case a.DismissFeedback():
            return Transition(_with_ui(snapshot, feedback=FeedbackMessage()))
        case a.Celebrate():
            return Transition(
                _with_ui(snapshot, celebrating=True, particle_type=action.particle_type),
                (ScheduleAction(action=a.EndCelebration(), delay=CELEBRATION_SECONDS),),
            )
        case a.EndCelebration():
            return Transition(_with_ui(snapshot, celebrating=False, particle_type=None))

        # Offline / sync
        case a.SetOnlineStatus():
            return _set_online(snapshot, action.is_online)
        case a.SyncStarted():
            return Transition(_with_offline(
                snapshot, sync_status=SyncStatus.SYNCING, last_error=None
            ))
        case a.OperationAcknowledged() | a.OperationDiscarded():
            queue = snapshot.offline.queue.acknowledge(action.op_id)
            if queue is snapshot.offline.queue:
                return Transition(snapshot)
            return Transition(_with_offline(snapshot, queue=queue))
        case a.SyncSucceeded():
            return Transition(_with_offline(
                snapshot,
                sync_status=SyncStatus.SUCCESS,
                last_sync=action.at or ctx.now,
                last_error=None,
            ))
        case a.SyncFailed():
            return Transition(_with_offline(
                snapshot, sync_status=SyncStatus.ERROR, last_error=action.error
            ))

        # Content
        case a.ContentLoaded():
            return Transition(_content_loaded(snapshot, action))
        case a.AddCustomWord():
            return Transition(_add_custom_word(snapshot, action))
        case a.ToggleFavorite():
            return Transition(_toggle_favorite(snapshot, action.word))
        case a.GenerationRequested():
            return Transition(_generation_requested(snapshot, action.cache_key))
        case a.GenerationCompleted():
            return Transition(_generation_finished(snapshot, action.cache_key, action.content))
        case a.GenerationFailed():
            return Transition(_generation_finished(snapshot, action.cache_key, None))

        # Collaboration (stub)
        case a.JoinSession():
            collaboration = CollaborationState(
                session_id=action.session_id,
                peers=action.peers,
                is_host=action.is_host,
            )
            return Transition(snapshot.model_copy(update={"collaboration": collaboration}))
        case a.LeaveSession():
            return Transition(snapshot.model_copy(update={"collaboration": CollaborationState()}))

        case a.Reset():
            return Transition(_reset(snapshot))

    raise ValidationError(f"Unsupported action: {type(action).__name__}")


# ===== helpers =====


def _with_ui(snapshot: Snapshot, **changes: Any) -> Snapshot:
    return snapshot.model_copy(update={"ui": snapshot.ui.model_copy(update=changes)})


def _with_offline(snapshot: Snapshot, **changes: Any) -> Snapshot:
    return snapshot.model_copy(update={"offline": snapshot.offline.model_copy(update=changes)})


def _enqueue(
    offline: OfflineState, ctx: ReducerContext, kind: OperationKind, payload: dict[str, Any]
) -> OfflineState:
    queue = offline.queue.enqueue(ctx.new_id(), kind, payload, ctx.now)
    return offline.model_copy(update={"queue": queue})


def _session_metrics(learning: LearningState, now: datetime) -> SessionMetrics:
    """Words per minute and distinct vocabulary over completed sentences."""
    words = [token.word for record in learning.session_sentences for token in record.words]
    wpm = learning.metrics.words_per_minute
    if learning.session_started_at is not None:
        minutes = (now - learning.session_started_at).total_seconds() / 60
        if minutes > 0:
            wpm = round(len(words) / minutes)
    return learning.metrics.model_copy(update={
        "words_per_minute": wpm,
        "vocabulary_size": len({w.lower() for w in words}),
        "grammar_accuracy": learning.progress.accuracy,
    })


def _touch_session(learning: LearningState, now: datetime) -> LearningState:
    if learning.session_started_at is not None:
        return learning
    return learning.model_copy(update={"session_started_at": now})


# ===== user =====


def _update_preferences(snapshot: Snapshot, changes: dict[str, Any]) -> Snapshot:
    if not changes:
        return snapshot
    preferences = snapshot.user.preferences.model_copy(update=changes)
    user = snapshot.user.model_copy(update={"preferences": preferences})
    return snapshot.model_copy(update={"user": user})


def _complete_onboarding(snapshot: Snapshot, responses: dict[str, Any]) -> Snapshot:
    onboarding = snapshot.user.onboarding.model_copy(update={
        "completed": True,
        "responses": freeze(responses),
    })
    preferences = snapshot.user.preferences.model_copy(update=personalized_settings(responses))
    user = snapshot.user.model_copy(update={
        "onboarding": onboarding,
        "preferences": preferences,
    })
    return snapshot.model_copy(update={"user": user})


# ===== learning =====


def _add_word(snapshot: Snapshot, action: a.AddWord, ctx: ReducerContext) -> Transition:
    token = WordToken(id=ctx.new_id(), word=action.word, type=action.type, added_at=ctx.now)
    learning = _touch_session(snapshot.learning, ctx.now)
    learning = learning.model_copy(update={
        "current_sentence": learning.current_sentence + (token,),
    })
    learning = learning.model_copy(update={"metrics": _session_metrics(learning, ctx.now)})
    offline = _enqueue(
        snapshot.offline, ctx, OperationKind.ADD_WORD, token.model_dump(mode="json")
    )
    return Transition(snapshot.model_copy(update={"learning": learning, "offline": offline}))


def _remove_word(snapshot: Snapshot, action: a.RemoveWord, ctx: ReducerContext) -> Transition:
    sentence = snapshot.learning.current_sentence
    remaining = tuple(token for token in sentence if token.id != action.token_id)
    if len(remaining) == len(sentence):
        raise ValidationError(f"Word not in current sentence: {action.token_id}")
    learning = snapshot.learning.model_copy(update={"current_sentence": remaining})
    learning = learning.model_copy(update={"metrics": _session_metrics(learning, ctx.now)})
    offline = _enqueue(
        snapshot.offline, ctx, OperationKind.REMOVE_WORD, {"token_id": action.token_id}
    )
    return Transition(snapshot.model_copy(update={"learning": learning, "offline": offline}))


def _select_pattern(snapshot: Snapshot, pattern_id: str) -> Snapshot:
    if snapshot.content.patterns.get(pattern_id) is None:
        raise ValidationError(f"Pattern not found: {pattern_id}")
    if snapshot.learning.current_pattern == pattern_id:
        return snapshot
    learning = snapshot.learning.model_copy(update={"current_pattern": pattern_id})
    patterns = snapshot.content.patterns.model_copy(update={
        "history": snapshot.content.patterns.history + (pattern_id,),
    })
    content = snapshot.content.model_copy(update={"patterns": patterns})
    return snapshot.model_copy(update={"learning": learning, "content": content})


def _validate_sentence(snapshot: Snapshot, ctx: ReducerContext) -> Transition:
    learning = snapshot.learning
    pattern = snapshot.content.patterns.get(learning.current_pattern)
    if pattern is None:
        raise ValidationError(f"Pattern not found: {learning.current_pattern}")

    result = validate_structure(learning.current_sentence, pattern)
    correct = 1 if result.valid else 0

    progress = learning.progress
    attempts = progress.total_attempts + 1
    accuracy = (progress.accuracy * (attempts - 1) + 100 * correct) / attempts

    offline = snapshot.offline
    gamification = snapshot.gamification
    effects: list[Effect] = []

    if result.valid:
        streak = progress.current_streak + 1
        progress = progress.model_copy(update={
            "total_sentences": progress.total_sentences + 1,
            "total_attempts": attempts,
            "current_streak": streak,
            "perfect_streak": max(progress.perfect_streak, streak),
            "xp": progress.xp + pattern.points,
            "accuracy": accuracy,
        })
        record = SentenceRecord(
            words=learning.current_sentence,
            pattern=pattern.id,
            completed_at=ctx.now,
        )
        learning = _touch_session(learning, ctx.now).model_copy(update={
            "progress": progress,
            "adaptive": update_adaptive(learning.adaptive, True),
            "current_sentence": (),
            "session_sentences": learning.session_sentences + (record,),
            "last_validation": result,
        })
        gamification = gamification.model_copy(update={
            "score": gamification.score + pattern.points,
        })
        offline = _enqueue(offline, ctx, OperationKind.COMPLETE_SENTENCE, {
            "pattern": pattern.id,
            "words": [token.model_dump(mode="json") for token in record.words],
            "completed_at": ctx.now.isoformat(),
        })

        interim = snapshot.model_copy(update={
            "learning": learning,
            "gamification": gamification,
        })
        gamification, unlocked = apply_unlocks(
            gamification, evaluate(interim), ctx.now, ctx.recent_achievements_limit
        )
        for achievement_id in unlocked:
            offline = _enqueue(offline, ctx, OperationKind.ACHIEVEMENT_UNLOCK, {
                "achievement_id": achievement_id,
                "unlocked_at": ctx.now.isoformat(),
            })
            effects.append(AchievementUnlocked(achievement_id=achievement_id))
    else:
        progress = progress.model_copy(update={
            "total_attempts": attempts,
            "current_streak": 0,
            "accuracy": accuracy,
        })
        learning = _touch_session(learning, ctx.now).model_copy(update={
            "progress": progress,
            "adaptive": update_adaptive(learning.adaptive, False),
            "last_validation": result,
        })

    learning = learning.model_copy(update={"metrics": _session_metrics(learning, ctx.now)})
    offline = _enqueue(
        offline, ctx, OperationKind.PROGRESS_UPDATE, learning.progress.model_dump(mode="json")
    )
    new = snapshot.model_copy(update={
        "learning": learning,
        "gamification": gamification,
        "offline": offline,
    })
    return Transition(new, tuple(effects))


def _clear_sentence(snapshot: Snapshot, ctx: ReducerContext) -> Snapshot:
    learning = snapshot.learning
    if not learning.current_sentence:
        return snapshot
    record = SentenceRecord(
        words=learning.current_sentence,
        pattern=learning.current_pattern,
        completed_at=ctx.now,
    )
    learning = learning.model_copy(update={
        "current_sentence": (),
        "session_sentences": learning.session_sentences + (record,),
    })
    learning = learning.model_copy(update={"metrics": _session_metrics(learning, ctx.now)})
    return snapshot.model_copy(update={"learning": learning})


# ===== gamification =====


def _unlock_achievement(
    snapshot: Snapshot, action: a.UnlockAchievement, ctx: ReducerContext
) -> Transition:
    if action.achievement_id not in ACHIEVEMENTS:
        raise ValidationError(f"Unknown achievement: {action.achievement_id}")
    gamification, added = apply_unlocks(
        snapshot.gamification, [action.achievement_id], ctx.now, ctx.recent_achievements_limit
    )
    if not added:
        return Transition(snapshot)

    offline = _enqueue(snapshot.offline, ctx, OperationKind.ACHIEVEMENT_UNLOCK, {
        "achievement_id": action.achievement_id,
        "unlocked_at": ctx.now.isoformat(),
    })
    new = snapshot.model_copy(update={"gamification": gamification, "offline": offline})
    effects: list[Effect] = [AchievementUnlocked(achievement_id=action.achievement_id)]
    if action.notify:
        modals = freeze({**new.ui.modals, "achievement": True})
        new = _with_ui(new, modals=modals, celebrating=True)
        effects.append(
            ScheduleAction(action=a.DismissAchievement(), delay=ACHIEVEMENT_MODAL_SECONDS)
        )
    return Transition(new, tuple(effects))


def _start_challenge(snapshot: Snapshot, challenge_id: str, ctx: ReducerContext) -> Snapshot:
    if challenge_id not in CHALLENGES:
        raise ValidationError(f"Unknown challenge: {challenge_id}")
    challenges = snapshot.gamification.challenges
    if any(c.id == challenge_id for c in challenges.active):
        return snapshot
    challenge = ChallengeState(id=challenge_id, started_at=ctx.now)
    challenges = challenges.model_copy(update={"active": challenges.active + (challenge,)})
    gamification = snapshot.gamification.model_copy(update={"challenges": challenges})
    return snapshot.model_copy(update={"gamification": gamification})


def _update_challenge(
    snapshot: Snapshot, action: a.UpdateChallengeProgress, ctx: ReducerContext
) -> Snapshot:
    challenges = snapshot.gamification.challenges
    current = next((c for c in challenges.active if c.id == action.challenge_id), None)
    if current is None:
        raise ValidationError(f"Challenge not active: {action.challenge_id}")

    if action.progress < 100:
        updated = current.model_copy(update={"progress": action.progress})
        active = tuple(updated if c.id == current.id else c for c in challenges.active)
        gamification = snapshot.gamification.model_copy(update={
            "challenges": challenges.model_copy(update={"active": active}),
        })
        return snapshot.model_copy(update={"gamification": gamification})

    done = current.model_copy(update={
        "progress": action.progress,
        "completed": True,
        "completed_at": ctx.now,
    })
    challenges = challenges.model_copy(update={
        "active": tuple(c for c in challenges.active if c.id != current.id),
        "completed": challenges.completed + (done,),
    })
    reward = CHALLENGES[current.id]
    gamification = snapshot.gamification.model_copy(update={
        "challenges": challenges,
        "score": snapshot.gamification.score + reward.points,
    })
    progress = snapshot.learning.progress.model_copy(update={
        "xp": snapshot.learning.progress.xp + reward.xp,
    })
    learning = snapshot.learning.model_copy(update={"progress": progress})
    return snapshot.model_copy(update={"gamification": gamification, "learning": learning})


# ===== offline =====


def _set_online(snapshot: Snapshot, is_online: bool) -> Transition:
    if snapshot.offline.is_online == is_online:
        return Transition(snapshot)
    new = _with_offline(snapshot, is_online=is_online)
    if is_online:
        return Transition(new, (ConnectivityRestored(),))
    return Transition(new)


# ===== content =====


def _content_loaded(snapshot: Snapshot, action: a.ContentLoaded) -> Snapshot:
    content = snapshot.content
    if action.word_banks is not None:
        content = content.model_copy(update={
            "word_banks": content.word_banks.model_copy(update={
                "loaded": True,
                "data": freeze(action.word_banks),
            }),
        })
    if action.patterns is not None:
        content = content.model_copy(update={
            "patterns": content.patterns.model_copy(update={
                "loaded": True,
                "data": freeze(action.patterns),
            }),
        })
    if content is snapshot.content:
        return snapshot
    return snapshot.model_copy(update={"content": content})


def _add_custom_word(snapshot: Snapshot, action: a.AddCustomWord) -> Snapshot:
    word_banks = snapshot.content.word_banks
    custom = CustomWord(word=action.word, type=action.type)
    if custom in word_banks.custom:
        return snapshot
    word_banks = word_banks.model_copy(update={"custom": word_banks.custom + (custom,)})
    content = snapshot.content.model_copy(update={"word_banks": word_banks})
    return snapshot.model_copy(update={"content": content})


def _toggle_favorite(snapshot: Snapshot, word: str) -> Snapshot:
    word_banks = snapshot.content.word_banks
    if word in word_banks.favorites:
        favorites = tuple(w for w in word_banks.favorites if w != word)
    else:
        favorites = word_banks.favorites + (word,)
    word_banks = word_banks.model_copy(update={"favorites": favorites})
    content = snapshot.content.model_copy(update={"word_banks": word_banks})
    return snapshot.model_copy(update={"content": content})


def _generation_requested(snapshot: Snapshot, cache_key: str) -> Snapshot:
    generated = snapshot.content.generated
    if generated.credits <= 0:
        raise ValidationError("No generation credits remaining")
    if cache_key in generated.pending:
        return snapshot
    generated = generated.model_copy(update={"pending": generated.pending + (cache_key,)})
    content = snapshot.content.model_copy(update={"generated": generated})
    return snapshot.model_copy(update={"content": content})


def _generation_finished(snapshot: Snapshot, cache_key: str, result: Any) -> Snapshot:
    generated = snapshot.content.generated
    changes: dict[str, Any] = {
        "pending": tuple(k for k in generated.pending if k != cache_key),
    }
    if result is not None:
        changes["cache"] = freeze({**generated.cache, cache_key: result})
        changes["credits"] = max(0, generated.credits - 1)
    content = snapshot.content.model_copy(update={
        "generated": generated.model_copy(update=changes),
    })
    return snapshot.model_copy(update={"content": content})


def _reset(snapshot: Snapshot) -> Snapshot:
    """Back to a fresh session, keeping preferences, loaded content and the queue."""
    return Snapshot(
        user=UserState(preferences=snapshot.user.preferences),
        learning=LearningState(),
        gamification=GamificationState(),
        content=snapshot.content,
        offline=snapshot.offline,
        ui=UIState(),
        collaboration=CollaborationState(),
    )
