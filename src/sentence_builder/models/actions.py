"""Closed set of actions accepted by the snapshot store.

Every action is a frozen model tagged by ``kind``; ``Action`` is the
discriminated union of all of them and ``parse_action`` turns a raw mapping
(e.g. JSON from the browser) into one, rejecting anything else.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from sentence_builder.errors import ValidationError
from sentence_builder.models.content import GeneratedContent, Pattern
from sentence_builder.models.user_profile import PreferencesUpdate


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# User


class SetUserProfile(_Action):
    kind: Literal["set-user-profile"] = "set-user-profile"
    user_id: str | None = None
    profile: dict[str, Any]


class UpdatePreferences(_Action):
    kind: Literal["update-preferences"] = "update-preferences"
    preferences: PreferencesUpdate


class CompleteOnboarding(_Action):
    kind: Literal["complete-onboarding"] = "complete-onboarding"
    responses: dict[str, Any] = Field(default_factory=dict)


# Learning


class AddWord(_Action):
    kind: Literal["add-word"] = "add-word"
    word: str = Field(min_length=1)
    type: str = Field(min_length=1)


class RemoveWord(_Action):
    kind: Literal["remove-word"] = "remove-word"
    token_id: str


class SelectPattern(_Action):
    kind: Literal["select-pattern"] = "select-pattern"
    pattern_id: str


class ValidateSentence(_Action):
    kind: Literal["validate-sentence"] = "validate-sentence"


class ClearSentence(_Action):
    kind: Literal["clear-sentence"] = "clear-sentence"


# Gamification


class UnlockAchievement(_Action):
    kind: Literal["unlock-achievement"] = "unlock-achievement"
    achievement_id: str
    notify: bool = True


class DismissAchievement(_Action):
    kind: Literal["dismiss-achievement"] = "dismiss-achievement"


class StartChallenge(_Action):
    kind: Literal["start-challenge"] = "start-challenge"
    challenge_id: str


class UpdateChallengeProgress(_Action):
    kind: Literal["update-challenge-progress"] = "update-challenge-progress"
    challenge_id: str
    progress: float = Field(ge=0)


# UI


class SetActiveView(_Action):
    kind: Literal["set-active-view"] = "set-active-view"
    view: str


class EndTransition(_Action):
    kind: Literal["end-transition"] = "end-transition"


class ShowFeedback(_Action):
    kind: Literal["show-feedback"] = "show-feedback"
    type: Literal["success", "error", "info", "warning"]
    message: str
    duration: float = 3.0  # seconds; 0 keeps it until dismissed


class DismissFeedback(_Action):
    kind: Literal["dismiss-feedback"] = "dismiss-feedback"


class Celebrate(_Action):
    kind: Literal["celebrate"] = "celebrate"
    particle_type: str = "stars"


class EndCelebration(_Action):
    kind: Literal["end-celebration"] = "end-celebration"


# Offline / sync


class SetOnlineStatus(_Action):
    kind: Literal["set-online-status"] = "set-online-status"
    is_online: bool


class SyncStarted(_Action):
    kind: Literal["sync-started"] = "sync-started"


class OperationAcknowledged(_Action):
    kind: Literal["operation-acknowledged"] = "operation-acknowledged"
    op_id: str


class OperationDiscarded(_Action):
    kind: Literal["operation-discarded"] = "operation-discarded"
    op_id: str
    reason: str = ""


class SyncSucceeded(_Action):
    kind: Literal["sync-succeeded"] = "sync-succeeded"
    at: datetime | None = None


class SyncFailed(_Action):
    kind: Literal["sync-failed"] = "sync-failed"
    error: str


# Content


class ContentLoaded(_Action):
    kind: Literal["content-loaded"] = "content-loaded"
    word_banks: dict[str, dict[str, tuple[str, ...]]] | None = None
    patterns: dict[str, Pattern] | None = None
    source: str = "remote"  # "remote", "cache", "static"


class AddCustomWord(_Action):
    kind: Literal["add-custom-word"] = "add-custom-word"
    word: str = Field(min_length=1)
    type: str = Field(min_length=1)


class ToggleFavorite(_Action):
    kind: Literal["toggle-favorite"] = "toggle-favorite"
    word: str = Field(min_length=1)


class GenerationRequested(_Action):
    kind: Literal["generation-requested"] = "generation-requested"
    cache_key: str


class GenerationCompleted(_Action):
    kind: Literal["generation-completed"] = "generation-completed"
    cache_key: str
    content: GeneratedContent


class GenerationFailed(_Action):
    kind: Literal["generation-failed"] = "generation-failed"
    cache_key: str
    error: str = ""


# Collaboration (stub)


class JoinSession(_Action):
    kind: Literal["join-session"] = "join-session"
    session_id: str
    peers: tuple[str, ...] = ()
    is_host: bool = False


class LeaveSession(_Action):
    kind: Literal["leave-session"] = "leave-session"


class Reset(_Action):
    kind: Literal["reset"] = "reset"


Action = Annotated[
    Union[
        SetUserProfile,
        UpdatePreferences,
        CompleteOnboarding,
        AddWord,
        RemoveWord,
        SelectPattern,
        ValidateSentence,
        ClearSentence,
        UnlockAchievement,
        DismissAchievement,
        StartChallenge,
        UpdateChallengeProgress,
        SetActiveView,
        EndTransition,
        ShowFeedback,
        DismissFeedback,
        Celebrate,
        EndCelebration,
        SetOnlineStatus,
        SyncStarted,
        OperationAcknowledged,
        OperationDiscarded,
        SyncSucceeded,
        SyncFailed,
        ContentLoaded,
        AddCustomWord,
        ToggleFavorite,
        GenerationRequested,
        GenerationCompleted,
        GenerationFailed,
        JoinSession,
        LeaveSession,
        Reset,
    ],
    Field(discriminator="kind"),
]

ACTION_ADAPTER: TypeAdapter[Action] = TypeAdapter(Action)

# Dispatched by the engine itself, never accepted from the browser
INTERNAL_ACTION_KINDS = frozenset({
    "sync-started",
    "operation-acknowledged",
    "operation-discarded",
    "sync-succeeded",
    "sync-failed",
    "content-loaded",
    "generation-requested",
    "generation-completed",
    "generation-failed",
})


def parse_action(raw: Any) -> Action:
    """Validate a raw mapping into an action.

    Args:
        raw: Mapping with a ``kind`` tag, or an action instance.

    Returns:
        The typed action.

    Raises:
        ValidationError: If the kind is unknown or the fields are malformed.
    """
    if isinstance(raw, _Action):
        return raw
    try:
        return ACTION_ADAPTER.validate_python(raw)
    except PydanticValidationError as e:
        raise ValidationError(f"Malformed action: {e.errors(include_url=False)}") from e
