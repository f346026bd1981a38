"""User section of the snapshot: profile, preferences, onboarding."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sentence_builder.models.frozen import FrozenDict


class Preferences(BaseModel):
    model_config = ConfigDict(frozen=True)

    theme: str = "light"
    sound_enabled: bool = True
    haptic_enabled: bool = True
    font_size: str = "medium"
    language: str = "en"
    difficulty: str = "adaptive"  # adaptive / progressive / fixed-easy
    animations: bool = True
    particle_effects: bool = False
    read_aloud: bool = False


class PreferencesUpdate(BaseModel):
    """Partial preference update. Unknown keys are rejected."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    theme: str | None = None
    sound_enabled: bool | None = None
    haptic_enabled: bool | None = None
    font_size: str | None = None
    language: str | None = None
    difficulty: str | None = None
    animations: bool | None = None
    particle_effects: bool | None = None
    read_aloud: bool | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class Subscription(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: str = "free"
    valid_until: datetime | None = None
    features: tuple[str, ...] = ()


class OnboardingStatus(BaseModel):
    model_config = ConfigDict(frozen=True, validate_default=True)

    completed: bool = False
    current_step: int = 0
    responses: FrozenDict[str, Any] = Field(default_factory=dict)
    skip_reason: str | None = None


class UserState(BaseModel):
    model_config = ConfigDict(frozen=True, validate_default=True)

    id: str | None = None
    profile: FrozenDict[str, Any] | None = None
    preferences: Preferences = Field(default_factory=Preferences)
    subscription: Subscription = Field(default_factory=Subscription)
    onboarding: OnboardingStatus = Field(default_factory=OnboardingStatus)
