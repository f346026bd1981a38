"""Preference defaults derived from onboarding answers."""

from typing import Any


def personalized_settings(responses: dict[str, Any]) -> dict[str, Any]:
    """Map onboarding responses to preference overrides.

    Args:
        responses: Answers collected by the onboarding flow
            (``age``, ``skill_level``, ``learning_style``).

    Returns:
        Dict of Preferences field overrides.
    """
    settings: dict[str, Any] = {}

    age = responses.get("age")
    if isinstance(age, (int, float)):
        if age <= 8:
            settings["theme"] = "colorful"
            settings["font_size"] = "large"
        elif age <= 12:
            settings["theme"] = "modern"
            settings["font_size"] = "medium"
        else:
            settings["theme"] = "professional"
            settings["font_size"] = "small"

    skill_level = responses.get("skill_level")
    if skill_level == "beginner":
        settings["difficulty"] = "fixed-easy"
    elif skill_level == "intermediate":
        settings["difficulty"] = "progressive"
    elif skill_level is not None:
        settings["difficulty"] = "adaptive"

    learning_style = responses.get("learning_style")
    if learning_style == "visual":
        settings["animations"] = True
        settings["particle_effects"] = True
    elif learning_style == "auditory":
        settings["sound_enabled"] = True
        settings["read_aloud"] = True

    return settings
