"""Adaptive skill estimate updated from sentence validation outcomes."""

from sentence_builder.models.snapshot import AdaptiveModel

SUCCESS_LIKELIHOOD = 0.8
FAILURE_LIKELIHOOD = 0.2

MIN_CONFIDENCE = 0.01
MAX_CONFIDENCE = 0.99
MIN_SKILL = 1.0
MAX_SKILL = 10.0

SKILL_GAIN = 1.05
SKILL_LOSS = 0.95


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def update_adaptive(model: AdaptiveModel, success: bool) -> AdaptiveModel:
    """Apply one pass/fail observation to the adaptive model.

    Confidence is a Bayesian update with fixed likelihoods (0.8 on success,
    0.2 on failure), clamped to [0.01, 0.99] so neither bound is absorbing.
    Skill level moves multiplicatively within [1, 10]. The learning rate is
    derived from the new confidence.

    Args:
        model: Current estimate.
        success: Whether the sentence validated.

    Returns:
        New AdaptiveModel.
    """
    prior = model.confidence
    likelihood = SUCCESS_LIKELIHOOD if success else FAILURE_LIKELIHOOD
    evidence = prior * likelihood + (1 - prior) * (1 - likelihood)
    confidence = _clamp((prior * likelihood) / evidence, MIN_CONFIDENCE, MAX_CONFIDENCE)

    factor = SKILL_GAIN if success else SKILL_LOSS
    skill_level = _clamp(model.skill_level * factor, MIN_SKILL, MAX_SKILL)

    return AdaptiveModel(
        skill_level=skill_level,
        confidence=confidence,
        learning_rate=1 + (confidence - 0.5),
    )
