"""Structural validation of an assembled sentence against a pattern."""

from collections.abc import Sequence

from sentence_builder.models.content import Pattern
from sentence_builder.models.snapshot import SentenceValidation, WordToken


def validate_structure(sentence: Sequence[WordToken], pattern: Pattern) -> SentenceValidation:
    """Compare the sentence's word types with the pattern's structure.

    The sentence is valid only if both ordered sequences are equal. On
    failure a single human readable reason is reported.
    """
    structure = [token.type for token in sentence]
    expected = list(pattern.structure)

    if structure == expected:
        return SentenceValidation(valid=True)

    if len(structure) < len(expected):
        error = f"Missing {len(expected) - len(structure)} word(s)"
    elif len(structure) > len(expected):
        error = f"Too many words ({len(structure)} vs {len(expected)})"
    else:
        position = next(i for i, (got, want) in enumerate(zip(structure, expected)) if got != want)
        error = (
            f"Position {position + 1}: Expected {expected[position]}, got {structure[position]}"
        )
    return SentenceValidation(valid=False, errors=(error,))
