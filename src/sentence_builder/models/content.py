"""Content shapes consumed from the content collaborator."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sentence_builder.models.frozen import FrozenDict

# level -> part of speech -> words
WordBankTable = dict[str, dict[str, tuple[str, ...]]]


class Pattern(BaseModel):
    """A named ordered sequence of part-of-speech tags."""

    model_config = ConfigDict(frozen=True)

    id: str
    structure: tuple[str, ...]
    example: str = ""
    points: int = 10
    name: str = ""
    hint: str = ""
    difficulty: str = "beginner"


PatternTable = dict[str, Pattern]


class GeneratedContent(BaseModel):
    """Result of a topic/level generation request."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    topic: str
    level: str
    sentences: tuple[str, ...] = ()
    words: FrozenDict[str, tuple[str, ...]] = Field(default_factory=dict)
    source: str = "static"  # "static", "llm"
    metadata: FrozenDict[str, Any] = Field(default_factory=dict)
