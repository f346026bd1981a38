"""Content collaborator interface and the built-in static tables."""

from typing import Protocol

from sentence_builder.models.content import GeneratedContent, Pattern, PatternTable, WordBankTable


class ContentProvider(Protocol):
    async def fetch_word_banks(self) -> WordBankTable: ...

    async def fetch_patterns(self) -> PatternTable: ...

    async def generate_content(self, topic: str, level: str) -> GeneratedContent: ...


STATIC_WORD_BANKS: WordBankTable = {
    "basic": {
        "article": ("The", "A", "An"),
        "subject": ("cat", "dog", "girl", "boy", "bird", "teacher"),
        "verb": ("runs", "jumps", "eats", "sleeps", "plays", "sings"),
        "adjective": ("happy", "big", "small", "red", "funny", "quick"),
        "object": ("ball", "book", "apple", "game", "song", "toy"),
        "preposition": ("in", "on", "under", "with", "near", "behind"),
        "place": ("park", "house", "school", "garden", "tree", "yard"),
    },
    "intermediate": {
        "article": ("The", "A", "An", "This", "That"),
        "subject": ("student", "scientist", "athlete", "musician", "team"),
        "verb": ("creates", "discovers", "explores", "practices", "studies"),
        "adjective": ("creative", "curious", "talented", "careful", "brave"),
        "object": ("experiment", "project", "instrument", "solution", "invention"),
        "preposition": ("through", "between", "during", "before", "after"),
        "place": ("laboratory", "stadium", "theater", "museum", "library"),
        "adverb": ("quickly", "carefully", "happily", "quietly", "slowly"),
    },
}

STATIC_PATTERNS: PatternTable = {
    p.id: p
    for p in [
        Pattern(
            id="simple",
            name="Simple Sentence",
            structure=("article", "subject", "verb"),
            example="The cat sleeps.",
            points=10,
        ),
        Pattern(
            id="withAdjective",
            name="With Describing Word",
            structure=("article", "adjective", "subject", "verb"),
            example="The happy dog plays.",
            points=15,
        ),
        Pattern(
            id="withObject",
            name="Action + Thing",
            structure=("article", "subject", "verb", "article", "object"),
            example="The girl reads a book.",
            points=20,
        ),
        Pattern(
            id="withAdverb",
            name="How It Happens",
            structure=("article", "subject", "verb", "adverb"),
            example="The bird sings beautifully.",
            points=25,
            difficulty="intermediate",
        ),
        Pattern(
            id="withPlace",
            name="Where It Happens",
            structure=("article", "subject", "verb", "preposition", "article", "place"),
            example="The bird sings in the tree.",
            points=30,
            difficulty="intermediate",
        ),
    ]
}


class StaticContentProvider:
    """Serves the built-in tables; generation uses simple templates."""

    async def fetch_word_banks(self) -> WordBankTable:
        return STATIC_WORD_BANKS

    async def fetch_patterns(self) -> PatternTable:
        return STATIC_PATTERNS

    async def generate_content(self, topic: str, level: str) -> GeneratedContent:
        return fallback_content(topic, level)


def fallback_content(topic: str, level: str) -> GeneratedContent:
    return GeneratedContent(
        topic=topic,
        level=level,
        sentences=(f"The {topic} is interesting.", f"A {topic} can be fun."),
        words={
            "subject": (topic,),
            "verb": ("explores", "discovers"),
            "adjective": ("amazing", "wonderful"),
        },
        source="static",
    )
