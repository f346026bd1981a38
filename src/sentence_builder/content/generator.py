"""LLM-backed content generation with static fallback."""

import json

import structlog
from openai import AsyncOpenAI

from sentence_builder.content.provider import STATIC_PATTERNS, STATIC_WORD_BANKS, fallback_content
from sentence_builder.models.content import GeneratedContent, PatternTable, WordBankTable

logger = structlog.get_logger()

MAX_SENTENCES = 5

GENERATION_SYSTEM_PROMPT = """\
You write practice material for children learning to build English sentences \
from word cards.

Given a topic and a level (beginner, intermediate, advanced), produce:

1. **sentences**: up to 5 short, grammatical, age-appropriate example sentences \
   about the topic.
2. **words**: word cards grouped by part of speech. Use only these keys: \
   article, subject, verb, adjective, object, preposition, place, adverb.

Respond ONLY with a JSON object:
{
    "sentences": ["<sentence>", ...],
    "words": {"<part of speech>": ["<word>", ...]}
}
"""


class OpenAIContentProvider:
    """Generates topic content with an LLM; tables come from the static set.

    Args:
        api_key: OpenAI API key.
        model: Model to use for generation.
    """

    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model

    async def fetch_word_banks(self) -> WordBankTable:
        return STATIC_WORD_BANKS

    async def fetch_patterns(self) -> PatternTable:
        return STATIC_PATTERNS

    async def generate_content(self, topic: str, level: str) -> GeneratedContent:
        """Generate sentences and word cards for a topic.

        Args:
            topic: Subject the learner picked.
            level: beginner / intermediate / advanced.

        Returns:
            GeneratedContent; the static fallback if the LLM call fails.
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": GENERATION_SYSTEM_PROMPT},
                    {"role": "user", "content": f"Topic: {topic}\nLevel: {level}"},
                ],
                temperature=0.7,
                response_format={"type": "json_object"},
            )

            result = json.loads(response.choices[0].message.content)
            logger.info("content_generation_complete", topic=topic, level=level)

            sentences = tuple(str(s) for s in result.get("sentences", []))[:MAX_SENTENCES]
            words = {
                str(pos): tuple(str(w) for w in items)
                for pos, items in (result.get("words") or {}).items()
                if isinstance(items, list)
            }
            return GeneratedContent(
                topic=topic,
                level=level,
                sentences=sentences,
                words=words,
                source="llm",
                metadata={"model": self.model},
            )

        except Exception:
            logger.exception("content_generation_failed", topic=topic, level=level)
            return fallback_content(topic, level)
