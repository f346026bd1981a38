"""Loads word banks and patterns into the store and runs content generation."""

import asyncio

import structlog
from pydantic import ValidationError as PydanticValidationError

from sentence_builder.content.provider import ContentProvider
from sentence_builder.errors import ContentError
from sentence_builder.models import actions as a
from sentence_builder.models.content import GeneratedContent, PatternTable, WordBankTable
from sentence_builder.state.store import SnapshotStore
from sentence_builder.storage.backends import PersistenceAdapter

logger = structlog.get_logger()

CACHE_WORD_BANKS_KEY = "cache:word-banks"
CACHE_PATTERNS_KEY = "cache:patterns"


def generation_cache_key(topic: str, level: str) -> str:
    return f"{topic}-{level}"


class ContentLoader:
    """Bridges the content collaborator and the store.

    Cached tables are applied first; fresh ones replace them when online.
    When the collaborator fails the cached tables stay in place, and if
    there are none the builder is unavailable but the store stays valid.

    Args:
        store: Snapshot store.
        provider: Content collaborator.
        adapter: Persistence adapter used as the content cache.
    """

    def __init__(
        self, store: SnapshotStore, provider: ContentProvider, adapter: PersistenceAdapter
    ):
        self.store = store
        self.provider = provider
        self.adapter = adapter
        self._inflight: dict[str, asyncio.Task] = {}

    async def load(self) -> bool:
        """Load content tables.

        Returns:
            True if patterns are available afterwards.
        """
        await self._load_cached()

        if self.store.get_snapshot().offline.is_online:
            try:
                word_banks, patterns = await self._fetch()
            except ContentError as e:
                logger.warning("content_fetch_failed", error=str(e))
            else:
                self.store.dispatch(a.ContentLoaded(
                    word_banks=word_banks, patterns=patterns, source="remote"
                ))
                await asyncio.to_thread(self._save_cache, word_banks, patterns)
                logger.info("content_loaded", source="remote", patterns=len(patterns))

        if not self.store.get_snapshot().content.patterns.loaded:
            self.store.dispatch(a.ShowFeedback(type="error", message="Failed to load content"))
            return False
        return True

    async def generate(self, topic: str, level: str) -> GeneratedContent | None:
        """Generate topic content, served from the snapshot cache when present.

        Concurrent calls for the same topic and level share one provider
        request and spend one credit.
        """
        key = generation_cache_key(topic, level)
        generated = self.store.get_snapshot().content.generated
        if key in generated.cache:
            return generated.cache[key]
        task = self._inflight.get(key)
        if task is None:
            if generated.credits <= 0:
                self.store.dispatch(
                    a.ShowFeedback(type="warning", message="No AI credits remaining")
                )
                return None
            task = asyncio.create_task(self._generate(topic, level, key))
            self._inflight[key] = task
            task.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def _generate(self, topic: str, level: str, key: str) -> GeneratedContent | None:
        self.store.dispatch(a.GenerationRequested(cache_key=key))
        try:
            content = await self.provider.generate_content(topic, level)
        except Exception as e:
            logger.exception("content_generation_error", topic=topic, level=level)
            self.store.dispatch(a.GenerationFailed(cache_key=key, error=str(e)))
            self.store.dispatch(a.ShowFeedback(type="error", message="Failed to generate content"))
            return None

        self.store.dispatch(a.GenerationCompleted(cache_key=key, content=content))
        return content

    async def _fetch(self) -> tuple[WordBankTable, PatternTable]:
        try:
            word_banks, patterns = await asyncio.gather(
                self.provider.fetch_word_banks(),
                self.provider.fetch_patterns(),
            )
        except Exception as e:
            raise ContentError(f"Content provider failed: {e}") from e
        if not patterns:
            raise ContentError("Content provider returned no patterns")
        return word_banks, patterns

    async def _load_cached(self) -> None:
        word_banks = await asyncio.to_thread(self.adapter.load, CACHE_WORD_BANKS_KEY)
        patterns = await asyncio.to_thread(self.adapter.load, CACHE_PATTERNS_KEY)
        if not (word_banks and patterns):
            return
        try:
            self.store.dispatch(a.ContentLoaded(
                word_banks=word_banks, patterns=patterns, source="cache"
            ))
        except PydanticValidationError:
            logger.warning("content_cache_invalid")
            return
        logger.info("content_loaded", source="cache", patterns=len(patterns))

    def _save_cache(self, word_banks: WordBankTable, patterns: PatternTable) -> None:
        self.adapter.save(CACHE_WORD_BANKS_KEY, {
            level: {pos: list(words) for pos, words in banks.items()}
            for level, banks in word_banks.items()
        })
        self.adapter.save(CACHE_PATTERNS_KEY, {
            pattern_id: pattern.model_dump(mode="json") for pattern_id, pattern in patterns.items()
        })
