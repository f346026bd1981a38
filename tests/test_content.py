"""Tests for content loading, generation and the LLM provider."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

from sentence_builder.content.generator import OpenAIContentProvider
from sentence_builder.content.loader import (
    CACHE_PATTERNS_KEY,
    CACHE_WORD_BANKS_KEY,
    ContentLoader,
    generation_cache_key,
)
from sentence_builder.content.provider import STATIC_PATTERNS, StaticContentProvider
from sentence_builder.models import actions as a
from sentence_builder.models.snapshot import initial_snapshot
from sentence_builder.state.store import SnapshotStore
from sentence_builder.storage.backends import MemoryBackend, PersistenceAdapter


def _failing_provider():
    provider = MagicMock()
    provider.fetch_word_banks = AsyncMock(side_effect=ConnectionError("offline"))
    provider.fetch_patterns = AsyncMock(side_effect=ConnectionError("offline"))
    provider.generate_content = AsyncMock(side_effect=RuntimeError("llm down"))
    return provider


def _empty_store():
    return SnapshotStore(initial=initial_snapshot())


class TestContentLoader:
    async def test_load_from_provider_and_cache_it(self):
        store = _empty_store()
        adapter = PersistenceAdapter(MemoryBackend())

        assert await ContentLoader(store, StaticContentProvider(), adapter).load() is True

        patterns = store.get_snapshot().content.patterns
        assert patterns.loaded
        assert patterns.data["simple"] == STATIC_PATTERNS["simple"]
        assert "simple" in adapter.load(CACHE_PATTERNS_KEY)
        assert "basic" in adapter.load(CACHE_WORD_BANKS_KEY)

    async def test_failure_keeps_cached_tables(self):
        adapter = PersistenceAdapter(MemoryBackend())
        await ContentLoader(_empty_store(), StaticContentProvider(), adapter).load()

        store = _empty_store()
        assert await ContentLoader(store, _failing_provider(), adapter).load() is True

        content = store.get_snapshot().content
        assert content.patterns.get("withPlace") is not None
        assert content.word_banks.data["basic"]["verb"][0] == "runs"

    async def test_failure_without_cache_shows_error(self):
        store = _empty_store()
        adapter = PersistenceAdapter(MemoryBackend())

        assert await ContentLoader(store, _failing_provider(), adapter).load() is False

        snapshot = store.get_snapshot()
        assert not snapshot.content.patterns.loaded
        assert snapshot.ui.feedback.type == "error"
        store.close()

    async def test_offline_skips_fetch(self):
        store = SnapshotStore(initial=initial_snapshot(is_online=False))
        provider = _failing_provider()
        await ContentLoader(store, provider, PersistenceAdapter(MemoryBackend())).load()
        provider.fetch_patterns.assert_not_called()
        store.close()

    async def test_builder_usable_after_cache_only_load(self):
        adapter = PersistenceAdapter(MemoryBackend())
        await ContentLoader(_empty_store(), StaticContentProvider(), adapter).load()

        store = SnapshotStore(initial=initial_snapshot(is_online=False))
        await ContentLoader(store, _failing_provider(), adapter).load()
        store.dispatch(a.AddWord(word="The", type="article"))
        store.dispatch(a.AddWord(word="dog", type="subject"))
        store.dispatch(a.AddWord(word="runs", type="verb"))
        store.dispatch(a.ValidateSentence())

        assert store.get_snapshot().learning.progress.total_sentences == 1


class TestGenerate:
    async def test_generate_caches_result(self):
        store = SnapshotStore(initial=initial_snapshot(patterns=STATIC_PATTERNS))
        provider = StaticContentProvider()
        loader = ContentLoader(store, provider, PersistenceAdapter(MemoryBackend()))

        first = await loader.generate("ocean", "beginner")
        second = await loader.generate("ocean", "beginner")

        assert first == second
        generated = store.get_snapshot().content.generated
        assert generation_cache_key("ocean", "beginner") in generated.cache
        assert generated.credits == 99

    async def test_concurrent_requests_share_one_call(self):
        store = SnapshotStore(initial=initial_snapshot(patterns=STATIC_PATTERNS))
        provider = StaticContentProvider()
        provider.generate_content = AsyncMock(wraps=provider.generate_content)
        loader = ContentLoader(store, provider, PersistenceAdapter(MemoryBackend()))

        first, second = await asyncio.gather(
            loader.generate("animals", "beginner"),
            loader.generate("animals", "beginner"),
        )

        assert first is second
        assert provider.generate_content.await_count == 1
        generated = store.get_snapshot().content.generated
        assert generated.credits == 99
        assert generated.pending == ()

    async def test_no_credits(self):
        store = SnapshotStore(initial=initial_snapshot(credits=0))
        loader = ContentLoader(store, StaticContentProvider(), PersistenceAdapter(MemoryBackend()))

        assert await loader.generate("ocean", "beginner") is None
        assert store.get_snapshot().ui.feedback.type == "warning"
        store.close()

    async def test_provider_error_releases_pending(self):
        store = _empty_store()
        loader = ContentLoader(store, _failing_provider(), PersistenceAdapter(MemoryBackend()))

        assert await loader.generate("ocean", "beginner") is None

        generated = store.get_snapshot().content.generated
        assert generated.pending == ()
        assert generated.credits == 100
        store.close()


class TestOpenAIContentProvider:
    def _provider(self, create):
        with patch("sentence_builder.content.generator.AsyncOpenAI") as client_cls:
            client_cls.return_value.chat.completions.create = create
            return OpenAIContentProvider(api_key="test-key")

    async def test_parses_llm_response(self):
        message = MagicMock()
        message.content = (
            '{"sentences": ["The rocket flies.", "A star shines."],'
            ' "words": {"subject": ["rocket", "star"], "verb": ["flies"]}}'
        )
        response = MagicMock()
        response.choices = [MagicMock(message=message)]
        provider = self._provider(AsyncMock(return_value=response))

        content = await provider.generate_content("space", "beginner")

        assert content.source == "llm"
        assert content.sentences == ("The rocket flies.", "A star shines.")
        assert content.words["subject"] == ("rocket", "star")

    async def test_falls_back_on_error(self):
        provider = self._provider(AsyncMock(side_effect=RuntimeError("API down")))

        content = await provider.generate_content("space", "beginner")

        assert content.source == "static"
        assert content.topic == "space"

    async def test_tables_are_static(self):
        provider = self._provider(AsyncMock())
        assert await provider.fetch_patterns() == STATIC_PATTERNS
