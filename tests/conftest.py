"""Shared fixtures."""

import itertools
from datetime import datetime

import pytest

from sentence_builder.content.provider import STATIC_PATTERNS, STATIC_WORD_BANKS
from sentence_builder.models.snapshot import Snapshot, initial_snapshot
from sentence_builder.state.reducers import ReducerContext
from sentence_builder.state.store import SnapshotStore

NOW = datetime(2026, 3, 1, 9, 0, 0)


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def snapshot() -> Snapshot:
    return initial_snapshot(patterns=STATIC_PATTERNS, word_banks=STATIC_WORD_BANKS)


@pytest.fixture
def ctx(id_factory) -> ReducerContext:
    return ReducerContext(now=NOW, id_factory=id_factory)


@pytest.fixture
def store(snapshot, id_factory) -> SnapshotStore:
    s = SnapshotStore(initial=snapshot, clock=lambda: NOW, id_factory=id_factory)
    yield s
    s.close()
