"""Tests for the bounded undo/redo history."""

import pytest

from sentence_builder.models.snapshot import (
    GamificationState,
    HistorySlice,
    LearningState,
)
from sentence_builder.state.history import TemporalHistory


def _slice(score: int) -> HistorySlice:
    return HistorySlice(learning=LearningState(), gamification=GamificationState(score=score))


def test_undo_returns_previous_then_redo_returns_next():
    history = TemporalHistory()
    s1, s2 = _slice(1), _slice(2)
    history.record(s1)
    history.record(s2)

    assert history.undo() is s1
    assert history.redo() is s2


def test_record_after_undo_discards_redo_branch():
    history = TemporalHistory()
    s1, s2, s3 = _slice(1), _slice(2), _slice(3)
    history.record(s1)
    history.record(s2)
    history.undo()
    history.record(s3)

    assert history.redo() is None
    assert history.present is s3
    assert history.undo() is s1


def test_undo_at_oldest_returns_none():
    history = TemporalHistory()
    assert history.undo() is None
    history.record(_slice(1))
    assert history.undo() is None
    assert not history.can_undo


def test_capacity_drops_oldest():
    history = TemporalHistory(capacity=3)
    slices = [_slice(i) for i in range(5)]
    for s in slices:
        history.record(s)

    assert len(history) == 3
    assert history.undo() is slices[3]
    assert history.undo() is slices[2]
    assert history.undo() is None


def test_clear():
    history = TemporalHistory()
    history.record(_slice(1))
    history.clear()
    assert len(history) == 0
    assert history.present is None


def test_invalid_capacity():
    with pytest.raises(ValueError):
        TemporalHistory(capacity=0)
