"""Tests for hand angles and the resume snap."""

from __future__ import annotations

import datetime as dt

import pytest

from hand_angles import (
    AngleTween,
    HandAngleCell,
    HandAngles,
    HandAngleSnapService,
    compute_hand_angles,
    normalize_angle,
)
from time_engine import TimeEngineState


class RecordingCell(HandAngleCell):
    def __init__(self):
        super().__init__()
        self.history: list[HandAngles] = []

    def update(self, angles):
        super().update(angles)
        self.history.append(angles)


def test_compute_hand_angles() -> None:
    angles = compute_hand_angles(dt.time(15, 30, 45))

    assert angles == HandAngles(hour=105.0, minute=184.5, second=270.0)


def test_midnight_and_noon_are_zero() -> None:
    assert compute_hand_angles(dt.time(0, 0, 0)) == HandAngles()
    assert compute_hand_angles(dt.datetime(2024, 3, 13, 12, 0, 0)) == HandAngles()


@pytest.mark.parametrize("raw,expected", [(0, 0), (360, 0), (370, 10), (-30, 330), (-720, 0)])
def test_normalize_angle(raw, expected) -> None:
    assert normalize_angle(raw) == pytest.approx(expected)


def test_tween_takes_shortest_path() -> None:
    cell = HandAngleCell(HandAngles(hour=350, minute=10, second=0))
    tween = AngleTween(cell, HandAngles(hour=10, minute=350, second=90))

    tween.step(0.5)

    assert cell.angles.hour == pytest.approx(0)
    assert cell.angles.minute == pytest.approx(0)
    assert cell.angles.second == pytest.approx(45)


def test_tween_finishes_on_target() -> None:
    cell = HandAngleCell()
    target = HandAngles(hour=90, minute=180, second=270)
    tween = AngleTween(cell, target)

    assert tween.step(0.5)
    assert not tween.step(1.0)
    assert cell.angles == target
    assert not tween.step(1.0)
    assert tween.frames == 2


def test_force_set_kills_tween() -> None:
    cell = RecordingCell()
    tween = AngleTween(cell, HandAngles(hour=180))
    snapped = HandAngles(hour=45, minute=90, second=0)

    cell.force_set(snapped)

    assert tween.killed
    assert cell.tween is None
    assert not tween.step(0.9)
    assert cell.history == [snapped]


def test_new_tween_replaces_old_one() -> None:
    cell = HandAngleCell()
    first = AngleTween(cell, HandAngles(hour=10))
    second = AngleTween(cell, HandAngles(hour=20))

    assert first.killed
    assert cell.tween is second


def test_no_snap_on_first_observation() -> None:
    cell = RecordingCell()
    service = HandAngleSnapService(cell)
    now = dt.datetime(2024, 3, 13, 9, 30, tzinfo=dt.timezone.utc)

    service.on_tick(TimeEngineState(now_epoch_ms=0, now_time=now, resume_token=3))

    assert cell.history == []


def test_snap_without_a_tick_is_a_noop() -> None:
    cell = RecordingCell()

    assert HandAngleSnapService(cell).snap() is None
    assert cell.history == []


def test_resume_snaps_hands_and_stops_tween(registry, clock) -> None:
    cell = RecordingCell()
    service = HandAngleSnapService(cell)
    sub = service.bind(registry, "America/New_York")
    assert cell.history == []

    # an animation toward the pre-hide time is still running when the app hides
    tween = AngleTween(cell, HandAngles(hour=300, minute=300, second=300))
    tween.step(0.2)

    registry.notify_visibility(False)
    clock.advance(5 * 60)
    registry.notify_visibility(True)
    expected = compute_hand_angles(sub.state.now_time)
    resumed_at = len(cell.history)

    assert tween.killed
    assert cell.angles == expected
    assert not tween.step(0.6)
    assert all(a == expected for a in cell.history[1:resumed_at])
    assert len(cell.history) == resumed_at

    service.unbind()
    assert not sub.active


def test_token_change_alone_triggers_snap() -> None:
    cell = RecordingCell()
    service = HandAngleSnapService(cell)
    t = dt.datetime(2024, 3, 13, 15, 30, 45)

    service.on_tick(TimeEngineState(0, t, 0))
    service.on_tick(TimeEngineState(1000, t, 0))
    assert cell.history == []

    service.on_tick(TimeEngineState(2000, t, 1))
    assert cell.history == [compute_hand_angles(t)]
