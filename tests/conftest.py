"""Shared fixtures: repo root on sys.path, a settable clock and a hand-cranked ticker."""

from __future__ import annotations

import datetime as dt
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from time_engine import TimeEngineRegistry  # noqa: E402


class FakeClock:
    """Wall clock in epoch seconds that only moves when told to."""

    def __init__(self, start: float):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def set(self, moment: dt.datetime) -> None:
        self.now = moment.timestamp()


class ManualTicker:
    """Ticker stand-in: never starts a thread, fires only via fire()."""

    created: list["ManualTicker"] = []

    def __init__(self, callback, interval_s, clock):
        self.callback = callback
        self.interval_s = interval_s
        self.clock = clock
        self.running = False
        ManualTicker.created.append(self)

    def start(self):
        self.running = True

    def stop(self):
        self.running = False

    def fire(self):
        if self.running:
            self.callback()


# Wednesday 2024-03-13 09:30:00 in New York (EDT)
START = dt.datetime(2024, 3, 13, 13, 30, tzinfo=dt.timezone.utc)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START.timestamp())


@pytest.fixture
def tickers():
    ManualTicker.created = []
    yield ManualTicker.created
    ManualTicker.created = []


@pytest.fixture
def registry(clock, tickers) -> TimeEngineRegistry:
    return TimeEngineRegistry(clock=clock, ticker_factory=ManualTicker)
