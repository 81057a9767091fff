# time_engine.py
"""Shared wall-clock tick source.

One engine (and one ticker thread) per timezone, shared by every subscriber
of that timezone. Ticks land on wall-clock second boundaries so separate
displays change their seconds digit together. Visibility changes switch the
ticker between foreground and background cadence; coming back to the
foreground bumps ``resume_token`` so consumers can snap instead of animating
through the hidden period.
"""
import datetime as dt
import itertools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from config import FOREGROUND_INTERVAL_S, BACKGROUND_INTERVAL_S, INACTIVITY_STOP_S
from tz_utils import resolve_timezone, timezone_name, from_epoch_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeEngineState:
    now_epoch_ms: int
    now_time: dt.datetime       # aware, in the engine's timezone
    resume_token: int


TickCallback = Callable[[TimeEngineState], None]


def seconds_to_boundary(now_s: float, interval_s: float) -> float:
    """Delay until the next multiple of interval_s on the wall clock (never 0)."""
    return interval_s - (now_s % interval_s)


class Ticker:
    """Daemon thread calling `callback` on wall-clock interval boundaries."""

    def __init__(self, callback: Callable[[], None], interval_s: float,
                 clock: Callable[[], float] = time.time, name: str = "time-engine"):
        self._callback = callback
        self._interval = interval_s
        self._clock = clock
        self._name = name
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval_s(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def start(self):
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def stop(self):
        # no join: the owner may hold the engine lock the thread is waiting on
        self._stop.set()

    def join(self, timeout: float | None = None):
        t = self._thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout)

    def _run(self):
        while not self._stop.is_set():
            # recomputed from the wall clock every round so waits never accumulate drift
            delay = seconds_to_boundary(self._clock(), self._interval)
            if self._stop.wait(delay):
                break
            try:
                self._callback()
            except Exception:
                logger.exception("tick callback failed")


class TimeEngine:
    def __init__(self, timezone, clock: Callable[[], float] = time.time,
                 ticker_factory=Ticker,
                 foreground_interval_s: float = FOREGROUND_INTERVAL_S,
                 background_interval_s: float = BACKGROUND_INTERVAL_S,
                 inactivity_stop_s: float = INACTIVITY_STOP_S):
        self.tz = resolve_timezone(timezone)
        self.timezone = timezone_name(self.tz)
        self._clock = clock
        self._ticker_factory = ticker_factory
        self._fg_interval = foreground_interval_s
        self._bg_interval = background_interval_s
        self._inactivity_stop = inactivity_stop_s

        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._subscribers: dict[int, TickCallback | None] = {}
        self._ticker = None
        self._visible = True
        self._hidden_at: float | None = None
        self._stopped = False
        self._resume_token = 0
        self._state = self._snapshot()

    # ----- read side -----
    @property
    def state(self) -> TimeEngineState:
        return self._state

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def timer_active(self) -> bool:
        return self._ticker is not None and self._ticker.running

    @property
    def visible(self) -> bool:
        return self._visible

    # ----- subscribers -----
    def add_subscriber(self, callback: TickCallback | None = None) -> int:
        with self._lock:
            sub_id = next(self._ids)
            self._subscribers[sub_id] = callback
            if len(self._subscribers) == 1:
                self._state = self._snapshot()
                self._restart_ticker(self._fg_interval if self._visible else self._bg_interval)
            return sub_id

    def remove_subscriber(self, sub_id: int) -> int:
        """Drop a subscriber; returns how many remain. The last one stops the ticker."""
        with self._lock:
            self._subscribers.pop(sub_id, None)
            if not self._subscribers:
                self._stop_ticker()
            return len(self._subscribers)

    # ----- ticking -----
    def tick(self):
        with self._lock:
            if not self._subscribers:
                return
            if (not self._visible and self._hidden_at is not None
                    and self._clock() - self._hidden_at >= self._inactivity_stop):
                logger.info("time engine %s idle in background, stopping ticker", self.timezone)
                self._stop_ticker()
                self._stopped = True
                return
            state = self._state = self._snapshot()
        self._deliver(state)

    def set_visible(self, visible: bool):
        with self._lock:
            if not visible:
                if not self._visible:
                    return
                self._visible = False
                self._hidden_at = self._clock()
                if self._subscribers:
                    self._restart_ticker(self._bg_interval)
            else:
                was_hidden = self._hidden_at is not None
                was_stopped = self._stopped
                self._visible = True
                self._hidden_at = None
                self._stopped = False
                if self._subscribers:
                    self._restart_ticker(self._fg_interval)
                if was_hidden or was_stopped:
                    self._resume_token += 1
                    logger.debug("time engine %s resumed, token=%d", self.timezone, self._resume_token)
            # wall-clock recompute, never an accumulated counter
            state = self._state = self._snapshot()
        self._deliver(state)

    # ----- internals -----
    def _snapshot(self) -> TimeEngineState:
        now_ms = int(self._clock() * 1000)
        return TimeEngineState(
            now_epoch_ms=now_ms,
            now_time=from_epoch_ms(now_ms, self.tz),
            resume_token=self._resume_token,
        )

    def _restart_ticker(self, interval_s: float):
        self._stop_ticker()
        self._ticker = self._ticker_factory(self.tick, interval_s, self._clock)
        self._ticker.start()

    def _stop_ticker(self):
        if self._ticker is not None:
            self._ticker.stop()
            self._ticker = None

    def _deliver(self, state: TimeEngineState):
        for cb in list(self._subscribers.values()):
            if cb is None:
                continue
            try:
                cb(state)
            except Exception:
                logger.exception("time engine subscriber failed")


class Subscription:
    def __init__(self, registry: "TimeEngineRegistry", engine: TimeEngine, sub_id: int):
        self._registry = registry
        self.engine = engine
        self._sub_id = sub_id
        self._active = True

    @property
    def state(self) -> TimeEngineState:
        return self.engine.state

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self):
        if not self._active:
            return
        self._active = False
        self._registry._release(self.engine, self._sub_id)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.unsubscribe()


class TimeEngineRegistry:
    """Reference-counted engines keyed by (resolved) timezone name."""

    def __init__(self, clock: Callable[[], float] = time.time, ticker_factory=Ticker, **engine_options):
        self._clock = clock
        self._ticker_factory = ticker_factory
        self._engine_options = engine_options
        self._lock = threading.RLock()
        self._engines: dict[str, TimeEngine] = {}
        self._visibility_listeners: list[Callable[[bool], None]] = []
        self._visible = True

    def subscribe(self, timezone, callback: TickCallback | None = None) -> Subscription:
        tz = resolve_timezone(timezone)
        key = timezone_name(tz)
        with self._lock:
            engine = self._engines.get(key)
            if engine is None:
                engine = TimeEngine(tz, clock=self._clock, ticker_factory=self._ticker_factory,
                                    **self._engine_options)
                if not self._visible:
                    engine.set_visible(False)
                self._engines[key] = engine
                logger.debug("time engine created for %s", key)
            sub_id = engine.add_subscriber(callback)
        return Subscription(self, engine, sub_id)

    def engine_for(self, timezone) -> TimeEngine | None:
        return self._engines.get(timezone_name(resolve_timezone(timezone)))

    @property
    def active_timezones(self) -> list[str]:
        return sorted(self._engines)

    def notify_visibility(self, visible: bool):
        """Host foreground/background signal; fans out to engines and listeners."""
        with self._lock:
            self._visible = visible
            engines = list(self._engines.values())
            listeners = list(self._visibility_listeners)
        for engine in engines:
            engine.set_visible(visible)
        for listener in listeners:
            try:
                listener(visible)
            except Exception:
                logger.exception("visibility listener failed")

    def add_visibility_listener(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        with self._lock:
            self._visibility_listeners.append(listener)

        def remove():
            with self._lock:
                if listener in self._visibility_listeners:
                    self._visibility_listeners.remove(listener)
        return remove

    def _release(self, engine: TimeEngine, sub_id: int):
        with self._lock:
            if engine.remove_subscriber(sub_id) == 0 and self._engines.get(engine.timezone) is engine:
                del self._engines[engine.timezone]
                logger.debug("time engine for %s torn down", engine.timezone)


default_registry = TimeEngineRegistry()


def subscribe(timezone, callback: TickCallback | None = None) -> Subscription:
    return default_registry.subscribe(timezone, callback)
