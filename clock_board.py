# clock_board.py
"""One clock display: sessions, event NOW/NEXT state and hand angles, all fed
from the same engine tick so they never disagree about "now"."""
import logging
import threading

from config import CLOCK_TIMEZONE, REFERENCE_TIMEZONE, NOW_WINDOW_MS, SESSIONS
from event_timing import NowNextState, compute_now_next
from hand_angles import HandAngleCell, HandAngleSnapService, compute_hand_angles
from session_time import SessionStatus, as_session, resolve_sessions
from time_engine import TimeEngineState, default_registry

logger = logging.getLogger(__name__)


class ClockBoard:
    def __init__(self, timezone=CLOCK_TIMEZONE, sessions=None, events=None,
                 registry=default_registry, reference_tz=REFERENCE_TIMEZONE,
                 now_window_ms: int = NOW_WINDOW_MS):
        self.registry = registry
        self.reference_tz = reference_tz
        self.now_window_ms = now_window_ms
        rows = SESSIONS if sessions is None else sessions
        self.sessions = [s for s in map(as_session, rows) if s is not None]
        self.events = list(events or [])
        self.cell = HandAngleCell()
        self.snapper = HandAngleSnapService(self.cell)

        self._lock = threading.Lock()
        self.status = SessionStatus()
        self.now_next = NowNextState()
        self._listeners = []

        self._sub = registry.subscribe(timezone, self._on_tick)
        self.timezone = self._sub.engine.timezone
        self.snapper.bind(registry, timezone)
        self._on_tick(self._sub.state)

    @property
    def state(self) -> TimeEngineState:
        return self._sub.state

    def set_events(self, events):
        with self._lock:
            self.events = list(events or [])
        self._on_tick(self._sub.state)

    def add_listener(self, fn):
        self._listeners.append(fn)

    def _on_tick(self, state: TimeEngineState):
        with self._lock:
            self.status = resolve_sessions(self.sessions, state.now_time, self.reference_tz)
            self.now_next = compute_now_next(self.events, state.now_epoch_ms, self.now_window_ms)
        self.cell.update(compute_hand_angles(state.now_time))
        for fn in list(self._listeners):
            fn(self, state)

    def close(self):
        self.snapper.unbind()
        self._sub.unsubscribe()
