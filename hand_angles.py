# hand_angles.py
"""Clock-hand angles shared with the render loop.

The render loop reads a HandAngleCell every frame. Two writers exist: the
normal per-tick / per-frame update, and the snap that runs on resume. The
snap kills any in-flight tween before writing so time spent in the
background is never swept through on screen.
"""
import datetime as dt
import logging
import threading
from dataclasses import dataclass

from time_engine import TimeEngineState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HandAngles:
    hour: float = 0.0
    minute: float = 0.0
    second: float = 0.0


def normalize_angle(deg: float) -> float:
    deg = deg % 360
    return deg + 360 if deg < 0 else deg


def compute_hand_angles(time: dt.datetime | dt.time) -> HandAngles:
    hours, minutes, seconds = time.hour, time.minute, time.second
    return HandAngles(
        hour=normalize_angle(((hours % 12) + minutes / 60) * 30),
        minute=normalize_angle((minutes + seconds / 60) * 6),
        second=normalize_angle(seconds * 6),
    )


class HandAngleCell:
    """Single shared angle record; every write replaces all three fields."""

    def __init__(self, angles: HandAngles | None = None):
        self._lock = threading.Lock()
        self._angles = angles or HandAngles()
        self._tween = None
        self.writes = 0

    @property
    def angles(self) -> HandAngles:
        return self._angles

    @property
    def tween(self):
        return self._tween

    def update(self, angles: HandAngles):
        """Regular write path (tick recompute, tween frames)."""
        with self._lock:
            self._angles = angles
            self.writes += 1

    def attach_tween(self, tween: "AngleTween"):
        with self._lock:
            previous, self._tween = self._tween, tween
        if previous is not None and previous is not tween:
            previous.kill()

    def force_set(self, angles: HandAngles):
        """Snap write path: stop the in-flight tween, then write once."""
        with self._lock:
            tween, self._tween = self._tween, None
        if tween is not None:
            tween.kill()
        self.update(angles)


def _lerp_angle(a: float, b: float, fraction: float) -> float:
    # shortest way round the dial
    delta = (b - a + 180) % 360 - 180
    return normalize_angle(a + delta * fraction)


class AngleTween:
    """In-flight interpolation owned by the render loop; writes through update()."""

    def __init__(self, cell: HandAngleCell, target: HandAngles):
        self.cell = cell
        self.origin = cell.angles
        self.target = target
        self.killed = False
        self.frames = 0
        cell.attach_tween(self)

    def step(self, fraction: float) -> bool:
        """Write the frame at `fraction` in [0, 1]; False once killed or finished."""
        if self.killed:
            return False
        fraction = min(1.0, max(0.0, fraction))
        o, t = self.origin, self.target
        self.cell.update(HandAngles(
            hour=_lerp_angle(o.hour, t.hour, fraction),
            minute=_lerp_angle(o.minute, t.minute, fraction),
            second=_lerp_angle(o.second, t.second, fraction),
        ))
        self.frames += 1
        if fraction >= 1.0:
            self.killed = True
            return False
        return True

    def kill(self):
        self.killed = True


class HandAngleSnapService:
    """Resyncs the shared angles on resume; owns no timer of its own."""

    def __init__(self, cell: HandAngleCell):
        self.cell = cell
        self._latest: dt.datetime | None = None
        self._last_token: int | None = None
        self._unsubscribers = []

    def on_tick(self, state: TimeEngineState):
        self._latest = state.now_time
        if self._last_token is None:
            # first observation is the mount, not a resume
            self._last_token = state.resume_token
            return
        if state.resume_token != self._last_token:
            self._last_token = state.resume_token
            self.snap()

    def on_visibility(self, visible: bool):
        if visible:
            self.snap()

    def snap(self) -> HandAngles | None:
        if self._latest is None:
            return None
        angles = compute_hand_angles(self._latest)
        self.cell.force_set(angles)
        logger.debug("hands snapped to %s", angles)
        return angles

    def bind(self, registry, timezone):
        sub = registry.subscribe(timezone, self.on_tick)
        self.on_tick(sub.state)
        remove_listener = registry.add_visibility_listener(self.on_visibility)
        self._unsubscribers = [sub.unsubscribe, remove_listener]
        return sub

    def unbind(self):
        for fn in self._unsubscribers:
            fn()
        self._unsubscribers = []
