# event_timing.py
"""NOW / NEXT classification of timestamped events.

All comparisons use absolute epoch milliseconds; the display timezone only
matters for grouping events into days (see calendar_days).
"""
import datetime as dt
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Iterable

from config import NOW_WINDOW_MS
from tz_utils import epoch_ms

logger = logging.getLogger(__name__)

# checked in this order; feeds disagree on which one carries the release time
TIMESTAMP_FIELDS = ("date", "dateTime", "Date", "time")
IDENTIFIER_FIELDS = ("id", "Event_ID", "name", "Name")

STARTING_NOW_MS = 45 * 1000


@dataclass(frozen=True)
class NowNextState:
    now_keys: frozenset = field(default_factory=frozenset)
    next_keys: frozenset = field(default_factory=frozenset)      # at most one key
    next_event_epoch_ms: int | None = None


def _field(event, name):
    if isinstance(event, dict):
        return event.get(name)
    return getattr(event, name, None)


def to_epoch_ms(raw) -> int | None:
    """datetime (naive = UTC), epoch ms number, ISO string or timestamp object -> epoch ms."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, dt.datetime):
        if raw.tzinfo is None:
            raw = raw.replace(tzinfo=dt.timezone.utc)     # naive feed times are UTC
        return epoch_ms(raw)
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw):                         # NaN, inf
            return None
        return int(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_epoch_ms(dt.datetime.fromisoformat(text))
        except ValueError:
            return None
    # Firestore-style timestamp objects
    for conv in ("to_datetime", "toDate"):
        fn = getattr(raw, conv, None)
        if callable(fn):
            try:
                return to_epoch_ms(fn())
            except (TypeError, ValueError) as e:
                logger.debug("timestamp %s() failed: %s", conv, e)
                return None
    return None


def get_event_epoch_ms(event) -> int | None:
    """Absolute instant of an event in epoch ms, from whichever timestamp field it has."""
    if event is None:
        return None
    for name in TIMESTAMP_FIELDS:
        raw = _field(event, name)
        if raw is not None and raw != "":
            return to_epoch_ms(raw)
    return None


def build_event_key(event) -> str:
    """Identifier plus epoch, so same-named releases at different times stay distinct."""
    identifier = None
    for name in IDENTIFIER_FIELDS:
        identifier = _field(event, name)
        if identifier:
            break
    epoch = get_event_epoch_ms(event)
    return f"{identifier or 'event'}-{'na' if epoch is None else epoch}"


def is_now(event_ms: int, now_ms: int, now_window_ms: int = NOW_WINDOW_MS) -> bool:
    return abs(event_ms - now_ms) <= now_window_ms


def compute_now_next(events: Iterable | None, now_epoch_ms: int,
                     now_window_ms: int = NOW_WINDOW_MS,
                     build_key: Callable = build_event_key) -> NowNextState:
    now_keys = set()
    next_key = None
    next_ms = None

    for event in events or []:
        event_ms = get_event_epoch_ms(event)
        if event_ms is None:
            continue
        key = build_key(event)
        if not key:
            continue
        if is_now(event_ms, now_epoch_ms, now_window_ms):
            now_keys.add(key)
            continue
        # strict < keeps the earliest-listed event on equal times
        if event_ms > now_epoch_ms and (next_ms is None or event_ms < next_ms):
            next_ms, next_key = event_ms, key

    return NowNextState(
        now_keys=frozenset(now_keys),
        next_keys=frozenset([next_key]) if next_key is not None else frozenset(),
        next_event_epoch_ms=next_ms,
    )


def format_countdown_hms(diff_ms) -> str:
    """Milliseconds -> 'H:MM:SS', never negative."""
    total = max(0, int(diff_ms or 0)) // 1000
    hours, rem = divmod(total, 3600)
    minutes, seconds = divmod(rem, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"


def format_relative_label(event_epoch_ms: int | None, now_epoch_ms: int,
                          now_window_ms: int = NOW_WINDOW_MS) -> str:
    """'Starting now' | 'In 1h 2m' | '5m ago'."""
    if event_epoch_ms is None:
        return ""
    diff = event_epoch_ms - now_epoch_ms
    abs_diff = abs(diff)
    if abs_diff <= now_window_ms and abs_diff < STARTING_NOW_MS:
        return "Starting now"

    days, rem = divmod(abs_diff, 24 * 3600 * 1000)
    hours, rem = divmod(rem, 3600 * 1000)
    minutes = rem // (60 * 1000)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours or days:
        parts.append(f"{hours}h")
    parts.append(f"{minutes}m")
    label = " ".join(parts)
    return f"In {label}" if diff >= 0 else f"{label} ago"
