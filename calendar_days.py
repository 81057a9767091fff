# calendar_days.py
"""Timezone-correct calendar days and event bucketing.

Day keys are always computed by formatting the instant in the target zone,
one step at a time; a cached UTC offset would be wrong as soon as a range
crosses a DST switch.
"""
import datetime as dt
import logging
from dataclasses import dataclass, field

from config import DAY_SEQUENCE_CAP, NOW_WINDOW_MS
from errors import InvalidTimeRange, InvalidTimezone, SafetyCapExceeded
from event_timing import get_event_epoch_ms, is_now, to_epoch_ms
from tz_utils import epoch_ms, from_epoch_ms, get_timezone, localize

logger = logging.getLogger(__name__)

DATE_PRESETS = ("today", "tomorrow", "yesterday", "thisWeek", "nextWeek", "thisMonth")


@dataclass(frozen=True)
class DaySequence:
    keys: list = field(default_factory=list)
    truncated: bool = False         # walk stopped at the safety cap


def _format_key(moment: dt.datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"


def _key_in(ms: int, tz: dt.tzinfo) -> str | None:
    try:
        return _format_key(from_epoch_ms(ms, tz))
    except (OverflowError, OSError, ValueError):
        return None


def _lookup_tz(timezone) -> dt.tzinfo | None:
    try:
        return get_timezone(timezone)
    except InvalidTimezone as e:
        logger.warning("%s", e)
        return None


def day_key(instant, timezone) -> str | None:
    """YYYY-MM-DD of `instant` on the local calendar of `timezone`."""
    tz = _lookup_tz(timezone)
    ms = to_epoch_ms(instant)
    if tz is None or ms is None:
        return None
    return _key_in(ms, tz)


def _bounds(start, end) -> tuple[int, int]:
    start_ms, end_ms = to_epoch_ms(start), to_epoch_ms(end)
    if start_ms is None or end_ms is None:
        raise InvalidTimeRange(f"unparseable range bound: {start!r} .. {end!r}")
    if start_ms > end_ms:
        raise InvalidTimeRange(f"range ends before it starts: {start!r} .. {end!r}")
    return start_ms, end_ms


def walk_day_sequence(start, end, timezone, cap: int = DAY_SEQUENCE_CAP) -> DaySequence:
    try:
        start_ms, end_ms = _bounds(start, end)
    except InvalidTimeRange as e:
        logger.debug("%s", e)
        return DaySequence()
    tz = _lookup_tz(timezone)
    if tz is None:
        return DaySequence()

    start_key, end_key = _key_in(start_ms, tz), _key_in(end_ms, tz)
    if not start_key or not end_key:
        return DaySequence()
    # same local day: exactly one key, whatever sub-second noise the end bound carries
    if start_key == end_key:
        return DaySequence([start_key])

    days = [start_key]
    day = from_epoch_ms(start_ms, tz).date()
    while days[-1] != end_key:
        if len(days) >= cap:
            err = SafetyCapExceeded(f"day walk {start_key}..{end_key} stopped after {cap} days")
            logger.warning("%s", err)
            return DaySequence(days, truncated=True)
        # step to the next local midnight; a fixed 24 h step can jump a 23 h day
        day += dt.timedelta(days=1)
        key = _key_in(epoch_ms(_day_start(tz, day)), tz)
        if key is None or key > end_key:
            break
        if key != days[-1]:
            days.append(key)
    return DaySequence(days)


def build_day_sequence(start, end, timezone) -> list[str]:
    """Ordered day keys spanned by [start, end] in `timezone`; [] for a bad range."""
    return walk_day_sequence(start, end, timezone).keys


def bucket_events(events, day_keys, timezone, epoch_of=get_event_epoch_ms) -> dict[str, list]:
    """Group events under the given day keys only.

    Every requested day gets a list (possibly empty); events whose local day
    is not one of `day_keys` are dropped, so a single-day view never shows a
    neighbour day.
    """
    buckets: dict[str, list] = {key: [] for key in day_keys}
    tz = _lookup_tz(timezone)
    if tz is None:
        return buckets
    for event in events or []:
        ms = epoch_of(event)
        if ms is None:
            continue
        key = _key_in(ms, tz)
        if key in buckets:
            buckets[key].append(event)
    return buckets


def _now_in(tz: dt.tzinfo, now) -> dt.datetime:
    ms = to_epoch_ms(now) if now is not None else None
    if ms is None:
        return dt.datetime.now(tz)
    return from_epoch_ms(ms, tz)


def _day_start(tz: dt.tzinfo, day: dt.date) -> dt.datetime:
    return localize(tz, dt.datetime.combine(day, dt.time.min))


def _day_end(tz: dt.tzinfo, day: dt.date) -> dt.datetime:
    # next local midnight minus one second stays inside `day` whatever the offset
    return _day_start(tz, day + dt.timedelta(days=1)) - dt.timedelta(seconds=1)


def calculate_date_range(preset: str, timezone, now=None) -> tuple[dt.datetime, dt.datetime] | None:
    """(start, end) of a named range on the local calendar; None for an unknown preset."""
    tz = _lookup_tz(timezone)
    if tz is None or preset not in DATE_PRESETS:
        return None
    today = _now_in(tz, now).date()
    one = dt.timedelta(days=1)
    day_of_week = (today.weekday() + 1) % 7        # weeks start on Sunday

    if preset == "today":
        first = last = today
    elif preset == "tomorrow":
        first = last = today + one
    elif preset == "yesterday":
        first = last = today - one
    elif preset == "thisWeek":
        first = today - day_of_week * one
        last = first + 6 * one
    elif preset == "nextWeek":
        first = today + (7 - day_of_week) * one
        last = first + 6 * one
    else:
        first = today.replace(day=1)
        next_month = (first + 32 * one).replace(day=1)
        last = next_month - one
    return _day_start(tz, first), _day_end(tz, last)


def is_today_key(key: str, timezone, now=None) -> bool:
    if not key:
        return False
    tz = _lookup_tz(timezone)
    if tz is None:
        return False
    return _format_key(_now_in(tz, now)) == key


def is_past_today(event_epoch_ms: int | None, now_epoch_ms: int | None, timezone,
                  now_window_ms: int = NOW_WINDOW_MS) -> bool:
    """Event already happened on an earlier-or-same local day and is no longer NOW."""
    if event_epoch_ms is None or now_epoch_ms is None:
        return False
    event_day = day_key(event_epoch_ms, timezone)
    now_day = day_key(now_epoch_ms, timezone)
    if event_day is None or now_day is None:
        return False
    if event_day > now_day:
        return False
    if is_now(event_epoch_ms, now_epoch_ms, now_window_ms):
        return False
    return event_epoch_ms < now_epoch_ms
