# session_time.py
import datetime as dt
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
import pytz

from config import REFERENCE_TIMEZONE, SESSIONS
from errors import InvalidTimezone, MalformedSessionBoundary
from tz_utils import get_timezone, host_timezone, localize

logger = logging.getLogger(__name__)

_HHMM_RE = re.compile(r"(\d{1,2}):(\d{2})")
_ONE_SECOND = dt.timedelta(seconds=1)
_ONE_DAY = dt.timedelta(days=1)


@dataclass(frozen=True)
class Session:
    name: str
    start: str                 # "HH:MM" in the reference timezone
    end: str
    color: str = ""

    @classmethod
    def from_dict(cls, row: dict) -> "Session":
        # startNY/endNY are the field names older settings documents use
        return cls(
            name=str(row.get("name") or ""),
            start=str(row.get("start") or row.get("startTimeOfDay") or row.get("startNY") or ""),
            end=str(row.get("end") or row.get("endTimeOfDay") or row.get("endNY") or ""),
            color=str(row.get("color") or row.get("colorToken") or ""),
        )


def as_session(raw) -> Session | None:
    """Session from a Session or a mapping row; None for anything else."""
    if isinstance(raw, Session):
        return raw
    if isinstance(raw, Mapping):
        return Session.from_dict(raw)
    return None


@dataclass(frozen=True)
class ResolvedWindow:
    session: Session
    start: dt.datetime
    end: dt.datetime
    index: int = field(default=0, compare=False)     # declaration order


@dataclass(frozen=True)
class SessionStatus:
    active_session: Session | None = None
    next_session: Session | None = None
    active_window: ResolvedWindow | None = None
    next_window: ResolvedWindow | None = None
    time_to_end: int | None = None            # whole seconds, floored
    time_to_start: int | None = None


def parse_time_of_day(raw) -> dt.time:
    """'HH:MM' -> datetime.time; MalformedSessionBoundary for anything else."""
    if not isinstance(raw, str):
        raise MalformedSessionBoundary(f"boundary is not a string: {raw!r}")
    m = _HHMM_RE.fullmatch(raw.strip())
    if not m:
        raise MalformedSessionBoundary(f"boundary is not HH:MM: {raw!r}")
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise MalformedSessionBoundary(f"boundary out of range: {raw!r}")
    return dt.time(hour, minute)


def _at(tz: dt.tzinfo, day: dt.date, t: dt.time) -> dt.datetime:
    return localize(tz, dt.datetime.combine(day, t))


def resolve_window(session: Session, now: dt.datetime, tz: dt.tzinfo, index: int = 0) -> tuple[bool, ResolvedWindow]:
    """Place a session around `now`.

    Returns (is_active, window). An inactive window is the next upcoming
    occurrence. Calendar days are added in the reference zone, so a DST
    switch between the two boundaries keeps their wall-clock times.
    """
    start_t = parse_time_of_day(session.start)
    end_t = parse_time_of_day(session.end)
    today = now.astimezone(tz).date()

    if start_t == end_t:
        # zero-width: never active, always the next daily occurrence
        start = _at(tz, today, start_t)
        if now >= start:
            start = _at(tz, today + _ONE_DAY, start_t)
        return False, ResolvedWindow(session, start, start, index)

    overnight = end_t < start_t
    if overnight:
        # the occurrence that began yesterday may still be running past midnight
        prev_start = _at(tz, today - _ONE_DAY, start_t)
        prev_end = _at(tz, today, end_t)
        if prev_start <= now < prev_end:
            return True, ResolvedWindow(session, prev_start, prev_end, index)

    end_day = today + _ONE_DAY if overnight else today
    start = _at(tz, today, start_t)
    end = _at(tz, end_day, end_t)
    if start <= now < end:
        return True, ResolvedWindow(session, start, end, index)

    if now >= start:
        start = _at(tz, today + _ONE_DAY, start_t)
        end = _at(tz, end_day + _ONE_DAY, end_t)
    return False, ResolvedWindow(session, start, end, index)


def _reference_tz(reference_tz) -> dt.tzinfo:
    try:
        return get_timezone(reference_tz)
    except InvalidTimezone as e:
        logger.warning("%s, resolving sessions in host local timezone", e)
        return host_timezone()


def _coerce_now(now) -> dt.datetime:
    if now is None:
        return dt.datetime.now(pytz.utc)
    if isinstance(now, (int, float)):
        return dt.datetime.fromtimestamp(now / 1000.0, tz=pytz.utc)
    if now.tzinfo is None:
        return pytz.utc.localize(now)
    return now


def resolve_sessions(sessions, now=None, reference_tz=REFERENCE_TIMEZONE) -> SessionStatus:
    """Active and next session for `now` (aware datetime, epoch ms, or None for the wall clock)."""
    now = _coerce_now(now)
    tz = _reference_tz(reference_tz)

    active: list[ResolvedWindow] = []
    upcoming: list[ResolvedWindow] = []
    for i, raw in enumerate(sessions or []):
        session = as_session(raw)
        if session is None:
            logger.warning("session slot %d is not a session row: %r, skipped", i, raw)
            continue
        if not session.start or not session.end:
            logger.debug("session slot %d has no boundaries, skipped", i)
            continue
        try:
            is_active, window = resolve_window(session, now, tz, i)
        except MalformedSessionBoundary as e:
            logger.warning("session %r skipped: %s", session.name, e)
            continue
        (active if is_active else upcoming).append(window)

    # min() keeps the first of equal keys, i.e. declaration order
    active_w = min(active, key=lambda w: now - w.start) if active else None
    next_w = min(upcoming, key=lambda w: w.start) if upcoming else None

    return SessionStatus(
        active_session=active_w.session if active_w else None,
        next_session=next_w.session if next_w else None,
        active_window=active_w,
        next_window=next_w,
        time_to_end=(active_w.end - now) // _ONE_SECOND if active_w else None,
        time_to_start=(next_w.start - now) // _ONE_SECOND if next_w else None,
    )


def session_progress(window: ResolvedWindow | None, now: dt.datetime) -> float:
    """Elapsed fraction of a window in [0, 1]."""
    if window is None:
        return 0.0
    span = (window.end - window.start).total_seconds()
    if span <= 0:
        return 0.0
    done = (now - window.start).total_seconds() / span
    return min(1.0, max(0.0, done))


def format_session_countdown(seconds: int | None) -> str:
    if seconds is None:
        return ""
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}h:{m:02d}m:{s:02d}s"


def get_session_label(now_utc: dt.datetime | None = None, sessions=None,
                      reference_tz=REFERENCE_TIMEZONE) -> str:
    if sessions is None:
        sessions = SESSIONS
    status = resolve_sessions(sessions, now_utc, reference_tz)
    return status.active_session.name if status.active_session else "closed"


def session_start_end(now_utc: dt.datetime | None = None, sessions=None,
                      reference_tz=REFERENCE_TIMEZONE) -> tuple[dt.datetime, dt.datetime] | None:
    """(from, to) in UTC of the running session, else of the next one."""
    if sessions is None:
        sessions = SESSIONS
    status = resolve_sessions(sessions, now_utc, reference_tz)
    w = status.active_window or status.next_window
    if w is None:
        return None
    return w.start.astimezone(dt.timezone.utc), w.end.astimezone(dt.timezone.utc)
