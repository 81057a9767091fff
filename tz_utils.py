# tz_utils.py
import datetime as dt
import logging
import os
import pytz

from errors import InvalidTimezone

logger = logging.getLogger(__name__)


def get_timezone(name) -> dt.tzinfo:
    """Strict lookup: pytz zone for an IANA name, InvalidTimezone otherwise."""
    if isinstance(name, dt.tzinfo):
        return name
    if not isinstance(name, str) or not name.strip():
        raise InvalidTimezone(f"empty timezone: {name!r}")
    try:
        return pytz.timezone(name.strip())
    except pytz.UnknownTimeZoneError as e:
        raise InvalidTimezone(f"unknown timezone: {name!r}") from e


def _host_zone_name() -> str | None:
    """IANA name of the host zone: $TZ, /etc/timezone, then the /etc/localtime link."""
    env_tz = os.getenv("TZ", "").lstrip(":")
    if env_tz:
        return env_tz
    try:
        with open("/etc/timezone") as f:
            name = f.read().strip()
        if name:
            return name
    except OSError:
        pass
    try:
        target = os.path.realpath("/etc/localtime")
    except OSError:
        return None
    marker = "zoneinfo" + os.sep
    if marker in target:
        name = target.split(marker, 1)[1]
        for prefix in ("posix/", "right/"):
            if name.startswith(prefix):
                name = name[len(prefix):]
        return name
    return None


def host_timezone() -> dt.tzinfo:
    """Host local zone as a pytz zone, so DST still applies after a fallback.

    Only when no zone name can be found does this drop to the current fixed
    local offset.
    """
    name = _host_zone_name()
    if name:
        try:
            return pytz.timezone(name)
        except pytz.UnknownTimeZoneError:
            logger.debug("host timezone %r not known to pytz", name)
    logger.warning("host timezone name unavailable, using fixed local offset")
    return dt.datetime.now().astimezone().tzinfo


def resolve_timezone(name) -> dt.tzinfo:
    """Lenient lookup used by the tick source: falls back to the host zone."""
    try:
        return get_timezone(name)
    except InvalidTimezone as e:
        logger.warning("%s, falling back to host local timezone", e)
        return host_timezone()


def timezone_name(tz: dt.tzinfo) -> str:
    return getattr(tz, "zone", None) or str(tz)


def localize(tz: dt.tzinfo, naive: dt.datetime) -> dt.datetime:
    """Attach tz to a wall-clock datetime (pytz zones need localize, not replace)."""
    if hasattr(tz, "localize"):
        # normalize shifts wall times that fall in a DST gap onto a real instant
        return tz.normalize(tz.localize(naive))
    return naive.replace(tzinfo=tz)


_EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)
_ONE_MS = dt.timedelta(milliseconds=1)


def epoch_ms(moment: dt.datetime) -> int:
    """Aware datetime -> integer epoch milliseconds (no float rounding)."""
    return (moment - _EPOCH) // _ONE_MS


def from_epoch_ms(ms: float, tz: dt.tzinfo = pytz.utc) -> dt.datetime:
    return dt.datetime.fromtimestamp(ms / 1000.0, tz=tz)
