import json
import logging
import os
from dotenv import load_dotenv
load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logging.error("invalid integer for %s: %r, using %s", name, raw, default)
        return default


CLOCK_TIMEZONE     = os.getenv("CLOCK_TIMEZONE", "America/New_York")
REFERENCE_TIMEZONE = os.getenv("REFERENCE_TIMEZONE", "America/New_York")   # session boundaries live here

NOW_WINDOW_MS         = _int_env("NOW_WINDOW_MS", 9 * 60 * 1000)
FOREGROUND_INTERVAL_S = _int_env("FOREGROUND_INTERVAL_S", 1)
BACKGROUND_INTERVAL_S = _int_env("BACKGROUND_INTERVAL_S", 15)
INACTIVITY_STOP_S     = _int_env("INACTIVITY_STOP_S", 10 * 60)
DAY_SEQUENCE_CAP      = _int_env("DAY_SEQUENCE_CAP", 400)

EVENTS_FILE = os.getenv("EVENTS_FILE", "")            # JSON list of calendar events

LOG_FILE  = os.getenv("LOG_FILE", "")                  # empty -> stderr
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

STATUS_HOST = os.getenv("STATUS_HOST", "0.0.0.0")
STATUS_PORT = _int_env("STATUS_PORT", 8000)

DEFAULT_SESSIONS = [
    {"name": "NY AM",         "color": "#A8D8B9", "start": "07:00", "end": "11:00"},
    {"name": "NY PM",         "color": "#A7C7E7", "start": "13:30", "end": "16:00"},
    {"name": "Market Closed", "color": "#F7C2A3", "start": "17:00", "end": "18:00"},
    {"name": "Asia",          "color": "#F8C8D1", "start": "20:00", "end": "00:00"},
    {"name": "London",        "color": "#D1B2E1", "start": "02:00", "end": "05:00"},
]


def load_session_config(raw: str | None = None) -> list[dict]:
    """Session list from SESSIONS_JSON, or the defaults when unset or unreadable."""
    if raw is None:
        raw = os.getenv("SESSIONS_JSON", "")
    if not raw.strip():
        return [dict(s) for s in DEFAULT_SESSIONS]
    try:
        data = json.loads(raw)
    except ValueError as e:
        logging.error("SESSIONS_JSON is not valid JSON: %s", e)
        return [dict(s) for s in DEFAULT_SESSIONS]
    if not isinstance(data, list):
        logging.error("SESSIONS_JSON must be a list, got %s", type(data).__name__)
        return [dict(s) for s in DEFAULT_SESSIONS]
    return [row for row in data if isinstance(row, dict)]


SESSIONS = load_session_config()


def load_events(path: str | None = None) -> list[dict]:
    """Calendar events from a JSON list file; [] when unset or unreadable."""
    if path is None:
        path = EVENTS_FILE
    if not path:
        return []
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logging.error("could not load events from %s: %s", path, e)
        return []
    if not isinstance(data, list):
        logging.error("%s must hold a JSON list, got %s", path, type(data).__name__)
        return []
    return [row for row in data if isinstance(row, dict)]
