from flask import Flask, request, jsonify
import logging

from calendar_days import DATE_PRESETS, bucket_events, calculate_date_range, walk_day_sequence
from clock_board import ClockBoard
from config import CLOCK_TIMEZONE, STATUS_HOST, STATUS_PORT, load_events
from event_timing import build_event_key, format_countdown_hms
from session_time import format_session_countdown, session_progress

app = Flask(__name__)
board: ClockBoard | None = None


def get_board() -> ClockBoard:
    """Board for the configured timezone, created on first request."""
    global board
    if board is None:
        board = ClockBoard(events=load_events())
    return board


def _session_json(session, window):
    if session is None:
        return None
    return {
        "name": session.name,
        "color": session.color,
        "start": session.start,
        "end": session.end,
        "window_start": window.start.isoformat() if window else None,
        "window_end": window.end.isoformat() if window else None,
    }


def _range_bound(raw):
    if raw is None or raw == "":
        return None
    return int(raw) if raw.lstrip("-").isdigit() else raw


@app.route("/clock", methods=["GET"])
def clock():
    b = get_board()
    state = b.state
    status, now_next = b.status, b.now_next
    hands = b.cell.angles
    next_ms = now_next.next_event_epoch_ms
    return jsonify({
        "timezone": b.timezone,
        "now_epoch_ms": state.now_epoch_ms,
        "now": state.now_time.isoformat(),
        "resume_token": state.resume_token,
        "active_session": _session_json(status.active_session, status.active_window),
        "time_to_end": status.time_to_end,
        "time_to_end_label": format_session_countdown(status.time_to_end),
        "progress": session_progress(status.active_window, state.now_time),
        "next_session": _session_json(status.next_session, status.next_window),
        "time_to_start": status.time_to_start,
        "time_to_start_label": format_session_countdown(status.time_to_start),
        "hands": {"hour": hands.hour, "minute": hands.minute, "second": hands.second},
        "now_events": sorted(now_next.now_keys),
        "next_events": sorted(now_next.next_keys),
        "next_event_epoch_ms": next_ms,
        "next_event_countdown": format_countdown_hms(next_ms - state.now_epoch_ms) if next_ms is not None else None,
    }), 200


@app.route("/calendar", methods=["GET"])
def calendar():
    tz = request.args.get("tz") or CLOCK_TIMEZONE
    preset = request.args.get("preset")
    if preset:
        if preset not in DATE_PRESETS:
            return jsonify({"error": f"unknown preset {preset!r}", "presets": list(DATE_PRESETS)}), 400
        rng = calculate_date_range(preset, tz)
        start, end = rng if rng else (None, None)
    else:
        start = _range_bound(request.args.get("start"))
        end = _range_bound(request.args.get("end"))

    seq = walk_day_sequence(start, end, tz)
    buckets = bucket_events(get_board().events, seq.keys, tz)
    return jsonify({
        "timezone": tz,
        "days": seq.keys,
        "truncated": seq.truncated,
        "events_by_day": {day: [build_event_key(e) for e in evts] for day, evts in buckets.items()},
    }), 200


@app.route("/visibility", methods=["POST"])
def visibility():
    data = request.get_json(silent=True)
    if not data or "visible" not in data:
        return "No visibility flag", 400
    b = get_board()
    b.registry.notify_visibility(bool(data["visible"]))
    logging.info("visibility -> %s (resume_token=%d)", data["visible"], b.state.resume_token)
    return jsonify({"resume_token": b.state.resume_token}), 200


@app.route("/events", methods=["POST"])
def events():
    data = request.get_json(silent=True)
    rows = data.get("events") if isinstance(data, dict) else None
    if not isinstance(rows, list):
        return "No events list", 400
    b = get_board()
    b.set_events([row for row in rows if isinstance(row, dict)])
    logging.info("events replaced (%d rows)", len(b.events))
    return jsonify({"count": len(b.events), "next_events": sorted(b.now_next.next_keys)}), 200


if __name__ == "__main__":
    import logger  # noqa: F401  configures logging
    app.run(host=STATUS_HOST, port=STATUS_PORT)
