"""Tests for the Flask status surface."""

from __future__ import annotations

import pytest

import config
import status_server
from clock_board import ClockBoard

START_MS = 1_710_336_600_000      # 2024-03-13T13:30:00Z
EVENTS = [
    {"id": "cpi", "date": "2024-03-13T12:30:00Z"},
    {"id": "nfp", "date": "2024-03-15T12:30:00Z"},
]


@pytest.fixture
def board(registry, monkeypatch):
    b = ClockBoard(
        timezone="America/New_York",
        sessions=[{"name": "NY AM", "start": "07:00", "end": "11:00"}],
        events=EVENTS,
        registry=registry,
    )
    monkeypatch.setattr(status_server, "board", b)
    yield b
    b.close()


@pytest.fixture
def client(board):
    status_server.app.config["TESTING"] = True
    return status_server.app.test_client()


def test_clock_reports_sessions_hands_and_events(client) -> None:
    resp = client.get("/clock")
    data = resp.get_json()

    assert resp.status_code == 200
    assert data["timezone"] == "America/New_York"
    assert data["now_epoch_ms"] == START_MS
    assert data["active_session"]["name"] == "NY AM"
    assert data["time_to_end"] == 90 * 60
    assert data["time_to_end_label"] == "01h:30m:00s"
    assert data["hands"]["minute"] == pytest.approx(180.0)
    assert data["next_events"] == ["nfp-1710505800000"]
    assert data["next_event_countdown"] == "47:00:00"


def test_calendar_by_explicit_range(client) -> None:
    resp = client.get("/calendar", query_string={
        "tz": "America/New_York",
        "start": "2024-03-13T05:00:00Z",
        "end": "2024-03-15T20:00:00Z",
    })
    data = resp.get_json()

    assert resp.status_code == 200
    assert data["days"] == ["2024-03-13", "2024-03-14", "2024-03-15"]
    assert data["events_by_day"]["2024-03-13"] == ["cpi-1710333000000"]
    assert data["events_by_day"]["2024-03-14"] == []
    assert not data["truncated"]


def test_calendar_epoch_bounds_and_inverted_range(client) -> None:
    resp = client.get("/calendar", query_string={"tz": "UTC", "start": START_MS, "end": START_MS - 1})

    assert resp.status_code == 200
    assert resp.get_json()["days"] == []


def test_calendar_preset(client) -> None:
    data = client.get("/calendar", query_string={"preset": "today", "tz": "Asia/Tokyo"}).get_json()

    assert data["timezone"] == "Asia/Tokyo"
    assert len(data["days"]) == 1


def test_calendar_unknown_preset(client) -> None:
    resp = client.get("/calendar", query_string={"preset": "someday"})

    assert resp.status_code == 400
    assert "today" in resp.get_json()["presets"]


def test_visibility_resume_bumps_token(client, board, clock) -> None:
    assert client.post("/visibility", json={"visible": False}).status_code == 200
    clock.advance(300)
    resp = client.post("/visibility", json={"visible": True})

    assert resp.get_json()["resume_token"] == 1
    assert board.state.now_epoch_ms == START_MS + 300 * 1000


def test_visibility_requires_flag(client) -> None:
    assert client.post("/visibility", json={}).status_code == 400


def test_posted_events_feed_calendar_and_now_next(client) -> None:
    rows = [{"id": "fomc", "date": "2024-03-14T18:00:00Z"}, "junk"]

    resp = client.post("/events", json={"events": rows})

    assert resp.status_code == 200
    assert resp.get_json() == {"count": 1, "next_events": ["fomc-1710439200000"]}
    data = client.get("/calendar", query_string={
        "tz": "America/New_York", "start": "2024-03-14T12:00:00Z", "end": "2024-03-14T20:00:00Z",
    }).get_json()
    assert data["events_by_day"] == {"2024-03-14": ["fomc-1710439200000"]}


def test_events_requires_a_list(client) -> None:
    assert client.post("/events", json={"events": "nope"}).status_code == 400
    assert client.post("/events", json=[]).status_code == 400


def test_board_is_created_with_events_file(monkeypatch, tmp_path) -> None:
    path = tmp_path / "events.json"
    path.write_text('[{"id": "cpi", "date": "2024-03-13T12:30:00Z"}]', encoding="utf-8")
    created = {}

    class StubBoard:
        def __init__(self, events=None):
            created["events"] = events

    monkeypatch.setattr(status_server, "board", None)
    monkeypatch.setattr(status_server, "ClockBoard", StubBoard)
    monkeypatch.setattr(status_server, "load_events", lambda: config.load_events(str(path)))

    status_server.get_board()

    assert created["events"] == [{"id": "cpi", "date": "2024-03-13T12:30:00Z"}]
