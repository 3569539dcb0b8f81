from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from gps_tracks.errors import DecodeError, MalformedDocument
from gps_tracks.extract import extract_tracks
from gps_tracks.models import SportKind

NAME = "training-session-2024-05-01-123.json"


def _doc(*exercises: dict) -> bytes:
    return json.dumps({"exportVersion": "1.6", "exercises": list(exercises)}).encode()


def _route(n: int) -> list[dict]:
    return [
        {"dateTime": f"2024-05-01T07:00:0{i}.000", "latitude": [60.0, 60.1, 60.2, 60.3][i], "longitude": 24.0, "altitude": 5}
        for i in range(n)
    ]


def test_exercise_route_becomes_track() -> None:
    doc = _doc({"startTime": "2024-05-01T06:59:00.000", "sport": "RUNNING", "samples": {"recordedRoute": _route(3)}})
    tracks = extract_tracks(NAME, doc)

    assert len(tracks) == 1
    t = tracks[0]
    assert t.name == NAME
    assert t.sport == SportKind.RUNNING
    assert t.timestamp == datetime(2024, 5, 1, 6, 59, tzinfo=UTC)
    assert [p.lat for p in t.points] == [60.0, 60.1, 60.2]
    assert t.points[2].timestamp == datetime(2024, 5, 1, 7, 0, 2, tzinfo=UTC)


def test_exercise_without_route_is_skipped() -> None:
    doc = _doc(
        {"startTime": "2024-05-01T06:00:00.000", "sport": "OTHER_INDOOR", "samples": {"heartRate": []}},
        {"startTime": "2024-05-01T07:00:00.000", "sport": "CYCLING", "samples": {"recordedRoute": _route(2)}},
    )
    tracks = extract_tracks(NAME, doc)

    assert len(tracks) == 1
    assert tracks[0].sport == SportKind.CYCLING


def test_unknown_sport_is_other() -> None:
    doc = _doc({"startTime": "2024-05-01T07:00:00.000", "sport": "ROAD_BIKING", "samples": {"recordedRoute": _route(1)}})
    assert extract_tracks(NAME, doc)[0].sport == SportKind.OTHER


def test_bad_samples_are_dropped() -> None:
    route = _route(2) + [{"dateTime": "x", "latitude": None, "longitude": 1}, {"latitude": "n/a", "longitude": 2}]
    doc = _doc({"startTime": "2024-05-01T07:00:00.000", "samples": {"recordedRoute": route}})
    assert len(extract_tracks(NAME, doc)[0].points) == 2


def test_missing_start_time_uses_first_point() -> None:
    doc = _doc({"samples": {"recordedRoute": _route(2)}})
    assert extract_tracks(NAME, doc)[0].timestamp == datetime(2024, 5, 1, 7, 0, 0, tzinfo=UTC)


def test_missing_exercises_is_malformed() -> None:
    with pytest.raises(MalformedDocument):
        extract_tracks(NAME, b'{"sessions": []}')
    with pytest.raises(MalformedDocument):
        extract_tracks(NAME, b"[1, 2, 3]")


def test_invalid_json_is_decode_error() -> None:
    with pytest.raises(DecodeError):
        extract_tracks(NAME, b"{not json")
