"""Parsing of the JSON training-session export (Polar Flow data download)."""

from __future__ import annotations

import json
import logging

from gps_tracks.errors import DecodeError, MalformedDocument
from gps_tracks.geo import parse_coord
from gps_tracks.models import ActivityRecord, Point
from gps_tracks.timeutils import parse_timestamp

logger = logging.getLogger(__name__)


def extract_json_records(contents: bytes, filename: str) -> list[ActivityRecord]:
    """Collect one record per exercise that has a recorded route.

    Expected shape (observed)::

        {"exercises": [{"startTime": "...", "sport": "RUNNING",
                        "samples": {"recordedRoute": [
                            {"dateTime": "...", "latitude": 60.1, "longitude": 24.9}, ...]}}]}

    Raises:
        DecodeError: If the bytes are not valid UTF-8 JSON.
        MalformedDocument: If there is no ``exercises`` list.
    """

    try:
        doc = json.loads(contents.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"JSON解析失败：{exc}") from exc

    exercises = doc.get("exercises") if isinstance(doc, dict) else None
    if not isinstance(exercises, list):
        raise MalformedDocument("JSON文件缺少 exercises 列表")

    records: list[ActivityRecord] = []
    skipped = 0
    for exercise in exercises:
        if not isinstance(exercise, dict):
            continue
        samples = exercise.get("samples")
        route = samples.get("recordedRoute") if isinstance(samples, dict) else None
        if not isinstance(route, list):
            continue

        sport = exercise.get("sport")
        record = ActivityRecord(
            name=filename,
            declared_sport=sport if isinstance(sport, str) else None,
            timestamp=parse_timestamp(exercise.get("startTime")),
        )
        for sample in route:
            if not isinstance(sample, dict):
                skipped += 1
                continue
            lat = parse_coord(sample.get("latitude"))
            lng = parse_coord(sample.get("longitude"))
            if lat is None or lng is None:
                skipped += 1
                continue
            record.points.append(Point(lat=lat, lng=lng, timestamp=parse_timestamp(sample.get("dateTime"))))
        records.append(record)

    if skipped:
        logger.debug("JSON %s: skipped %s route samples", filename, skipped)
    return records
