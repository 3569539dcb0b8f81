"""FIT (Garmin binary activity) parsing via fitparse."""

from __future__ import annotations

import io
import logging
from typing import Final

from fitparse import FitFile, FitParseError

from gps_tracks.errors import DecodeError, EmptyRecordSet
from gps_tracks.models import ActivityRecord, Point, SportKind
from gps_tracks.timeutils import parse_timestamp

logger = logging.getLogger(__name__)

SEMICIRCLES_TO_DEG: Final[float] = 180.0 / 2**31

# Indoor trainer platforms whose files usually omit the sport; fitparse
# yields the name when its profile knows the id, the raw number otherwise.
VIRTUAL_TRAINING_MANUFACTURERS: Final[frozenset[object]] = frozenset({"zwift", 260})


def _first_value(messages, msg_name: str, field: str):
    for msg in messages:
        if msg.name == msg_name:
            value = msg.get_value(field)
            if value is not None:
                return value
    return None


def extract_fit_records(contents: bytes, filename: str) -> list[ActivityRecord]:
    """Decode a FIT file into at most one activity record.

    The track timestamp is the last record timestamp seen in file order;
    records are assumed to be chronological and are not re-sorted.

    Raises:
        DecodeError: If fitparse cannot read the file.
        EmptyRecordSet: If the file holds no ``record`` messages at all.
    """

    try:
        # 不校验CRC：宁可读出部分数据也不整个拒绝
        fit = FitFile(io.BytesIO(contents), check_crc=False)
        messages = fit.messages
    except FitParseError as exc:
        raise DecodeError(f"FIT解析失败：{exc}") from exc

    records = [m for m in messages if m.name == "record"]
    if not records:
        raise EmptyRecordSet(f"FIT文件没有任何 record：{filename}")

    declared = _first_value(messages, "sport", "sport")
    if declared is None:
        declared = _first_value(messages, "session", "sport")
    record = ActivityRecord(name=filename, declared_sport=str(declared) if declared is not None else None)
    if declared is None and _first_value(messages, "file_id", "manufacturer") in VIRTUAL_TRAINING_MANUFACTURERS:
        record.sport = SportKind.CYCLING

    for msg in records:
        ts = parse_timestamp(msg.get_value("timestamp"))
        lat = msg.get_value("position_lat")
        lng = msg.get_value("position_long")
        if lat is not None and lng is not None:
            record.points.append(Point(lat=lat * SEMICIRCLES_TO_DEG, lng=lng * SEMICIRCLES_TO_DEG, timestamp=ts))
        if ts is not None:
            record.timestamp = ts

    logger.debug("FIT %s: %s records, %s with position", filename, len(records), len(record.points))
    return [record]
