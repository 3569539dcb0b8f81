"""Format detection, normalization and batch ingestion of activity files."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Sequence

from gps_tracks.errors import TrackParseError, UnsupportedFormat
from gps_tracks.fit_io import extract_fit_records
from gps_tracks.json_io import extract_json_records
from gps_tracks.models import ActivityRecord, SourceFormat, SportKind, Track
from gps_tracks.sport import classify
from gps_tracks.xml_io import extract_xml_records

logger = logging.getLogger(__name__)

_PARSERS: dict[SourceFormat, Callable[[bytes, str], list[ActivityRecord]]] = {
    SourceFormat.GPX: extract_xml_records,
    SourceFormat.TCX: extract_xml_records,
    SourceFormat.FIT: extract_fit_records,
    SourceFormat.JSON: extract_json_records,
}


def detect_format(filename: str) -> SourceFormat:
    """Pick the source format from the filename suffix (case-insensitive).

    Raises:
        UnsupportedFormat: For any other suffix.
    """

    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    try:
        return SourceFormat(ext)
    except ValueError:
        raise UnsupportedFormat(f"不支持的文件格式：{ext or filename!r}") from None


def normalize_records(records: Iterable[ActivityRecord], filename: str) -> list[Track]:
    """Turn raw parser records into Tracks.

    Records without points are dropped. The sport is the one fixed by the
    parser, else classified from the declared sport and the filename, then
    from the record name. The timestamp is the one fixed by the parser, else
    the first timestamped point.
    """

    tracks: list[Track] = []
    for rec in records:
        if not rec.points:
            continue

        sport = rec.sport
        if sport is None:
            sport = classify(rec.declared_sport, filename)
            if sport is SportKind.OTHER and not rec.declared_sport and rec.name != filename:
                sport = classify(None, rec.name)

        timestamp = rec.timestamp
        if timestamp is None:
            timestamp = next((p.timestamp for p in rec.points if p.timestamp is not None), None)

        tracks.append(Track(name=rec.name, sport=sport, timestamp=timestamp, points=tuple(rec.points)))
    return tracks


def extract_tracks(filename: str, contents: bytes) -> list[Track]:
    """Parse one activity file into normalized tracks.

    Args:
        filename: Original file name; its suffix selects the parser.
        contents: Raw (already decompressed) file bytes.

    Returns:
        Tracks in document order; possibly empty when no point had a position.

    Raises:
        TrackParseError: One of UnsupportedFormat, MalformedDocument,
            EmptyRecordSet, DecodeError.
    """

    fmt = detect_format(filename)
    records = _PARSERS[fmt](contents, filename)
    return normalize_records(records, filename)


def merge_tracks(tracks: Sequence[Track]) -> Track:
    """Concatenate tracks of one file into one, keeping the first one's metadata."""

    first = tracks[0]
    points = tuple(p for t in tracks for p in t.points)
    return Track(name=first.name, sport=first.sport, timestamp=first.timestamp, points=points)


def track_sort_key(track: Track) -> tuple[int, datetime | None]:
    """Sort key for display order: untimestamped tracks first, then by time."""

    return (0, None) if track.timestamp is None else (1, track.timestamp)


@dataclass(slots=True)
class IngestResult:
    """Outcome of a batch ingestion."""

    tracks: list[Track] = field(default_factory=list)
    failures: list[tuple[str, TrackParseError]] = field(default_factory=list)


def _extract_one(item: tuple[str, bytes]) -> tuple[str, list[Track] | TrackParseError]:
    name, contents = item
    try:
        return name, extract_tracks(name, contents)
    except TrackParseError as exc:
        return name, exc


def extract_many(
    files: Iterable[tuple[str, bytes]],
    *,
    merge_per_file: bool = False,
    workers: int = 1,
) -> IngestResult:
    """Extract tracks from many files, collecting per-file failures.

    Args:
        files: (filename, contents) pairs.
        merge_per_file: Concatenate all tracks of a file into one.
        workers: >1 parses files on a thread pool.

    Returns:
        IngestResult with tracks sorted by timestamp.
    """

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(_extract_one, files))
    else:
        outcomes = [_extract_one(item) for item in files]

    result = IngestResult()
    for name, outcome in outcomes:
        if isinstance(outcome, TrackParseError):
            logger.warning("%s: %s", name, outcome)
            result.failures.append((name, outcome))
            continue
        if merge_per_file and outcome:
            result.tracks.append(merge_tracks(outcome))
        else:
            result.tracks.extend(outcome)

    result.tracks.sort(key=track_sort_key)
    return result
