"""CSV export of normalized track points."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Iterable

from gps_tracks.models import Track
from gps_tracks.timeutils import epoch_ms_from_dt, tzinfo_from_name

logger = logging.getLogger(__name__)

FIELDNAMES = [
    "track_index",
    "track_name",
    "sport",
    "point_index",
    "time_local",
    "epoch_ms",
    "latitude",
    "longitude",
]


def write_points_csv(tracks: Iterable[Track], out_path: str | Path, tz_name: str) -> int:
    """Write one row per point.

    Output columns:
        - track_index, track_name, sport: which track the point belongs to
        - point_index: position in the track's point sequence
        - time_local / epoch_ms: empty when the point has no timestamp
        - latitude, longitude: decimal degrees

    Returns:
        Number of rows written.
    """

    tz = tzinfo_from_name(tz_name)
    rows = 0
    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=FIELDNAMES)
        w.writeheader()
        for ti, track in enumerate(tracks):
            for pi, pt in enumerate(track.points):
                ts = pt.timestamp
                w.writerow(
                    {
                        "track_index": ti,
                        "track_name": track.name,
                        "sport": track.sport.value,
                        "point_index": pi,
                        "time_local": ts.astimezone(tz).isoformat(sep=" ") if ts else "",
                        "epoch_ms": epoch_ms_from_dt(ts) if ts else "",
                        "latitude": pt.lat,
                        "longitude": pt.lng,
                    }
                )
                rows += 1
    logger.info("wrote %s rows to %s", rows, p)
    return rows
