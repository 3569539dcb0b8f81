"""Activity type inference from declared sport names and filenames."""

from __future__ import annotations

import re
from typing import Final

from gps_tracks.models import SportKind

_ALIASES: Final[dict[str, SportKind]] = {
    "biking": SportKind.CYCLING,
}

# (pattern, prefix, kind); checked in order, first hit wins
_FILENAME_RULES: Final[tuple[tuple[re.Pattern[str], str, SportKind], ...]] = (
    (re.compile(r"-(Hike|Walk)\.gpx"), "Walking", SportKind.WALKING),
    (re.compile(r"-Run\.gpx"), "Running", SportKind.RUNNING),
    (re.compile(r"-Ride\.gpx"), "Cycling", SportKind.CYCLING),
)


def classify(declared_sport: str | None, filename: str) -> SportKind:
    """Resolve the activity category of a track.

    Args:
        declared_sport: Sport string supplied by the file itself, if any.
            Compared case-insensitively.
        filename: Name used for heuristics when nothing is declared.

    Returns:
        One of the SportKind members. Never raises.
    """

    if declared_sport:
        sport = declared_sport.strip().lower()
        if sport in _ALIASES:
            return _ALIASES[sport]
        try:
            return SportKind(sport)
        except ValueError:
            return SportKind.OTHER

    for pattern, prefix, kind in _FILENAME_RULES:
        if pattern.search(filename) or filename.startswith(prefix):
            return kind
    return SportKind.OTHER
