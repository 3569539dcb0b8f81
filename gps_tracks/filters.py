"""Date and sport visibility filters for the track list."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Iterable

from gps_tracks.models import SportKind, Track

_MIN_DATE = datetime(1900, 1, 1, tzinfo=UTC)
_MAX_DATE = datetime(2500, 1, 1, tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class TrackFilters:
    """Which tracks are shown.

    Note:
        ``show_other`` also covers walking tracks. Tracks without a timestamp
        are never hidden by the date bounds.
    """

    min_date: datetime | None = None
    max_date: datetime | None = None
    show_cycling: bool = True
    show_running: bool = True
    show_other: bool = True


def is_visible(track: Track, filters: TrackFilters) -> bool:
    """Apply filters to one track."""

    if track.timestamp is not None:
        if (filters.min_date or _MIN_DATE) > track.timestamp:
            return False
        if (filters.max_date or _MAX_DATE) < track.timestamp:
            return False

    if track.sport is SportKind.CYCLING:
        return filters.show_cycling
    if track.sport is SportKind.RUNNING:
        return filters.show_running
    return filters.show_other


def apply_filters(tracks: Iterable[Track], filters: TrackFilters) -> list[Track]:
    """Return the visible tracks, order preserved."""

    return [t for t in tracks if is_visible(t, filters)]
