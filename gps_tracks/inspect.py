"""Per-track summaries for list and table display."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from gps_tracks.geo import bounds, track_distance_m
from gps_tracks.models import SportKind, Track
from gps_tracks.timeutils import DeltaStats, delta_stats, epoch_ms_from_dt


@dataclass(frozen=True, slots=True)
class TrackSummary:
    """Display fields of one track."""

    name: str
    sport: SportKind
    timestamp: datetime | None
    points: int
    timed_points: int
    distance_m: float
    duration_s: float | None
    delta: DeltaStats | None
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    @property
    def distance_km(self) -> float:
        return self.distance_m / 1000.0


def summarize_track(track: Track) -> TrackSummary:
    """Summarize an already-normalized track (at least one point)."""

    times = [epoch_ms_from_dt(p.timestamp) for p in track.timed_points]
    duration_s = (times[-1] - times[0]) / 1000.0 if times else None
    min_lat, min_lng, max_lat, max_lng = bounds(track.points)
    return TrackSummary(
        name=track.name,
        sport=track.sport,
        timestamp=track.timestamp,
        points=len(track.points),
        timed_points=len(times),
        distance_m=track_distance_m(track.points),
        duration_s=duration_s,
        delta=delta_stats(times),
        min_lat=min_lat,
        min_lng=min_lng,
        max_lat=max_lat,
        max_lng=max_lng,
    )


def summarize_tracks(tracks: Sequence[Track]) -> list[TrackSummary]:
    return [summarize_track(t) for t in tracks]
