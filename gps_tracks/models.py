"""Data models for activity tracks and playback options."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Final


class SportKind(str, Enum):
    """Closed set of activity categories."""

    CYCLING = "cycling"
    RUNNING = "running"
    WALKING = "walking"
    OTHER = "other"


class SourceFormat(str, Enum):
    """Source encodings understood by the extraction layer."""

    GPX = "gpx"
    TCX = "tcx"
    FIT = "fit"
    JSON = "json"


class AnimationMode(str, Enum):
    """Timeline alignment policy for playback."""

    SIMULTANEOUS = "simultaneous"
    SYNCHRONIZED = "synchronized"
    LATEST = "latest"


@dataclass(frozen=True, slots=True)
class Point:
    """A single location sample.

    Attributes:
        lat: Latitude in decimal degrees.
        lng: Longitude in decimal degrees.
        timestamp: Timezone-aware sample time, if the source carried one.
    """

    lat: float
    lng: float
    timestamp: datetime | None = None


@dataclass(frozen=True, slots=True)
class Track:
    """One normalized activity recording.

    Note:
        ``points`` is never empty for tracks returned by the extraction layer.
        ``sport`` is assigned once during normalization.
    """

    name: str
    sport: SportKind
    timestamp: datetime | None
    points: tuple[Point, ...]

    @property
    def timed_points(self) -> tuple[Point, ...]:
        """Points that carry a timestamp, in file order."""

        return tuple(p for p in self.points if p.timestamp is not None)


@dataclass(slots=True)
class ActivityRecord:
    """Raw parser output before normalization.

    ``sport`` is only set when the format fixes the category itself;
    otherwise the normalizer classifies ``declared_sport``.
    """

    name: str
    points: list[Point] = field(default_factory=list)
    declared_sport: str | None = None
    sport: SportKind | None = None
    timestamp: datetime | None = None


@dataclass(frozen=True, slots=True)
class AnimationOptions:
    """User-chosen playback settings."""

    # virtual milliseconds per real millisecond
    playback_rate: float = 300.0
    mode: AnimationMode = AnimationMode.SIMULTANEOUS


DEFAULT_TZ: Final[str] = "UTC"
DEFAULT_TRACK_NAME: Final[str] = "untitled"
