"""Geospatial utilities (no external dependencies)."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from gps_tracks.models import Point


def parse_coord(value: object) -> float | None:
    """Parse one coordinate component; None for missing, non-numeric or non-finite values."""

    if value is None or isinstance(value, bool):
        return None
    try:
        v = float(value.strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(v):
        return None
    return v


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute Haversine distance in meters between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in meters.
    """

    r = 6_371_000.0  # mean Earth radius in meters
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return r * c


def track_distance_m(points: Iterable[Point]) -> float:
    """Sum of great-circle distances between consecutive points."""

    total = 0.0
    prev: Point | None = None
    for pt in points:
        if prev is not None:
            total += haversine_m(prev.lat, prev.lng, pt.lat, pt.lng)
        prev = pt
    return total


def bounds(points: Sequence[Point]) -> tuple[float, float, float, float] | None:
    """Return (min_lat, min_lng, max_lat, max_lng), or None for no points."""

    if not points:
        return None
    lats = [p.lat for p in points]
    lngs = [p.lng for p in points]
    return min(lats), min(lngs), max(lats), max(lngs)
