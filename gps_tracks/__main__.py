"""Module entry point: python -m gps_tracks ..."""

from __future__ import annotations

from gps_tracks.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
