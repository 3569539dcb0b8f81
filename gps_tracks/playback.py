"""Frame-driven playback of tracks over a virtual clock.

The engine never talks to a renderer directly: every visible change is
reported to a caller-supplied sink as one of the event dataclasses below.
The host scheduler (a render loop, a timer, a test) calls ``tick`` with a
monotonically increasing timestamp in milliseconds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Sequence

from gps_tracks.models import AnimationMode, Point, Track
from gps_tracks.search import search
from gps_tracks.timeutils import epoch_ms_from_dt

logger = logging.getLogger(__name__)


class PlaybackState(str, Enum):
    """Lifecycle of a PlaybackEngine run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class TrackRef:
    """A track together with the caller's identifier for it."""

    track_id: str
    track: Track


@dataclass(frozen=True, slots=True)
class SetMarkerPosition:
    track_id: str
    point: Point


@dataclass(frozen=True, slots=True)
class RemoveMarker:
    track_id: str


@dataclass(frozen=True, slots=True)
class AppendLinePoint:
    track_id: str
    point: Point


@dataclass(frozen=True, slots=True)
class ClearLine:
    track_id: str


@dataclass(frozen=True, slots=True)
class RestoreFullLine:
    track_id: str
    points: tuple[Point, ...]


@dataclass(frozen=True, slots=True)
class PlaybackCompleted:
    state: PlaybackState


PlaybackEvent = SetMarkerPosition | RemoveMarker | AppendLinePoint | ClearLine | RestoreFullLine | PlaybackCompleted


@dataclass(slots=True)
class _TrackTimeline:
    """Per-run view of one track: its timed points and their epoch ms."""

    ref: TrackRef
    points: tuple[Point, ...]
    times_ms: list[int]
    cursor: int = 0
    marker: bool = False
    finished: bool = False

    @property
    def first_ms(self) -> int:
        return self.times_ms[0]

    @property
    def last_ms(self) -> int:
        return self.times_ms[-1]


def _timeline(ref: TrackRef) -> _TrackTimeline | None:
    points = ref.track.timed_points
    if not points:
        return None
    return _TrackTimeline(ref=ref, points=points, times_ms=[epoch_ms_from_dt(p.timestamp) for p in points])


def compute_bounds(timelines: Sequence[_TrackTimeline], mode: AnimationMode) -> tuple[int, int]:
    """Lower and upper virtual-time bounds (ms) for a run."""

    if mode is AnimationMode.SYNCHRONIZED:
        return min(t.first_ms for t in timelines), max(t.last_ms for t in timelines)
    return 0, max(t.last_ms - t.first_ms for t in timelines)


@dataclass(slots=True)
class AnimationState:
    """Mutable state of one playback run."""

    mode: AnimationMode
    playback_rate: float
    lower_ms: int
    upper_ms: int
    timelines: dict[str, _TrackTimeline] = field(default_factory=dict)
    clock_start: float | None = None
    last_tick: float | None = None
    step_ms: float | None = None


class PlaybackEngine:
    """State machine ``IDLE -> RUNNING -> (COMPLETED | STOPPED) -> IDLE``.

    Args:
        sink: Receives every PlaybackEvent in emission order.
        request_frame: Optional host scheduler; called with ``self.tick`` to
            ask for the next frame while a run is active.
        cancel_frame: Optional; called with the handle returned by
            ``request_frame`` when a run is stopped.
    """

    def __init__(
        self,
        sink: Callable[[PlaybackEvent], None],
        request_frame: Callable[[Callable[[float], None]], Any] | None = None,
        cancel_frame: Callable[[Any], None] | None = None,
    ) -> None:
        self._sink = sink
        self._request_frame = request_frame
        self._cancel_frame = cancel_frame
        self._frame_handle: Any = None
        self._state = PlaybackState.IDLE
        self._run: AnimationState | None = None
        self._stop_requested = False

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def animation(self) -> AnimationState | None:
        """State of the active run, None when idle."""

        return self._run

    def cursor(self, track_id: str) -> int:
        """Last resolved insertion index for a track in the active run (0 when idle)."""

        if self._run is None or track_id not in self._run.timelines:
            return 0
        return self._run.timelines[track_id].cursor

    def marker_positions(self) -> dict[str, Point]:
        """Currently displayed marker point per track id."""

        if self._run is None:
            return {}
        return {
            track_id: tl.points[tl.cursor - 1] for track_id, tl in self._run.timelines.items() if tl.marker
        }

    def rendered_points(self, track_id: str, track: Track) -> tuple[Point, ...]:
        """The line a renderer should currently show for ``track``.

        During a run this is the prefix of timed points already passed;
        otherwise (or for tracks that finished) the full point sequence.
        """

        if self._run is None or track_id not in self._run.timelines:
            return track.points
        tl = self._run.timelines[track_id]
        if tl.finished:
            return track.points
        return tl.points[: tl.cursor]

    def start(
        self,
        tracks: Sequence[TrackRef],
        mode: AnimationMode = AnimationMode.SIMULTANEOUS,
        playback_rate: float = 300.0,
    ) -> bool:
        """Begin a run over ``tracks``.

        An active run is stopped (and cleaned up) first. Tracks without any
        timestamped point are left alone.

        Returns:
            False if there was nothing to play; the engine then stays idle.
        """

        if self._state is PlaybackState.RUNNING:
            self._cancel_pending_frame()
            self._finish(PlaybackState.STOPPED)

        refs = list(tracks)
        if mode is AnimationMode.LATEST:
            refs = refs[-1:]

        timelines = [tl for tl in (_timeline(r) for r in refs) if tl is not None]
        if not timelines:
            logger.debug("playback: nothing to animate")
            return False

        lower, upper = compute_bounds(timelines, mode)
        self._run = AnimationState(
            mode=mode,
            playback_rate=playback_rate,
            lower_ms=lower,
            upper_ms=upper,
            timelines={tl.ref.track_id: tl for tl in timelines},
        )
        self._state = PlaybackState.RUNNING
        self._stop_requested = False
        logger.debug(
            "playback: %s tracks, mode=%s, bounds=[%s, %s], rate=%s",
            len(timelines),
            mode.value,
            lower,
            upper,
            playback_rate,
        )
        self._schedule()
        return True

    def stop(self) -> None:
        """Request cancellation; takes effect at the next tick."""

        if self._state is not PlaybackState.RUNNING:
            return
        self._stop_requested = True
        if self._cancel_pending_frame():
            # no more frames will come from the host, clean up right away
            self._finish(PlaybackState.STOPPED)

    def finish(self) -> None:
        """Apply a pending stop without waiting for another tick."""

        if self._state is PlaybackState.RUNNING and self._stop_requested:
            self._finish(PlaybackState.STOPPED)

    def tick(self, timestamp: float) -> None:
        """Advance the virtual clock to the host timestamp ``timestamp`` (ms)."""

        self._frame_handle = None
        run = self._run
        if self._state is not PlaybackState.RUNNING or run is None:
            return
        if self._stop_requested:
            self._finish(PlaybackState.STOPPED)
            return

        if run.clock_start is None:
            run.clock_start = timestamp
            for track_id in run.timelines:
                self._sink(ClearLine(track_id))

        step = run.lower_ms + (timestamp - run.clock_start) * run.playback_rate
        if timestamp != run.last_tick:
            run.step_ms = step
            for tl in run.timelines.values():
                if not tl.finished:
                    self._resolve(tl, step, run.mode)
        run.last_tick = timestamp

        if step >= run.upper_ms:
            self._finish(PlaybackState.COMPLETED)
        else:
            self._schedule()

    def _resolve(self, tl: _TrackTimeline, step: float, mode: AnimationMode) -> None:
        track_id = tl.ref.track_id
        query = step if mode is AnimationMode.SYNCHRONIZED else step + tl.first_ms

        i = search(tl.times_ms, query, lambda t, target: t - target, lo=tl.cursor)
        if i < 0:
            i = ~i

        if i >= len(tl.points):
            if tl.marker:
                self._sink(RemoveMarker(track_id))
                tl.marker = False
            tl.cursor = len(tl.points)
            tl.finished = True
            self._sink(RestoreFullLine(track_id, tl.ref.track.points))
            return

        if i == 0 or i == tl.cursor:
            return

        for pt in tl.points[tl.cursor : i]:
            self._sink(AppendLinePoint(track_id, pt))
        tl.cursor = i
        tl.marker = True
        self._sink(SetMarkerPosition(track_id, tl.points[i - 1]))

    def _cancel_pending_frame(self) -> bool:
        if self._cancel_frame is None or self._frame_handle is None:
            return False
        self._cancel_frame(self._frame_handle)
        self._frame_handle = None
        return True

    def _schedule(self) -> None:
        if self._request_frame is not None and self._state is PlaybackState.RUNNING:
            self._frame_handle = self._request_frame(self.tick)

    def _finish(self, state: PlaybackState) -> None:
        run = self._run
        if run is not None:
            for track_id, tl in run.timelines.items():
                if tl.marker:
                    self._sink(RemoveMarker(track_id))
                    tl.marker = False
                self._sink(RestoreFullLine(track_id, tl.ref.track.points))
        logger.info("playback %s", state.value)
        self._state = state
        self._sink(PlaybackCompleted(state))
        self._run = None
        self._stop_requested = False
        self._state = PlaybackState.IDLE
