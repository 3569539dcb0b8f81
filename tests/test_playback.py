from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from gps_tracks.models import AnimationMode, Point, SportKind, Track
from gps_tracks.playback import (
    AppendLinePoint,
    ClearLine,
    PlaybackCompleted,
    PlaybackEngine,
    PlaybackEvent,
    PlaybackState,
    RemoveMarker,
    RestoreFullLine,
    SetMarkerPosition,
    TrackRef,
)

T0 = datetime(2024, 5, 1, 7, 0, 0, tzinfo=UTC)


def _track(name: str, start_s: float, n: int, step_s: float = 1.0) -> Track:
    points = tuple(
        Point(lat=float(i), lng=float(i), timestamp=T0 + timedelta(seconds=start_s + i * step_s)) for i in range(n)
    )
    return Track(name=name, sport=SportKind.RUNNING, timestamp=points[0].timestamp, points=points)


class Recorder:
    def __init__(self) -> None:
        self.events: list[PlaybackEvent] = []

    def __call__(self, event: PlaybackEvent) -> None:
        self.events.append(event)

    def of(self, kind: type, track_id: str | None = None) -> list:
        return [e for e in self.events if isinstance(e, kind) and (track_id is None or e.track_id == track_id)]


def test_nothing_to_play_stays_idle() -> None:
    rec = Recorder()
    engine = PlaybackEngine(rec)
    assert engine.start([], AnimationMode.SIMULTANEOUS, 1.0) is False
    assert engine.state is PlaybackState.IDLE

    untimed = Track(name="u", sport=SportKind.OTHER, timestamp=None, points=(Point(1, 1), Point(2, 2)))
    assert engine.start([TrackRef("u", untimed)], AnimationMode.SYNCHRONIZED, 1.0) is False
    assert engine.state is PlaybackState.IDLE
    assert rec.events == []


def test_simultaneous_runs_every_track_from_its_own_start() -> None:
    a = _track("a", 0, 11)
    b = _track("b", 3600, 6)
    rec = Recorder()
    engine = PlaybackEngine(rec)
    assert engine.start([TrackRef("a", a), TrackRef("b", b)], AnimationMode.SIMULTANEOUS, 1.0)
    assert engine.animation.lower_ms == 0
    assert engine.animation.upper_ms == 10_000

    engine.tick(1000.0)
    assert rec.of(ClearLine) == [ClearLine("a"), ClearLine("b")]
    assert rec.of(SetMarkerPosition) == []

    engine.tick(3500.0)
    assert rec.of(SetMarkerPosition) == [SetMarkerPosition("a", a.points[2]), SetMarkerPosition("b", b.points[2])]
    assert [e.point for e in rec.of(AppendLinePoint, "a")] == list(a.points[:3])

    engine.tick(7000.0)
    assert rec.of(RemoveMarker, "b") == [RemoveMarker("b")]
    assert rec.of(RestoreFullLine, "b") == [RestoreFullLine("b", b.points)]
    assert rec.of(SetMarkerPosition, "a")[-1] == SetMarkerPosition("a", a.points[5])
    assert engine.state is PlaybackState.RUNNING

    engine.tick(11_000.0)
    assert rec.events[-1] == PlaybackCompleted(PlaybackState.COMPLETED)
    assert engine.state is PlaybackState.IDLE
    assert RestoreFullLine("a", a.points) in rec.events


def test_synchronized_tracks_share_the_wall_clock() -> None:
    a = _track("a", 0, 11)
    b = _track("b", 100, 11)
    engine = PlaybackEngine(lambda e: None)
    engine.start([TrackRef("a", a), TrackRef("b", b)], AnimationMode.SYNCHRONIZED, 1.0)
    assert engine.animation.upper_ms - engine.animation.lower_ms == 110_000

    a_seen = b_seen = False
    t = 0.0
    while engine.state is PlaybackState.RUNNING:
        engine.tick(t)
        markers = engine.marker_positions()
        if "a" in markers:
            a_seen = True
            assert "b" not in markers
        if "b" in markers:
            b_seen = True
            assert "a" not in markers
        t += 500.0
    assert a_seen and b_seen


def test_latest_only_animates_the_last_track() -> None:
    a = _track("a", 0, 5)
    b = _track("b", 50, 5)
    rec = Recorder()
    engine = PlaybackEngine(rec)
    engine.start([TrackRef("a", a), TrackRef("b", b)], AnimationMode.LATEST, 1.0)
    for t in range(0, 6000, 500):
        engine.tick(float(t))

    assert {e.track_id for e in rec.events if hasattr(e, "track_id")} == {"b"}
    assert rec.events[-1] == PlaybackCompleted(PlaybackState.COMPLETED)


def test_duplicate_host_timestamps_do_not_resolve_again() -> None:
    rec = Recorder()
    engine = PlaybackEngine(rec)
    engine.start([TrackRef("a", _track("a", 0, 20))], AnimationMode.SIMULTANEOUS, 1.0)
    engine.tick(0.0)
    engine.tick(2500.0)
    n = len(rec.events)
    engine.tick(2500.0)
    assert len(rec.events) == n


def test_playback_rate_scales_elapsed_time() -> None:
    a = _track("a", 0, 601)
    engine = PlaybackEngine(lambda e: None)
    engine.start([TrackRef("a", a)], AnimationMode.SIMULTANEOUS, 300.0)
    engine.tick(0.0)
    engine.tick(1000.0)  # 1s real -> 300s virtual
    assert engine.marker_positions() == {"a": a.points[299]}


def test_exact_timestamp_match_shows_previous_sample() -> None:
    a = _track("a", 0, 10)
    engine = PlaybackEngine(lambda e: None)
    engine.start([TrackRef("a", a)], AnimationMode.SIMULTANEOUS, 1.0)
    engine.tick(0.0)
    engine.tick(4000.0)
    assert engine.marker_positions() == {"a": a.points[3]}


def test_cursor_is_monotonic_and_rendered_line_is_a_prefix() -> None:
    a = _track("a", 0, 30, step_s=0.7)
    engine = PlaybackEngine(lambda e: None)
    engine.start([TrackRef("a", a)], AnimationMode.SIMULTANEOUS, 1.0)
    last = 0
    t = 0.0
    while engine.state is PlaybackState.RUNNING:
        engine.tick(t)
        if engine.state is not PlaybackState.RUNNING:
            break
        cur = engine.cursor("a")
        assert cur >= last
        rendered = engine.rendered_points("a", a)
        assert rendered == a.points[: len(rendered)]
        last = cur
        t += 333.0
    assert engine.rendered_points("a", a) == a.points


def test_start_then_stop_restores_every_track() -> None:
    a = _track("a", 0, 10)
    b = _track("b", 5, 10)
    before = (a.points, b.points)
    rec = Recorder()
    engine = PlaybackEngine(rec)
    engine.start([TrackRef("a", a), TrackRef("b", b)], AnimationMode.SIMULTANEOUS, 1.0)
    engine.tick(0.0)
    engine.tick(3000.0)

    engine.stop()
    assert engine.state is PlaybackState.RUNNING  # takes effect at the next tick
    engine.tick(3100.0)

    assert engine.state is PlaybackState.IDLE
    assert rec.events[-1] == PlaybackCompleted(PlaybackState.STOPPED)
    assert RestoreFullLine("a", a.points) in rec.events
    assert RestoreFullLine("b", b.points) in rec.events
    assert rec.of(RemoveMarker, "a") and rec.of(RemoveMarker, "b")
    assert (a.points, b.points) == before
    assert engine.rendered_points("a", a) == a.points


def test_finish_applies_pending_stop_immediately() -> None:
    rec = Recorder()
    engine = PlaybackEngine(rec)
    engine.start([TrackRef("a", _track("a", 0, 10))], AnimationMode.SIMULTANEOUS, 1.0)
    engine.stop()
    engine.finish()
    assert engine.state is PlaybackState.IDLE
    assert rec.events[-1] == PlaybackCompleted(PlaybackState.STOPPED)


def test_starting_a_new_run_stops_the_active_one() -> None:
    rec = Recorder()
    engine = PlaybackEngine(rec)
    engine.start([TrackRef("a", _track("a", 0, 10))], AnimationMode.SIMULTANEOUS, 1.0)
    engine.tick(0.0)
    engine.tick(2000.0)
    engine.start([TrackRef("b", _track("b", 0, 10))], AnimationMode.SIMULTANEOUS, 1.0)

    assert PlaybackCompleted(PlaybackState.STOPPED) in rec.events
    assert engine.state is PlaybackState.RUNNING
    assert engine.cursor("a") == 0
    assert engine.cursor("b") == 0


def test_starting_a_new_run_cancels_the_pending_frame() -> None:
    pending: dict[int, object] = {}
    cancelled: list[int] = []
    handles = iter(range(1000))

    def request(cb):
        handle = next(handles)
        pending[handle] = cb
        return handle

    def cancel(handle):
        cancelled.append(handle)
        del pending[handle]

    engine = PlaybackEngine(lambda e: None, request_frame=request, cancel_frame=cancel)
    engine.start([TrackRef("a", _track("a", 0, 10))], AnimationMode.SIMULTANEOUS, 1.0)
    pending.pop(0)(0.0)
    assert list(pending) == [1]

    engine.start([TrackRef("b", _track("b", 0, 10))], AnimationMode.SIMULTANEOUS, 1.0)
    assert cancelled == [1]
    assert list(pending) == [2]

    t = 0.0
    for _ in range(5):
        handle, cb = pending.popitem()
        cb(t)
        assert len(pending) == 1
        t += 250.0


def test_single_point_track_completes_on_first_tick() -> None:
    rec = Recorder()
    engine = PlaybackEngine(rec)
    engine.start([TrackRef("a", _track("a", 0, 1))], AnimationMode.SIMULTANEOUS, 1.0)
    engine.tick(5.0)
    assert rec.events[-1] == PlaybackCompleted(PlaybackState.COMPLETED)
    assert rec.of(SetMarkerPosition) == []


def test_untimed_points_are_not_animated() -> None:
    a = _track("a", 0, 5)
    mixed = Track(name="m", sport=SportKind.OTHER, timestamp=T0, points=(Point(9, 9),) + a.points)
    engine = PlaybackEngine(lambda e: None)
    engine.start([TrackRef("m", mixed)], AnimationMode.SIMULTANEOUS, 1.0)
    engine.tick(0.0)
    engine.tick(2500.0)
    assert engine.marker_positions() == {"m": a.points[2]}


def test_host_scheduler_is_driven_until_completion() -> None:
    frames: list = []
    cancelled: list = []

    def request(cb):
        frames.append(cb)
        return len(frames)

    rec = Recorder()
    engine = PlaybackEngine(rec, request_frame=request, cancel_frame=cancelled.append)
    engine.start([TrackRef("a", _track("a", 0, 5))], AnimationMode.SIMULTANEOUS, 1.0)
    t = 0.0
    while engine.state is PlaybackState.RUNNING:
        frames.pop(0)(t)
        t += 250.0
    assert frames == []
    assert cancelled == []
    assert rec.events[-1] == PlaybackCompleted(PlaybackState.COMPLETED)


def test_cancelled_frame_cleans_up_at_once() -> None:
    frames: list = []
    cancelled: list = []

    def request(cb):
        frames.append(cb)
        return "handle"

    rec = Recorder()
    engine = PlaybackEngine(rec, request_frame=request, cancel_frame=cancelled.append)
    engine.start([TrackRef("a", _track("a", 0, 5))], AnimationMode.SIMULTANEOUS, 1.0)
    frames.pop(0)(0.0)
    engine.stop()
    assert cancelled == ["handle"]
    assert engine.state is PlaybackState.IDLE
    assert rec.events[-1] == PlaybackCompleted(PlaybackState.STOPPED)


@pytest.mark.parametrize("mode", list(AnimationMode))
def test_every_mode_ends_with_full_lines(mode: AnimationMode) -> None:
    tracks = [_track("a", 0, 8), _track("b", 20, 4, step_s=2.0)]
    rec = Recorder()
    engine = PlaybackEngine(rec)
    engine.start([TrackRef(t.name, t) for t in tracks], mode, 10.0)
    t = 0.0
    while engine.state is PlaybackState.RUNNING:
        engine.tick(t)
        t += 16.0
    restored = {e.track_id: e.points for e in rec.of(RestoreFullLine)}
    for track in tracks:
        if mode is AnimationMode.LATEST and track.name == "a":
            assert "a" not in restored
        else:
            assert restored[track.name] == track.points
