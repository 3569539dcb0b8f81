from __future__ import annotations

from datetime import date, datetime, time, timedelta

import streamlit as st

from gps_tracks.extract import IngestResult, extract_many
from gps_tracks.filters import TrackFilters, apply_filters
from gps_tracks.inspect import summarize_tracks
from gps_tracks.models import DEFAULT_TZ, AnimationMode, AnimationOptions, Track
from gps_tracks.playback import PlaybackEngine, TrackRef
from gps_tracks.sources import is_track_name, iter_zip
from gps_tracks.timeutils import tzinfo_from_name


def _hhmmss(seconds: float) -> str:
    s = int(round(max(0.0, seconds)))
    h = s // 3600
    m = (s % 3600) // 60
    sec = s % 60
    return f"{h:02d}:{m:02d}:{sec:02d}"


def _date_bounds(start_d: date | None, end_d: date | None, tz_name: str) -> tuple[datetime | None, datetime | None]:
    """Convert a date range to datetimes [start 00:00, end+1 00:00) in tz."""

    tz = tzinfo_from_name(tz_name)
    lo = datetime.combine(start_d, time.min).replace(tzinfo=tz) if start_d else None
    hi = datetime.combine(end_d + timedelta(days=1), time.min).replace(tzinfo=tz) if end_d else None
    return lo, hi


@st.cache_data(show_spinner=False)
def _ingest(files: tuple[tuple[str, bytes], ...], merge: bool) -> IngestResult:
    pairs: list[tuple[str, bytes]] = []
    for name, contents in files:
        if name.lower().endswith(".zip"):
            pairs.extend(iter_zip(name, contents))
        else:
            pairs.append((name, contents))
    return extract_many(pairs, merge_per_file=merge)


def _positions_at(tracks: list[Track], options: AnimationOptions, virtual_ms: float) -> list[dict[str, object]]:
    """Marker positions after advancing the playback clock by virtual_ms."""

    engine = PlaybackEngine(lambda event: None)
    refs = [TrackRef(track_id=str(i), track=t) for i, t in enumerate(tracks)]
    if not engine.start(refs, mode=options.mode, playback_rate=options.playback_rate):
        return []
    engine.tick(0.0)
    engine.tick(virtual_ms / options.playback_rate)
    markers = engine.marker_positions()
    engine.stop()
    engine.finish()
    return [
        {"track": tracks[int(track_id)].name, "lat": pt.lat, "lon": pt.lng}
        for track_id, pt in markers.items()
    ]


def main() -> None:
    st.set_page_config(page_title="GPS 轨迹：导入与回放", layout="wide")
    st.title("GPS 轨迹：导入、筛选与回放")

    with st.sidebar:
        st.subheader("数据")
        uploads = st.file_uploader(
            "GPX / TCX / FIT / JSON / ZIP",
            type=["gpx", "tcx", "fit", "json", "zip"],
            accept_multiple_files=True,
        )
        merge = st.checkbox("同一文件的轨迹合并为一条", value=True)
        tz_name = st.text_input("时区（IANA）", value=DEFAULT_TZ)

        st.subheader("筛选")
        use_dates = st.checkbox("按日期筛选", value=False)
        start_d = st.date_input("开始日期", value=date(2000, 1, 1)) if use_dates else None
        end_d = st.date_input("结束日期", value=date.today()) if use_dates else None
        show_cycling = st.checkbox("骑行", value=True)
        show_running = st.checkbox("跑步", value=True)
        show_other = st.checkbox("其他（含步行）", value=True)

        st.subheader("回放")
        defaults = AnimationOptions()
        mode = st.selectbox("模式", [m.value for m in AnimationMode], index=0)
        rate = st.number_input("倍速", value=defaults.playback_rate, min_value=1.0, step=50.0)

    if not uploads:
        st.info("在左侧上传一个或多个活动文件（也可以是整个导出的zip）。")
        return

    files = tuple(
        (u.name, u.getvalue()) for u in uploads if u.name.lower().endswith(".zip") or is_track_name(u.name)
    )
    with st.spinner("正在解析 ..."):
        result = _ingest(files, merge)

    for name, exc in result.failures:
        st.warning(f"{name}: {exc}")

    try:
        lo, hi = _date_bounds(start_d, end_d, tz_name)
    except ValueError as exc:
        st.error(str(exc))
        return
    filters = TrackFilters(
        min_date=lo,
        max_date=hi,
        show_cycling=show_cycling,
        show_running=show_running,
        show_other=show_other,
    )
    tracks = apply_filters(result.tracks, filters)

    summaries = summarize_tracks(tracks)
    c1, c2, c3 = st.columns(3)
    c1.metric("轨迹数", str(len(tracks)))
    c2.metric("总距离（km）", f"{sum(s.distance_km for s in summaries):.1f}")
    c3.metric("总时长", _hhmmss(sum(s.duration_s or 0.0 for s in summaries)))

    st.subheader("轨迹列表")
    st.dataframe(
        [
            {
                "timestamp": s.timestamp.isoformat(sep=" ") if s.timestamp else "no timestamp",
                "sport": s.sport.value,
                "distance_km": round(s.distance_km, 2),
                "points": s.points,
                "name": s.name,
            }
            for s in summaries
        ],
        use_container_width=True,
        height=360,
    )

    if not tracks:
        return

    st.subheader("地图")
    st.map([{"lat": p.lat, "lon": p.lng} for t in tracks for p in t.points[::10]])

    st.subheader("回放")
    options = AnimationOptions(playback_rate=float(rate), mode=AnimationMode(mode))
    span_s = max((s.duration_s or 0.0) for s in summaries)
    if options.mode is AnimationMode.SYNCHRONIZED:
        stamps = [t.timestamp for t in tracks if t.timestamp]
        if len(stamps) > 1:
            span_s = (max(stamps) - min(stamps)).total_seconds() + span_s
    elapsed_s = st.slider("虚拟时间（秒）", min_value=0.0, max_value=max(1.0, span_s), value=0.0)
    positions = _positions_at(tracks, options, elapsed_s * 1000.0)
    if positions:
        st.map(positions)
        st.dataframe(positions, use_container_width=True)
    else:
        st.caption("此时刻还没有轨迹开始。")


if __name__ == "__main__":
    main()
