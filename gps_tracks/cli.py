"""Command-line interface for gps_tracks.

Run:
    python -m gps_tracks inspect activities/ export.zip
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from collections import deque
from dataclasses import asdict
from typing import Callable

from gps_tracks.csv_io import write_points_csv
from gps_tracks.extract import IngestResult, extract_many
from gps_tracks.filters import TrackFilters, apply_filters
from gps_tracks.inspect import summarize_tracks
from gps_tracks.models import DEFAULT_TZ, AnimationMode, AnimationOptions
from gps_tracks.playback import (
    PlaybackCompleted,
    PlaybackEngine,
    PlaybackEvent,
    RemoveMarker,
    SetMarkerPosition,
    TrackRef,
)
from gps_tracks.sources import iter_source_files
from gps_tracks.timeutils import parse_dt


def _filters_from_args(args: argparse.Namespace) -> TrackFilters:
    return TrackFilters(
        min_date=parse_dt(args.min_date, args.tz) if args.min_date else None,
        max_date=parse_dt(args.max_date, args.tz) if args.max_date else None,
        show_cycling=not args.no_cycling,
        show_running=not args.no_running,
        show_other=not args.no_other,
    )


def _load(args: argparse.Namespace) -> IngestResult:
    result = extract_many(iter_source_files(args.paths), merge_per_file=args.merge, workers=args.workers)
    result.tracks = apply_filters(result.tracks, _filters_from_args(args))
    return result


def _print_failures(result: IngestResult) -> None:
    if not result.failures:
        return
    print()
    print(f"### 解析失败（{len(result.failures)} 个文件）")
    for name, exc in result.failures:
        print(f"{name}: {type(exc).__name__}: {exc}")


def _cmd_inspect(args: argparse.Namespace) -> int:
    result = _load(args)
    summaries = summarize_tracks(result.tracks)

    print(f"### 轨迹（{len(summaries)} 条）")
    for s in summaries:
        when = s.timestamp.isoformat(sep=" ") if s.timestamp else "no timestamp"
        duration = f"{s.duration_s:.0f}s" if s.duration_s is not None else "-"
        print(
            f"{when}  {s.sport.value:<8} {s.distance_km:8.2f} km  points={s.points:<6} "
            f"duration={duration:<8} {s.name}"
        )
    _print_failures(result)

    if args.json:
        payload = {
            "tracks": [asdict(s) | {"sport": s.sport.value, "distance_km": s.distance_km} for s in summaries],
            "failures": [{"file": name, "error": str(exc)} for name, exc in result.failures],
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))
    return 0 if result.tracks or not result.failures else 1


def _cmd_export_csv(args: argparse.Namespace) -> int:
    result = _load(args)
    rows = write_points_csv(result.tracks, args.out, args.tz)
    print(f"已导出：{args.out}（{len(result.tracks)} 条轨迹，{rows} 个点）")
    _print_failures(result)
    return 0


def _format_event(event: PlaybackEvent) -> str | None:
    if isinstance(event, SetMarkerPosition):
        pt = event.point
        when = pt.timestamp.isoformat() if pt.timestamp else ""
        return f"{event.track_id} marker {pt.lat:.6f},{pt.lng:.6f} {when}"
    if isinstance(event, RemoveMarker):
        return f"{event.track_id} finished"
    if isinstance(event, PlaybackCompleted):
        return f"playback {event.state.value}"
    return None


def _cmd_replay(args: argparse.Namespace) -> int:
    result = _load(args)
    options = AnimationOptions(playback_rate=args.rate, mode=AnimationMode(args.mode))
    refs = [TrackRef(track_id=f"t{i}", track=t) for i, t in enumerate(result.tracks)]

    # 用帧队列模拟宿主的动画调度器
    frames: deque[Callable[[float], None]] = deque()
    printed = 0

    def sink(event: PlaybackEvent) -> None:
        nonlocal printed
        line = _format_event(event)
        if line is None:
            return
        if args.limit is None or printed < args.limit or isinstance(event, PlaybackCompleted):
            print(line)
        printed += 1

    engine = PlaybackEngine(sink, request_frame=frames.append)
    if not engine.start(refs, mode=options.mode, playback_rate=options.playback_rate):
        print("没有可回放的轨迹（需要带时间戳的点）")
        _print_failures(result)
        return 1

    frame_ms = 1000.0 / args.fps
    n = 0
    while frames:
        frames.popleft()(n * frame_ms)
        n += 1
    print(f"共 {n} 帧")
    _print_failures(result)
    return 0


def _positive_float(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"不是数字：{text!r}") from None
    if not (math.isfinite(value) and value > 0):
        raise argparse.ArgumentTypeError(f"必须是大于0的有限数：{text!r}")
    return value


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("paths", nargs="+", help="GPX/TCX/FIT/JSON 文件、目录或zip")
    p.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA），用于日期过滤和输出")
    p.add_argument("--merge", action="store_true", help="同一文件中的多条轨迹合并为一条")
    p.add_argument("--workers", type=int, default=1, help="并行解析的线程数")
    p.add_argument("--min-date", type=str, default=None, help="只保留该时间之后的轨迹（例如 2024-01-01）")
    p.add_argument("--max-date", type=str, default=None, help="只保留该时间之前的轨迹")
    p.add_argument("--no-cycling", action="store_true", help="隐藏骑行")
    p.add_argument("--no-running", action="store_true", help="隐藏跑步")
    p.add_argument("--no-other", action="store_true", help="隐藏其他（含步行）")


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="gps_tracks")
    p.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_ins = sub.add_parser("inspect", help="列出轨迹：时间/运动类型/距离/点数")
    _add_common(p_ins)
    p_ins.add_argument("--json", action="store_true", help="额外输出JSON（便于后处理）")
    p_ins.set_defaults(func=_cmd_inspect)

    p_exp = sub.add_parser("export-csv", help="把所有轨迹点导出为CSV")
    _add_common(p_exp)
    p_exp.add_argument("--out", type=str, default="points.csv", help="输出CSV路径")
    p_exp.set_defaults(func=_cmd_export_csv)

    defaults = AnimationOptions()
    p_rep = sub.add_parser("replay", help="按虚拟时钟回放轨迹并打印位置")
    _add_common(p_rep)
    p_rep.add_argument(
        "--mode",
        type=str,
        default=defaults.mode.value,
        choices=[m.value for m in AnimationMode],
        help="simultaneous：各自从0开始；synchronized：共用真实时间；latest：只回放最后一条",
    )
    p_rep.add_argument(
        "--rate",
        type=_positive_float,
        default=defaults.playback_rate,
        help="回放倍速（虚拟毫秒/真实毫秒）",
    )
    p_rep.add_argument("--fps", type=_positive_float, default=60.0, help="模拟的帧率")
    p_rep.add_argument("--limit", type=int, default=None, help="最多打印多少条位置事件")
    p_rep.set_defaults(func=_cmd_replay)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return int(args.func(args))
    except ValueError as exc:
        # 时区/日期参数错误
        print(f"错误：{exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
