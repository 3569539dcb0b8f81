"""GPX and TCX parsing over a shared XML front end.

See https://www.topografix.com/gpx/1/1 for the GPX schema and
https://www8.garmin.com/xmlschemas/TrainingCenterDatabasev2.xsd for TCX.
Namespaces are ignored: elements are matched by local name only, since
exports in the wild use several GPX/TCX namespace versions.
"""

from __future__ import annotations

import logging
from typing import Iterator
from xml.etree.ElementTree import Element, ParseError

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import fromstring

from gps_tracks.errors import DecodeError, MalformedDocument
from gps_tracks.geo import parse_coord
from gps_tracks.models import DEFAULT_TRACK_NAME, ActivityRecord, Point, SportKind
from gps_tracks.timeutils import parse_timestamp

logger = logging.getLogger(__name__)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(elem: Element, name: str) -> Iterator[Element]:
    for child in elem:
        if _local(child.tag) == name:
            yield child


def _child(elem: Element | None, name: str) -> Element | None:
    if elem is None:
        return None
    return next(_children(elem, name), None)


def _child_text(elem: Element | None, name: str) -> str | None:
    c = _child(elem, name)
    if c is None or c.text is None:
        return None
    text = c.text.strip()
    return text or None


def parse_xml(contents: bytes) -> Element:
    """Decode bytes as UTF-8 and parse them into an element tree.

    Raises:
        DecodeError: If the bytes are not UTF-8 or not well-formed XML.
    """

    try:
        text = contents.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"XML不是有效的UTF-8文本：{exc}") from exc

    try:
        # XML声明前不能有空白
        return fromstring(text.lstrip())
    except (ParseError, DefusedXmlException) as exc:
        raise DecodeError(f"XML解析失败：{exc}") from exc


def extract_xml_records(contents: bytes, filename: str) -> list[ActivityRecord]:
    """Parse a GPX or TCX document, branching on its root element."""

    root = parse_xml(contents)
    kind = _local(root.tag)
    if kind == "gpx":
        return extract_gpx_records(root)
    if kind == "TrainingCenterDatabase":
        return extract_tcx_records(root, filename)
    raise MalformedDocument(f"未知的XML根元素：{kind!r}（需要 gpx 或 TrainingCenterDatabase）")


def _gpx_point(elem: Element, with_time: bool = True) -> Point | None:
    lat = parse_coord(elem.get("lat"))
    lon = parse_coord(elem.get("lon"))
    if lat is None or lon is None:
        return None
    ts = parse_timestamp(_child_text(elem, "time")) if with_time else None
    return Point(lat=lat, lng=lon, timestamp=ts)


def extract_gpx_records(gpx: Element) -> list[ActivityRecord]:
    """Collect one record per ``trk`` and one per ``rte``.

    Raises:
        MalformedDocument: If the document has neither tracks nor routes.
    """

    tracks = list(_children(gpx, "trk"))
    routes = list(_children(gpx, "rte"))
    if not tracks and not routes:
        raise MalformedDocument("GPX文件既没有 trk 也没有 rte")

    records: list[ActivityRecord] = []
    skipped = 0

    for trk in tracks:
        record = ActivityRecord(name=_child_text(trk, "name") or DEFAULT_TRACK_NAME)
        for seg in _children(trk, "trkseg"):
            for trkpt in _children(seg, "trkpt"):
                pt = _gpx_point(trkpt)
                if pt is None:
                    skipped += 1
                    continue
                record.points.append(pt)
        records.append(record)

    for rte in routes:
        record = ActivityRecord(name=_child_text(rte, "name") or DEFAULT_TRACK_NAME, sport=SportKind.OTHER)
        for rtept in _children(rte, "rtept"):
            if record.timestamp is None:
                record.timestamp = parse_timestamp(_child_text(rtept, "time"))
            pt = _gpx_point(rtept, with_time=False)
            if pt is None:
                skipped += 1
                continue
            record.points.append(pt)
        records.append(record)

    if skipped:
        logger.debug("GPX: skipped %s points without valid lat/lon", skipped)
    return records


def _tcx_sport(activity: Element) -> str | None:
    sport = activity.get("Sport")
    if sport == "Other":
        # 训练计划名称往往比 Sport 属性更具体
        sport = _child_text(_child(_child(activity, "Training"), "Plan"), "Name")
    return sport


def extract_tcx_records(tcx: Element, filename: str) -> list[ActivityRecord]:
    """Collect one record per ``Activities/Activity``; laps are concatenated.

    Raises:
        MalformedDocument: If there is no ``Activities`` element.
    """

    activities = _child(tcx, "Activities")
    if activities is None:
        raise MalformedDocument("TCX文件没有 Activities")

    records: list[ActivityRecord] = []
    skipped = 0
    for act in _children(activities, "Activity"):
        record = ActivityRecord(name=filename, declared_sport=_tcx_sport(act))
        for lap in _children(act, "Lap"):
            for track in _children(lap, "Track"):
                for trkpt in _children(track, "Trackpoint"):
                    pos = _child(trkpt, "Position")
                    if pos is None:
                        continue
                    lat = parse_coord(_child_text(pos, "LatitudeDegrees"))
                    lng = parse_coord(_child_text(pos, "LongitudeDegrees"))
                    if lat is None or lng is None:
                        skipped += 1
                        continue
                    ts = parse_timestamp(_child_text(trkpt, "Time"))
                    record.points.append(Point(lat=lat, lng=lng, timestamp=ts))
        records.append(record)

    if skipped:
        logger.debug("TCX %s: skipped %s trackpoints with bad positions", filename, skipped)
    return records
