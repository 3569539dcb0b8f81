"""Collect (filename, bytes) pairs from files, directories and zip archives."""

from __future__ import annotations

import logging
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Iterable, Iterator

logger = logging.getLogger(__name__)

TRACK_SUFFIXES = (".gpx", ".tcx", ".fit")


def is_track_name(name: str) -> bool:
    """Names worth handing to the extraction layer.

    JSON files are only picked when they look like training-session exports.
    """

    base = name.rsplit("/", 1)[-1]
    lower = base.lower()
    if lower.endswith(TRACK_SUFFIXES):
        return True
    return lower.endswith(".json") and base.startswith("training-session")


def iter_zip(name: str, contents: bytes) -> Iterator[tuple[str, bytes]]:
    """Yield track entries of a zip archive, recursing into nested zips."""

    try:
        zf = zipfile.ZipFile(BytesIO(contents))
    except zipfile.BadZipFile as exc:
        logger.warning("%s: 不是有效的zip文件（%s）", name, exc)
        return
    with zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            if info.filename.lower().endswith(".zip"):
                yield from iter_zip(info.filename, zf.read(info))
            elif is_track_name(info.filename):
                yield info.filename, zf.read(info)


def iter_source_files(paths: Iterable[str | Path]) -> Iterator[tuple[str, bytes]]:
    """Yield (filename, contents) for every track file under ``paths``.

    Files given explicitly are always yielded (unknown formats are reported
    by the extraction layer); directories are walked and filtered.
    """

    for raw in paths:
        p = Path(raw)
        if p.is_dir():
            for child in sorted(p.rglob("*")):
                if not child.is_file():
                    continue
                if child.suffix.lower() == ".zip":
                    yield from iter_zip(child.name, child.read_bytes())
                elif is_track_name(child.name):
                    yield child.name, child.read_bytes()
        elif p.suffix.lower() == ".zip":
            yield from iter_zip(p.name, p.read_bytes())
        else:
            yield p.name, p.read_bytes()
