"""Errors raised while extracting tracks from a single file."""

from __future__ import annotations


class TrackParseError(ValueError):
    """Base class. Always scoped to one input file."""


class UnsupportedFormat(TrackParseError):
    """The filename extension does not map to a known source format."""


class MalformedDocument(TrackParseError):
    """The document decoded fine but has an unexpected structure."""


class EmptyRecordSet(TrackParseError):
    """A binary file decoded but contained no records at all."""


class DecodeError(TrackParseError):
    """The underlying codec could not read the bytes."""
