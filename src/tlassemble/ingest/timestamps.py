"""Capture-time resolution for candidate frames."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import os
from pathlib import Path

from tlassemble.ingest.metadata import MetadataNode

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"


@dataclass(slots=True)
class TimeBounds:
    """Earliest and latest capture times observed so far."""

    earliest: datetime | None = None
    latest: datetime | None = None

    def observe(self, timestamp: datetime) -> None:
        if self.earliest is None or timestamp < self.earliest:
            self.earliest = timestamp
        if self.latest is None or timestamp > self.latest:
            self.latest = timestamp

    @property
    def span_seconds(self) -> float:
        if self.earliest is None or self.latest is None:
            return 0.0
        return (self.latest - self.earliest).total_seconds()


def parse_exif_datetime(raw: str, subsec: str | None = None) -> datetime | None:
    """Parse an EXIF ``YYYY:MM:DD HH:MM:SS`` string, with optional sub-seconds."""

    try:
        parsed = datetime.strptime(raw.strip(), EXIF_DATETIME_FORMAT)
    except ValueError:
        return None
    if subsec:
        digits = "".join(ch for ch in subsec if ch.isdigit())
        if digits:
            parsed = parsed.replace(microsecond=int(digits[:6].ljust(6, "0")))
    return parsed


def capture_time(metadata: MetadataNode) -> datetime | None:
    """Return the recorded capture time from an image's EXIF properties."""

    exif = metadata.child("Exif")
    if exif is None:
        return None
    raw = exif.get("DateTimeOriginal")
    if not isinstance(raw, str) or not raw:
        return None
    subsec = exif.get("SubsecTimeOriginal")
    return parse_exif_datetime(raw, subsec if isinstance(subsec, str) else None)


def filesystem_creation_time(path: Path) -> datetime | None:
    """Return the filesystem creation time, or modification time where no
    creation time is recorded."""

    try:
        stat = os.stat(path)
    except OSError:
        return None
    created = getattr(stat, "st_birthtime", None)
    if created is None:
        created = stat.st_mtime
    return datetime.fromtimestamp(created)


def resolve_timestamp(path: Path, metadata: MetadataNode | None) -> datetime | None:
    """Prefer the embedded capture time and fall back to the filesystem."""

    # Filesystem dates are unreliable for burst-shot cameras, so metadata wins.
    if metadata is not None:
        recorded = capture_time(metadata)
        if recorded is not None:
            return recorded
    return filesystem_creation_time(path)
