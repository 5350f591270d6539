"""Recursively discover candidate image files under the input roots."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime
import logging
import os
from pathlib import Path

from tlassemble.errors import DiscoveryError, InvalidArgumentError
from tlassemble.ingest.metadata import MetadataNode, MetadataProbeError, probe
from tlassemble.ingest.timestamps import TimeBounds, resolve_timestamp
from tlassemble.observability.logging import get_logger, log_event
from tlassemble.pipeline.stage import CandidateFile

_LOGGER = get_logger("tlassemble.scanner")

# Directory suffixes that mark opaque bundles whose contents are never frames.
PACKAGE_SUFFIXES = frozenset(
    {
        ".app",
        ".bundle",
        ".framework",
        ".kext",
        ".photoslibrary",
        ".aplibrary",
        ".lrdata",
        ".pkg",
        ".plugin",
        ".xcodeproj",
    }
)

MetadataProbe = Callable[[Path], MetadataNode]


@dataclass(slots=True)
class DiscoveryResult:
    """Discovered candidates plus their capture-time bookkeeping."""

    candidates: list[CandidateFile]
    timestamps: dict[Path, datetime] = field(default_factory=dict)
    bounds: TimeBounds = field(default_factory=TimeBounds)
    unresolved: list[Path] = field(default_factory=list)
    unreadable: list[Path] = field(default_factory=list)

    @property
    def candidate_count(self) -> int:
        return len(self.candidates)


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


def _is_package(name: str) -> bool:
    return Path(name).suffix.lower() in PACKAGE_SUFFIXES


def iter_directory(root: Path) -> Iterator[Path]:
    """Yield files below ``root`` depth-first in name order.

    Hidden entries, package bundles and symbolic links are skipped. Failure to
    list ``root`` itself is fatal; failures further down are logged and the
    affected subtree is skipped.
    """

    try:
        with os.scandir(root) as it:
            top = sorted(it, key=lambda entry: entry.name)
    except OSError as exc:
        raise DiscoveryError(f"Unable to enumerate files in \"{root}\": {exc}") from exc

    stack: list[list[os.DirEntry[str]]] = [list(reversed(top))]
    while stack:
        pending = stack[-1]
        if not pending:
            stack.pop()
            continue
        entry = pending.pop()
        if _is_hidden(entry.name):
            continue
        try:
            if entry.is_symlink():
                continue
            if entry.is_dir(follow_symlinks=False):
                if _is_package(entry.name):
                    continue
                with os.scandir(entry.path) as it:
                    children = sorted(it, key=lambda child: child.name)
                stack.append(list(reversed(children)))
                continue
            if entry.is_file(follow_symlinks=False):
                yield Path(entry.path)
        except OSError as exc:
            log_event(
                _LOGGER,
                "enumeration_failed",
                level=logging.WARNING,
                path=entry.path,
                error=str(exc),
            )


def _iter_root(root: Path) -> Iterator[Path]:
    if not root.exists():
        raise InvalidArgumentError(f"\"{root}\" does not exist.")
    if root.is_dir():
        yield from iter_directory(root)
    else:
        yield root


def _prescan(
    path: Path,
    result: DiscoveryResult,
    probe_metadata: MetadataProbe,
) -> None:
    try:
        metadata = probe_metadata(path)
    except MetadataProbeError as exc:
        result.unreadable.append(path)
        log_event(
            _LOGGER,
            "metadata_unreadable",
            level=logging.WARNING,
            path=str(path),
            error=str(exc),
        )
        return

    candidate = CandidateFile(path=path)
    timestamp = resolve_timestamp(path, metadata)
    if timestamp is None:
        result.unresolved.append(path)
        log_event(
            _LOGGER,
            "timestamp_unresolved",
            level=logging.WARNING,
            path=str(path),
        )
    else:
        candidate.timestamp = timestamp
        result.timestamps[path] = timestamp
        result.bounds.observe(timestamp)
    result.candidates.append(candidate)


def discover(
    roots: Sequence[Path],
    *,
    resolve_timestamps: bool,
    probe_metadata: MetadataProbe = probe,
) -> DiscoveryResult:
    """Expand ``roots`` into candidate files in discovery order."""

    result = DiscoveryResult(candidates=[])
    for root in roots:
        for path in _iter_root(root):
            if resolve_timestamps:
                _prescan(path, result, probe_metadata)
            else:
                result.candidates.append(CandidateFile(path=path))

    log_event(
        _LOGGER,
        "discovery_finished",
        level=logging.DEBUG,
        candidates=result.candidate_count,
        unresolved=len(result.unresolved),
        unreadable=len(result.unreadable),
        earliest=result.bounds.earliest.isoformat() if result.bounds.earliest else None,
        latest=result.bounds.latest.isoformat() if result.bounds.latest else None,
    )
    return result
