"""Sort, filter and truncate discovered candidates into the final frame list."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from tlassemble.config.schema import SelectionConfig
from tlassemble.ingest.metadata import MetadataProbeError, probe
from tlassemble.ingest.scanner import DiscoveryResult, MetadataProbe
from tlassemble.observability.logging import get_logger, log_event
from tlassemble.pipeline.stage import CandidateFile
from tlassemble.selection.filtering import FilterSpec, matches
from tlassemble.selection.ordering import sort_candidates

_LOGGER = get_logger("tlassemble.selection")


@dataclass(slots=True)
class Selection:
    """Frames chosen for encoding, in output order."""

    frames: list[CandidateFile]
    filtered_out: list[CandidateFile] = field(default_factory=list)
    truncated: int = 0

    @property
    def frame_count(self) -> int:
        return len(self.frames)


def _accepts(candidate: CandidateFile, spec: FilterSpec, probe_metadata: MetadataProbe, total: int) -> bool:
    try:
        metadata = probe_metadata(candidate.path)
    except MetadataProbeError as exc:
        log_event(
            _LOGGER,
            "metadata_unreadable",
            level=logging.WARNING,
            path=str(candidate.path),
            file_index=candidate.ordinal,
            total=total,
            error=str(exc),
        )
        return False
    if matches(metadata, spec):
        return True
    log_event(
        _LOGGER,
        "frame_filtered",
        path=str(candidate.path),
        file_index=candidate.ordinal,
        total=total,
    )
    return False


def select_frames(
    discovery: DiscoveryResult,
    config: SelectionConfig,
    *,
    probe_metadata: MetadataProbe = probe,
) -> Selection:
    """Order, filter and limit ``discovery.candidates``.

    Ordinals are assigned after sorting and before filtering, so they name a
    file's 1-based position among everything that was discovered.
    """

    ordered = sort_candidates(
        discovery.candidates,
        config.sort,
        reverse=config.reverse,
        timestamps=discovery.timestamps,
    )
    for index, candidate in enumerate(ordered, start=1):
        candidate.ordinal = index

    spec = FilterSpec(constraints=dict(config.filters))
    selection = Selection(frames=[])
    total = len(ordered)
    for candidate in ordered:
        if spec and not _accepts(candidate, spec, probe_metadata, total):
            selection.filtered_out.append(candidate)
            continue
        selection.frames.append(candidate)

    limit = config.frame_limit
    if limit is not None and len(selection.frames) > limit:
        selection.truncated = len(selection.frames) - limit
        del selection.frames[limit:]

    log_event(
        _LOGGER,
        "selection_finished",
        level=logging.DEBUG,
        sort=config.sort,
        reverse=config.reverse,
        selected=selection.frame_count,
        filtered_out=len(selection.filtered_out),
        truncated=selection.truncated,
    )
    return selection
