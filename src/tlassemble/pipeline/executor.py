"""End-to-end assembly: discover, select, time and encode."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path

from tlassemble.config.schema import AssemblyConfig
from tlassemble.encode.engine import CompressionEngine
from tlassemble.errors import NoInputError
from tlassemble.ingest.decoder import decode
from tlassemble.ingest.metadata import probe
from tlassemble.ingest.scanner import MetadataProbe, discover
from tlassemble.observability.logging import get_logger, log_event
from tlassemble.pipeline.orchestrator import EncodeOrchestrator, ImageDecoder, ProgressHandler, WriterFactory
from tlassemble.pipeline.stage import PipelineCounters
from tlassemble.pipeline.timeline import Timeline, synthesize
from tlassemble.selection.engine import select_frames

_LOGGER = get_logger("tlassemble.executor")


@dataclass(slots=True)
class AssemblyResult:
    """Outcome of one successful assembly run."""

    destination: Path
    dry_run: bool
    timeline: Timeline
    counters: PipelineCounters
    truncated: int = 0

    @property
    def incomplete(self) -> bool:
        """True when some discovered files did not make it into the movie."""

        c = self.counters
        return c.decode_failures > 0 or c.timestamp_failures > 0


def execute_assembly(
    config: AssemblyConfig,
    *,
    engine: CompressionEngine | None = None,
    open_writer: WriterFactory | None = None,
    probe_metadata: MetadataProbe = probe,
    decode_image: ImageDecoder = decode,
    on_progress: ProgressHandler | None = None,
) -> AssemblyResult:
    """Assemble the configured inputs into one movie."""

    discovery = discover(
        config.sources,
        resolve_timestamps=config.needs_timestamps,
        probe_metadata=probe_metadata,
    )
    if not discovery.candidates:
        raise NoInputError("No files found in input path(s).")

    selection = select_frames(discovery, config.selection, probe_metadata=probe_metadata)
    timeline = synthesize(
        selection.frame_count,
        discovery.bounds,
        fps=config.timeline.fps,
        speed=config.timeline.speed,
    )

    orchestrator = EncodeOrchestrator(
        output=config.output,
        compression=config.compression,
        timeline=timeline,
        engine=engine,
        open_writer=open_writer,
        decode_image=decode_image,
        on_progress=on_progress,
    )
    counters = orchestrator.run(selection, discovery)

    result = AssemblyResult(
        destination=config.output.destination,
        dry_run=config.output.dry_run,
        timeline=timeline,
        counters=counters,
        truncated=selection.truncated,
    )
    log_event(
        _LOGGER,
        "assembly_finished",
        level=logging.WARNING if result.incomplete else logging.INFO,
        destination=str(result.destination),
        dry_run=result.dry_run,
        truncated=result.truncated,
        **counters.as_dict(),
    )
    return result
