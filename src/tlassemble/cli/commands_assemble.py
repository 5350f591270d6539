"""`tlassemble assemble` command."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import sys

import tyro

from tlassemble.config.loader import build_assembly_config
from tlassemble.config.schema import SortKey
from tlassemble.errors import AssemblyError
from tlassemble.observability.logging import configure_logging
from tlassemble.pipeline.executor import AssemblyResult, execute_assembly
from tlassemble.pipeline.stage import CandidateFile


@dataclass(slots=True)
class AssembleCommand:
    """Assemble still images into a time-lapse movie.

    Every path but the last is a source file or folder; the last path is the
    movie to create.
    """

    paths: tyro.conf.Positional[list[Path]]
    codec: str = "h264"
    """Output codec; see `tlassemble codecs`."""
    fps: float | None = None
    """Output frame rate. Defaults to 30, or to the rate implied by --speed."""
    height: int | None = None
    """Output height in pixels; width follows the first frame's aspect ratio."""
    quality: float | None = None
    """Compression quality between 0.0 (smallest) and 1.0 (best)."""
    sort: SortKey = "creation"
    reverse: bool = False
    speed: float | None = None
    """Play back at this multiple of real time, spacing frames by capture time."""
    frame_limit: int | None = None
    filter: tyro.conf.UseAppendAction[list[str]] = field(default_factory=list)
    """Only use images whose metadata has PROPERTY=VALUE. Repeatable."""
    dryrun: bool = False
    """Run everything except writing the movie file."""
    quiet: bool = False
    file_type: str | None = None
    """Container type (mov, mp4, m4v). Defaults to the destination's extension."""
    max_key_frame_period: str | None = None
    """Frames between key frames, or a time such as '2s'."""
    key_frames_only: bool = False
    strict_frame_ordering: bool = False
    average_bit_rate: str | None = None
    """Target bit rate, e.g. '5Mb' or '600kB/s'."""
    rate_limit: tyro.conf.UseAppendAction[list[str]] = field(default_factory=list)
    """Hard data-rate limit as bits per interval, e.g. '20Mb/2s'. Repeatable."""
    assume_preceding_frames: bool = False
    assume_succeeding_frames: bool = False
    entropy_mode: str | None = None
    """cavlc or cabac."""
    max_frame_delay: int | None = None
    log_level: str = "INFO"


def _print_progress(candidate: CandidateFile, encoded: int, total: int) -> None:
    print(f"Processed {candidate.path.name} ({candidate.ordinal} of {total})")


def _print_summary(result: AssemblyResult) -> None:
    counters = result.counters
    timeline = result.timeline
    duration = timeline.expected_duration if timeline.scaled else counters.encoded / timeline.fps
    verb = "Would have written" if result.dry_run else "Wrote"
    print(
        f"{verb} {counters.encoded} frames to {result.destination} "
        f"({duration:.2f}s at {timeline.fps:.3g} fps)."
    )
    expected = counters.discovered - result.truncated
    if counters.encoded != expected:
        print(
            f"Warning: only {counters.encoded} of {expected} input files were encoded "
            f"({counters.filtered_out} filtered out, {counters.decode_failures} unreadable).",
            file=sys.stderr,
        )


def execute(command: AssembleCommand) -> None:
    configure_logging("WARNING" if command.quiet else command.log_level)
    try:
        config = build_assembly_config(command)
        result = execute_assembly(
            config,
            on_progress=None if command.quiet else _print_progress,
        )
    except AssemblyError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(exc.exit_code) from exc
    _print_summary(result)
