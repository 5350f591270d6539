"""Build and validate an ``AssemblyConfig`` from parsed command-line values."""

from __future__ import annotations

import math
from pathlib import Path
from typing import TYPE_CHECKING, get_args

from tlassemble.config import schema
from tlassemble.config.schema import (
    AssemblyConfig,
    CompressionConfig,
    OutputConfig,
    SelectionConfig,
    TimelineConfig,
)
from tlassemble.config.units import parse_bit_quantity, parse_bit_rate, parse_duration, split_number
from tlassemble.encode.codecs import resolve_codec
from tlassemble.encode.container import CONTAINER_FORMATS, container_kind_for
from tlassemble.errors import DestinationError, InvalidArgumentError
from tlassemble.selection.filtering import FilterSpec

if TYPE_CHECKING:
    from tlassemble.cli.commands_assemble import AssembleCommand


def _positive_real(flag: str, value: float | None) -> float | None:
    if value is None:
        return None
    if not value > 0:
        raise InvalidArgumentError(f"--{flag} must be a positive real number, got {value}.")
    return float(value)


def _positive_int(flag: str, value: int | None) -> int | None:
    if value is None:
        return None
    if value <= 0:
        raise InvalidArgumentError(f"--{flag} must be a positive integer, got {value}.")
    return value


def resolve_paths(paths: list[Path]) -> tuple[list[Path], Path]:
    """Split positional paths into sources and the destination."""

    if len(paths) < 2:
        raise InvalidArgumentError("Expected at least one source path followed by a destination path.")
    expanded = [path.expanduser() for path in paths]
    return expanded[:-1], expanded[-1]


def check_destination(destination: Path) -> None:
    """The destination must not exist and its directory must."""

    if destination.exists():
        raise DestinationError(f"Destination file \"{destination}\" already exists.")
    parent = destination.parent
    if not parent.is_dir():
        raise DestinationError(f"Destination folder \"{parent}\" does not exist.")


def resolve_container_kind(destination: Path, file_type: str | None) -> str:
    """Pick the container from ``--file-type`` or the destination extension."""

    if file_type is None:
        return container_kind_for(destination)
    kind = file_type.strip().lower().lstrip(".")
    if kind not in CONTAINER_FORMATS:
        known = ", ".join(sorted(CONTAINER_FORMATS))
        raise InvalidArgumentError(f"Unsupported file type \"{file_type}\". Supported types are: {known}.")
    return kind


def parse_key_frame_period(text: str) -> tuple[str, float | int]:
    """Map ``--max-key-frame-period`` onto a frame-count or duration option.

    A bare number counts frames and is rounded half up; anything else must
    be a duration with a time suffix.
    """

    stripped = text.strip()
    split = split_number(stripped)
    if split is not None and not split[1]:
        frames = math.floor(split[0] + 0.5)
        if frames <= 0:
            raise InvalidArgumentError("--max-key-frame-period must be at least one frame.")
        return schema.MAX_KEY_FRAME_INTERVAL, frames

    seconds = parse_duration(stripped)
    if seconds is None or seconds <= 0:
        raise InvalidArgumentError(
            f"Unable to parse --max-key-frame-period \"{text}\" - expected a frame count or a time such as '2s'."
        )
    return schema.MAX_KEY_FRAME_INTERVAL_DURATION, seconds


def build_compression(command: AssembleCommand) -> CompressionConfig:
    """Collect the compression options the user asked for."""

    compression = CompressionConfig()

    if command.quality is not None:
        if not 0.0 <= command.quality <= 1.0:
            raise InvalidArgumentError(f"--quality must be between 0.0 and 1.0, got {command.quality}.")
        compression.set(schema.QUALITY, float(command.quality))

    if command.average_bit_rate is not None:
        rate = parse_bit_rate(command.average_bit_rate)
        if rate is None or rate <= 0:
            raise InvalidArgumentError(
                f"Unable to parse --average-bit-rate \"{command.average_bit_rate}\" - expected something like '5Mb'."
            )
        compression.set(schema.AVERAGE_BIT_RATE, rate)

    for text in command.rate_limit:
        limit = parse_bit_quantity(text)
        if limit is None or limit.bits <= 0:
            raise InvalidArgumentError(
                f"Unable to parse --rate-limit \"{text}\" - expected something like '10Mb/2s'."
            )
        compression.add_rate_limit(limit)

    if command.max_key_frame_period is not None:
        name, value = parse_key_frame_period(command.max_key_frame_period)
        compression.set(name, value)
    if command.key_frames_only:
        compression.set(schema.ALLOW_TEMPORAL_COMPRESSION, False)
    if command.strict_frame_ordering:
        compression.set(schema.ALLOW_FRAME_REORDERING, False)
    if command.assume_preceding_frames:
        compression.set(schema.MORE_FRAMES_BEFORE_START, True)
    if command.assume_succeeding_frames:
        compression.set(schema.MORE_FRAMES_AFTER_END, True)

    if command.entropy_mode is not None:
        mode = command.entropy_mode.strip().lower()
        if mode not in schema.ENTROPY_MODES:
            raise InvalidArgumentError(
                f"Unrecognised entropy mode \"{command.entropy_mode}\". Expected one of: {', '.join(schema.ENTROPY_MODES)}."
            )
        compression.set(schema.ENTROPY_MODE, mode)

    if command.max_frame_delay is not None:
        if command.max_frame_delay < 0:
            raise InvalidArgumentError(
                f"--max-frame-delay must be a non-negative integer, got {command.max_frame_delay}."
            )
        compression.set(schema.MAX_FRAME_DELAY_COUNT, command.max_frame_delay)

    return compression


def build_assembly_config(command: AssembleCommand) -> AssemblyConfig:
    """Validate ``command`` and turn it into an ``AssemblyConfig``."""

    sources, destination = resolve_paths(list(command.paths))
    check_destination(destination)

    try:
        codec = resolve_codec(command.codec)
    except KeyError as exc:
        raise InvalidArgumentError(exc.args[0]) from exc

    if command.sort not in get_args(schema.SortKey):
        raise InvalidArgumentError(f"Unrecognised sort key \"{command.sort}\". Expected 'name' or 'creation'.")

    try:
        filters = FilterSpec.parse(command.filter)
    except ValueError as exc:
        raise InvalidArgumentError(str(exc)) from exc

    return AssemblyConfig(
        sources=sources,
        output=OutputConfig(
            destination=destination,
            container_kind=resolve_container_kind(destination, command.file_type),
            codec=codec.name,
            height=_positive_int("height", command.height),
            dry_run=command.dryrun,
        ),
        selection=SelectionConfig(
            sort=command.sort,
            reverse=command.reverse,
            filters=dict(filters.constraints),
            frame_limit=_positive_int("frame-limit", command.frame_limit),
        ),
        timeline=TimelineConfig(
            fps=_positive_real("fps", command.fps),
            speed=_positive_real("speed", command.speed),
        ),
        compression=build_compression(command),
    )
