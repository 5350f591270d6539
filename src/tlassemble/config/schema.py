"""Dataclass-based configuration schema for tlassemble."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Literal, Mapping

from tlassemble.config.units import BitRate

SortKey = Literal["name", "creation"]

# Encoder-neutral compression option names.
QUALITY = "quality"
AVERAGE_BIT_RATE = "average_bit_rate"
DATA_RATE_LIMITS = "data_rate_limits"
MAX_KEY_FRAME_INTERVAL = "max_key_frame_interval"
MAX_KEY_FRAME_INTERVAL_DURATION = "max_key_frame_interval_duration"
ALLOW_TEMPORAL_COMPRESSION = "allow_temporal_compression"
ALLOW_FRAME_REORDERING = "allow_frame_reordering"
MORE_FRAMES_BEFORE_START = "more_frames_before_start"
MORE_FRAMES_AFTER_END = "more_frames_after_end"
ENTROPY_MODE = "entropy_mode"
MAX_FRAME_DELAY_COUNT = "max_frame_delay_count"
REAL_TIME = "real_time"
EXPECTED_FRAME_RATE = "expected_frame_rate"
PROFILE_LEVEL = "profile_level"
EXPECTED_DURATION = "expected_duration"

ENTROPY_MODES = ("cavlc", "cabac")


@dataclass(slots=True)
class CompressionConfig:
    """Compression options keyed by encoder-neutral name.

    Scalar options follow last-write-wins; data-rate limits accumulate as
    ``(bits, seconds)`` pairs.
    """

    options: dict[str, Any] = field(default_factory=dict)

    def set(self, name: str, value: Any) -> None:
        self.options[name] = value

    def add_rate_limit(self, rate: BitRate) -> None:
        limits = self.options.setdefault(DATA_RATE_LIMITS, [])
        limits.append((rate.bits, rate.seconds))

    def get(self, name: str, default: Any = None) -> Any:
        return self.options.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self.options

    def restrict_to(self, supported: Iterable[str]) -> list[str]:
        """Drop options outside ``supported`` and return their names."""

        allowed = set(supported)
        dropped = sorted(name for name in self.options if name not in allowed)
        for name in dropped:
            del self.options[name]
        return dropped

    def apply_defaults(self, defaults: Mapping[str, Any], supported: Iterable[str]) -> list[str]:
        """Fill unset, supported options from ``defaults``."""

        allowed = set(supported)
        applied: list[str] = []
        for name, value in defaults.items():
            if name in self.options or name not in allowed:
                continue
            self.options[name] = value
            applied.append(name)
        return sorted(applied)

    def copy(self) -> CompressionConfig:
        copied = {
            name: list(value) if isinstance(value, list) else value
            for name, value in self.options.items()
        }
        return CompressionConfig(options=copied)


@dataclass(slots=True)
class SelectionConfig:
    """Ordering, filtering and truncation of discovered frames."""

    sort: SortKey = "creation"
    reverse: bool = False
    filters: dict[str, str] = field(default_factory=dict)
    frame_limit: int | None = None


@dataclass(slots=True)
class TimelineConfig:
    """Output frame-rate and real-time scaling options."""

    fps: float | None = None
    speed: float | None = None


@dataclass(slots=True)
class OutputConfig:
    """Destination container and encoder options."""

    destination: Path
    container_kind: str = "mov"
    codec: str = "h264"
    height: int | None = None
    dry_run: bool = False


@dataclass(slots=True)
class AssemblyConfig:
    """Top-level assembly configuration."""

    sources: list[Path]
    output: OutputConfig
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    timeline: TimelineConfig = field(default_factory=TimelineConfig)
    compression: CompressionConfig = field(default_factory=CompressionConfig)

    @property
    def needs_timestamps(self) -> bool:
        return self.selection.sort == "creation" or bool(self.timeline.speed)
