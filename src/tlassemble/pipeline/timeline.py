"""Output frame rate and presentation timestamps."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from fractions import Fraction
import logging

from tlassemble.ingest.timestamps import TimeBounds
from tlassemble.observability.logging import get_logger, log_event

_LOGGER = get_logger("tlassemble.timeline")

DEFAULT_FPS = 30.0

# 90 kHz clock: fine enough that consecutive frames never share a tick.
TIMESCALE = 90_000
TIME_BASE = Fraction(1, TIMESCALE)


@dataclass(frozen=True, slots=True)
class Timeline:
    """Presentation timing for one assembly run.

    In constant-rate mode (``speed`` unset) frame ``n`` is shown at ``n / fps``.
    In real-time mode a frame is shown at its capture offset from
    ``earliest`` divided by ``speed``.
    """

    fps: float
    expected_duration: float
    speed: float | None = None
    earliest: datetime | None = None

    @property
    def scaled(self) -> bool:
        return self.speed is not None and self.earliest is not None

    @property
    def frame_ticks(self) -> int:
        return max(1, round(TIMESCALE / self.fps))

    def presentation_seconds(self, position: int, timestamp: datetime | None = None) -> float:
        if self.scaled:
            if timestamp is None:
                raise ValueError("Real-time timeline requires a capture timestamp")
            return (timestamp - self.earliest).total_seconds() / self.speed
        return position / self.fps

    def presentation_ticks(self, position: int, timestamp: datetime | None = None) -> int:
        if self.scaled:
            return round(self.presentation_seconds(position, timestamp) * TIMESCALE)
        return position * self.frame_ticks


def synthesize(
    frame_count: int,
    bounds: TimeBounds,
    *,
    fps: float | None = None,
    speed: float | None = None,
) -> Timeline:
    """Build the timeline for ``frame_count`` selected frames."""

    if speed is not None and speed > 0 and bounds.earliest is not None:
        span = bounds.span_seconds
        if span > 0:
            duration = span / speed
            rate = fps if fps else frame_count / duration
            timeline = Timeline(fps=rate, expected_duration=duration, speed=speed, earliest=bounds.earliest)
            _log_timeline(timeline, frame_count, span)
            return timeline
        log_event(
            _LOGGER,
            "zero_capture_span",
            level=logging.WARNING,
            frames=frame_count,
        )

    rate = fps if fps else DEFAULT_FPS
    timeline = Timeline(fps=rate, expected_duration=frame_count / rate)
    _log_timeline(timeline, frame_count, 0.0)
    return timeline


def _log_timeline(timeline: Timeline, frame_count: int, span: float) -> None:
    log_event(
        _LOGGER,
        "timeline_synthesized",
        level=logging.DEBUG,
        fps=timeline.fps,
        expected_duration=timeline.expected_duration,
        real_time_duration=span,
        speed=timeline.speed,
        frames=frame_count,
    )
