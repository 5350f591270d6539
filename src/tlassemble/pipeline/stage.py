"""Frame records passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import numpy as np


@dataclass(slots=True)
class CandidateFile:
    """One discovered input file."""

    path: Path
    timestamp: datetime | None = None
    ordinal: int = 0
    width: int | None = None
    height: int | None = None


@dataclass(frozen=True, slots=True)
class FrameToken:
    """Correlates a compression completion with the frame that caused it."""

    ordinal: int


@dataclass(frozen=True, slots=True)
class FrameSubmission:
    """One decoded frame handed to the compression engine."""

    pixels: np.ndarray
    pts: int
    token: FrameToken


@dataclass(slots=True)
class PipelineCounters:
    """Per-run frame disposition totals."""

    discovered: int = 0
    timestamp_failures: int = 0
    filtered_out: int = 0
    decode_failures: int = 0
    encoded: int = 0

    @property
    def succeeded(self) -> bool:
        return self.encoded > 0

    def as_dict(self) -> dict[str, int]:
        return {
            "discovered": self.discovered,
            "timestamp_failures": self.timestamp_failures,
            "filtered_out": self.filtered_out,
            "decode_failures": self.decode_failures,
            "encoded": self.encoded,
        }
