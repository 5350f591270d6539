"""Codec catalogue and translation of compression options to libav settings."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any

import av

from tlassemble.config import schema
from tlassemble.pipeline.timeline import TIME_BASE

_COMMON_OPTIONS = frozenset(
    {
        schema.AVERAGE_BIT_RATE,
        schema.DATA_RATE_LIMITS,
        schema.MAX_KEY_FRAME_INTERVAL,
        schema.MAX_KEY_FRAME_INTERVAL_DURATION,
        schema.ALLOW_TEMPORAL_COMPRESSION,
        schema.EXPECTED_FRAME_RATE,
    }
)


@dataclass(frozen=True, slots=True)
class CodecSpec:
    """One selectable output codec."""

    name: str
    encoder: str
    pixel_format: str
    supported_options: frozenset[str]
    description: str = ""
    time_base: Fraction = TIME_BASE


CODECS: dict[str, CodecSpec] = {
    "h264": CodecSpec(
        name="h264",
        encoder="libx264",
        pixel_format="yuv420p",
        supported_options=_COMMON_OPTIONS
        | {
            schema.QUALITY,
            schema.ALLOW_FRAME_REORDERING,
            schema.ENTROPY_MODE,
            schema.MAX_FRAME_DELAY_COUNT,
            schema.REAL_TIME,
            schema.PROFILE_LEVEL,
        },
        description="H.264 / AVC (x264)",
    ),
    "hevc": CodecSpec(
        name="hevc",
        encoder="libx265",
        pixel_format="yuv420p",
        supported_options=_COMMON_OPTIONS | {schema.QUALITY, schema.ALLOW_FRAME_REORDERING},
        description="H.265 / HEVC (x265)",
    ),
    "mpeg4": CodecSpec(
        name="mpeg4",
        encoder="mpeg4",
        pixel_format="yuv420p",
        supported_options=_COMMON_OPTIONS | {schema.ALLOW_FRAME_REORDERING},
        description="MPEG-4 Part 2",
        # MPEG-4 Part 2 caps the time base denominator at 65535.
        time_base=Fraction(1, 30_000),
    ),
    "mjpeg": CodecSpec(
        name="mjpeg",
        encoder="mjpeg",
        pixel_format="yuvj420p",
        supported_options=frozenset({schema.AVERAGE_BIT_RATE, schema.EXPECTED_FRAME_RATE}),
        description="Motion JPEG",
    ),
}

_PROFILES = {"high": "high", "main": "main", "baseline": "baseline"}


@dataclass(slots=True)
class EncoderSettings:
    """Codec-context attributes and private options for one session."""

    bit_rate: int | None = None
    gop_size: int | None = None
    max_b_frames: int | None = None
    options: dict[str, str] = field(default_factory=dict)


def available_codecs() -> list[CodecSpec]:
    """Return catalogue entries whose encoder is present in this libav build."""

    present = av.codecs_available
    return [spec for spec in CODECS.values() if spec.encoder in present]


def resolve_codec(name: str) -> CodecSpec:
    """Look up a codec by its user-facing name."""

    spec = CODECS.get(name.strip().lower())
    if spec is None:
        known = "\n  ".join(sorted(CODECS))
        raise KeyError(f"Unrecognised codec \"{name}\". Supported codecs are:\n  {known}")
    return spec


def default_options(fps: float, expected_duration: float) -> dict[str, Any]:
    """Settings applied when the caller leaves them unset."""

    return {
        schema.REAL_TIME: False,
        schema.EXPECTED_FRAME_RATE: fps,
        schema.ENTROPY_MODE: "cabac",
        schema.PROFILE_LEVEL: "high",
        schema.EXPECTED_DURATION: expected_duration,
    }


def _rate_limit(limits: list[tuple[float, float]]) -> tuple[int, int]:
    # libav takes a single peak rate; honour the strictest pair.
    bits, seconds = min(limits, key=lambda pair: pair[0] / pair[1])
    return round(bits / seconds), round(bits)


def translate(spec: CodecSpec, options: Mapping[str, Any], fps: float) -> EncoderSettings:
    """Map encoder-neutral ``options`` onto libav settings for ``spec``."""

    settings = EncoderSettings()

    if schema.QUALITY in options:
        crf = round((1.0 - float(options[schema.QUALITY])) * 51)
        settings.options["crf"] = str(crf)
    if schema.AVERAGE_BIT_RATE in options:
        settings.bit_rate = round(float(options[schema.AVERAGE_BIT_RATE]))
    if options.get(schema.DATA_RATE_LIMITS):
        maxrate, bufsize = _rate_limit(options[schema.DATA_RATE_LIMITS])
        settings.options["maxrate"] = str(maxrate)
        settings.options["bufsize"] = str(bufsize)

    if schema.MAX_KEY_FRAME_INTERVAL in options:
        settings.gop_size = max(1, int(options[schema.MAX_KEY_FRAME_INTERVAL]))
    if schema.MAX_KEY_FRAME_INTERVAL_DURATION in options:
        seconds = float(options[schema.MAX_KEY_FRAME_INTERVAL_DURATION])
        frames = max(1, round(seconds * fps))
        settings.gop_size = frames if settings.gop_size is None else min(settings.gop_size, frames)
    if options.get(schema.ALLOW_TEMPORAL_COMPRESSION) is False:
        settings.gop_size = 1
        settings.max_b_frames = 0
    if options.get(schema.ALLOW_FRAME_REORDERING) is False:
        settings.max_b_frames = 0

    if spec.encoder == "libx264":
        if schema.ENTROPY_MODE in options:
            settings.options["coder"] = str(options[schema.ENTROPY_MODE])
        if schema.PROFILE_LEVEL in options:
            settings.options["profile"] = _PROFILES.get(str(options[schema.PROFILE_LEVEL]), "high")
        if schema.MAX_FRAME_DELAY_COUNT in options:
            settings.options["rc-lookahead"] = str(int(options[schema.MAX_FRAME_DELAY_COUNT]))
        if options.get(schema.REAL_TIME):
            settings.options["tune"] = "zerolatency"

    return settings
