"""Asynchronous compression sessions backed by libav encoders."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from fractions import Fraction
import logging
from typing import Any

import av
from av.codec.context import CodecContext
from av.error import FFmpegError

from tlassemble.encode.codecs import CodecSpec, translate
from tlassemble.errors import EncodeError
from tlassemble.observability.logging import get_logger, log_event
from tlassemble.pipeline.stage import FrameSubmission, FrameToken
from tlassemble.pipeline.timeline import TIME_BASE

_LOGGER = get_logger("tlassemble.engine")


@dataclass(frozen=True, slots=True)
class Completion:
    """Result of compressing one submitted frame."""

    token: FrameToken
    packets: list[Any] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


CompletionHandler = Callable[[Completion], None]


def frame_rate(fps: float) -> Fraction:
    return Fraction(fps).limit_denominator(1001)


class CompressionSession:
    """Encodes frames on a worker thread and reports each one via callback."""

    def __init__(self, context: Any, on_complete: CompletionHandler, time_base: Fraction = TIME_BASE) -> None:
        self._context = context
        self._on_complete = on_complete
        self._time_base = time_base
        self._last_pts = -1
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tlassemble-encode")

    def submit(self, submission: FrameSubmission) -> None:
        """Queue ``submission``; its completion is delivered asynchronously."""

        self._executor.submit(self._encode, submission)

    def _encode(self, submission: FrameSubmission) -> None:
        try:
            frame = av.VideoFrame.from_ndarray(submission.pixels, format="rgb24")
            frame.pts = self._rescale(submission.pts)
            frame.time_base = self._time_base
            packets = list(self._context.encode(frame))
        except Exception as exc:  # forwarded to the completion handler
            completion = Completion(token=submission.token, error=exc)
        else:
            completion = Completion(token=submission.token, packets=packets)
        self._on_complete(completion)

    def _rescale(self, pts: int) -> int:
        # Coarser codec clocks can fold neighbouring ticks together.
        scaled = round(pts * TIME_BASE / self._time_base)
        if scaled <= self._last_pts:
            scaled = self._last_pts + 1
        self._last_pts = scaled
        return scaled

    def flush(self) -> list[Any]:
        """Drain samples the encoder is still holding."""

        future = self._executor.submit(self._context.encode, None)
        try:
            return list(future.result())
        except (FFmpegError, ValueError) as exc:
            raise EncodeError(f"Unable to complete compression session: {exc}") from exc

    def close(self) -> None:
        self._executor.shutdown(wait=True)


class CompressionEngine:
    """Creates compression sessions for catalogue codecs."""

    def supported_options(self, codec: CodecSpec) -> frozenset[str]:
        return codec.supported_options

    def configure(
        self,
        codec: CodecSpec,
        width: int,
        height: int,
        options: Mapping[str, Any],
        *,
        fps: float,
        on_complete: CompletionHandler,
        context: Any | None = None,
    ) -> CompressionSession:
        """Configure an encoder for ``width`` x ``height`` frames.

        ``context`` is the codec context of a container stream; without one
        a standalone encoder is created and opened here.
        """

        if codec.encoder not in av.codecs_available:
            raise EncodeError(f"Encoder \"{codec.encoder}\" for codec \"{codec.name}\" is not available.")

        settings = translate(codec, options, fps)
        standalone = context is None
        try:
            if standalone:
                context = CodecContext.create(codec.encoder, "w")
            context.width = width
            context.height = height
            context.pix_fmt = codec.pixel_format
            context.time_base = codec.time_base
            context.framerate = frame_rate(fps)
            if settings.bit_rate is not None:
                context.bit_rate = settings.bit_rate
            if settings.gop_size is not None:
                context.gop_size = settings.gop_size
            if settings.max_b_frames is not None:
                context.max_b_frames = settings.max_b_frames
            context.options = dict(settings.options)
            if standalone:
                context.open()
        except (FFmpegError, ValueError, TypeError) as exc:
            raise EncodeError(f"Unable to create compression session, error: {exc}") from exc

        log_event(
            _LOGGER,
            "compression_configured",
            level=logging.DEBUG,
            encoder=codec.encoder,
            width=width,
            height=height,
            bit_rate=settings.bit_rate,
            gop_size=settings.gop_size,
            max_b_frames=settings.max_b_frames,
            codec_options=settings.options,
        )
        return CompressionSession(context, on_complete, codec.time_base)
