"""Drive decoded frames through the compression engine into the container.

Frames are submitted strictly one at a time: after each submission the
orchestrator blocks until the engine's completion callback for that frame has
appended its compressed samples, so the container always receives samples in
presentation order without a reorder buffer.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
import logging
from pathlib import Path
import threading
from types import MappingProxyType
from typing import Any, Protocol

import numpy as np

from tlassemble.config.schema import CompressionConfig, OutputConfig
from tlassemble.encode.codecs import CodecSpec, default_options, resolve_codec
from tlassemble.encode.container import ContainerWriter, FinalizeHandler, NullContainerWriter
from tlassemble.encode.engine import Completion, CompressionEngine
from tlassemble.errors import EncodeError, InvalidArgumentError, NoInputError
from tlassemble.ingest.decoder import DecodedImage, DecodeError, decode, render_pixels
from tlassemble.ingest.scanner import DiscoveryResult
from tlassemble.observability.logging import get_logger, log_event
from tlassemble.pipeline.stage import CandidateFile, FrameSubmission, FrameToken, PipelineCounters
from tlassemble.pipeline.timeline import Timeline
from tlassemble.selection.engine import Selection

_LOGGER = get_logger("tlassemble.orchestrator")

# Output heights above this are known to produce empty or failed movies.
UNSAFE_HEIGHT = 2496


class OrchestratorState(Enum):
    IDLE = "idle"
    AWAITING_FIRST_FRAME = "awaiting_first_frame"
    SESSION_ACTIVE = "session_active"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"


class Writer(Protocol):
    destination: Path

    def add_video_stream(self, codec: CodecSpec, width: int, height: int, fps: float) -> Any: ...

    def start(self) -> None: ...

    def append(self, packet: Any) -> None: ...

    def finalize(self, on_complete: FinalizeHandler) -> None: ...

    def discard(self) -> None: ...


WriterFactory = Callable[[Path, str], Writer]
ImageDecoder = Callable[[Path], DecodedImage]
ProgressHandler = Callable[[CandidateFile, int, int], None]


@dataclass(frozen=True, slots=True)
class FrameGeometry:
    """Source size of the first frame and the size the movie is encoded at."""

    source_width: int
    source_height: int
    width: int
    height: int

    @property
    def output_size(self) -> tuple[int, int]:
        return (self.width, self.height)


def _even(value: int) -> int:
    # 4:2:0 chroma subsampling needs even dimensions.
    return max(2, value - value % 2)


def output_geometry(source_width: int, source_height: int, target_height: int | None) -> FrameGeometry:
    """Scale to ``target_height`` keeping the first frame's aspect ratio."""

    if target_height:
        width = round(target_height * (source_width / source_height))
        height = target_height
    else:
        width, height = source_width, source_height
    return FrameGeometry(
        source_width=source_width,
        source_height=source_height,
        width=_even(width),
        height=_even(height),
    )


class EncodeOrchestrator:
    """Encodes an ordered frame selection into one movie."""

    def __init__(
        self,
        *,
        output: OutputConfig,
        compression: CompressionConfig,
        timeline: Timeline,
        engine: CompressionEngine | None = None,
        open_writer: WriterFactory | None = None,
        decode_image: ImageDecoder = decode,
        on_progress: ProgressHandler | None = None,
    ) -> None:
        try:
            self._codec = resolve_codec(output.codec)
        except KeyError as exc:
            raise InvalidArgumentError(exc.args[0]) from exc
        if open_writer is None:
            open_writer = NullContainerWriter.open if output.dry_run else ContainerWriter.open
        self._output = output
        self._compression = compression.copy()
        self._timeline = timeline
        self._engine = engine or CompressionEngine()
        self._open_writer = open_writer
        self._decode = decode_image
        self._on_progress = on_progress

        self.state = OrchestratorState.IDLE
        self.counters = PipelineCounters()
        self.geometry: FrameGeometry | None = None
        self.applied_options: Mapping[str, Any] = MappingProxyType({})
        self._warned: set[str] = set()
        self._writer: Writer | None = None
        self._session: Any | None = None
        self._completed = threading.Semaphore(0)
        self._in_flight: FrameToken | None = None
        self._failure: EncodeError | None = None
        self._last_pts = -1

    def run(self, selection: Selection, discovery: DiscoveryResult) -> PipelineCounters:
        """Encode ``selection.frames`` in order and finalize the container."""

        self.counters = PipelineCounters(
            discovered=discovery.candidate_count + len(discovery.unreadable),
            timestamp_failures=len(discovery.unresolved),
            filtered_out=len(selection.filtered_out),
            decode_failures=len(discovery.unreadable),
        )
        if not selection.frames:
            self.state = OrchestratorState.FAILED
            raise NoInputError("No frames left to encode after filtering.")

        self.state = OrchestratorState.AWAITING_FIRST_FRAME
        total = discovery.candidate_count
        try:
            for candidate in selection.frames:
                self._process(candidate, total)
            self._finish(len(selection.frames))
        except BaseException:
            self._abort()
            raise
        return self.counters

    def _warn_once(self, kind: str, **fields: Any) -> None:
        if kind in self._warned:
            return
        self._warned.add(kind)
        log_event(_LOGGER, kind, level=logging.WARNING, **fields)

    def _process(self, candidate: CandidateFile, total: int) -> None:
        try:
            decoded = self._decode(candidate.path)
        except DecodeError as exc:
            self._record_unreadable(candidate, total, exc)
            return
        candidate.width, candidate.height = decoded.width, decoded.height

        first = self.geometry is None
        if first:
            self.geometry = output_geometry(decoded.width, decoded.height, self._output.height)
            if self.geometry.height > UNSAFE_HEIGHT:
                self._warn_once(
                    "unsafe_height",
                    height=self.geometry.height,
                    limit=UNSAFE_HEIGHT,
                )
        elif (decoded.width, decoded.height) != (self.geometry.source_width, self.geometry.source_height):
            log_event(
                _LOGGER,
                "geometry_mismatch",
                level=logging.WARNING,
                path=str(candidate.path),
                file_index=candidate.ordinal,
                expected=f"{self.geometry.source_width} x {self.geometry.source_height}",
                actual=f"{decoded.width} x {decoded.height}",
            )

        try:
            pixels = render_pixels(decoded, self.geometry.output_size)
        except DecodeError as exc:
            if first:
                raise EncodeError(str(exc)) from exc
            self._record_unreadable(candidate, total, exc)
            return

        if first:
            self._start_session()
        self._submit(candidate, pixels, total)

    def _record_unreadable(self, candidate: CandidateFile, total: int, exc: Exception) -> None:
        self.counters.decode_failures += 1
        log_event(
            _LOGGER,
            "frame_decode_failed",
            level=logging.WARNING,
            path=str(candidate.path),
            file_index=candidate.ordinal,
            total=total,
            error=str(exc),
        )

    def _prepare_options(self) -> Mapping[str, Any]:
        supported = self._engine.supported_options(self._codec)
        dropped = self._compression.restrict_to(supported)
        if dropped:
            log_event(
                _LOGGER,
                "compression_option_dropped",
                level=logging.WARNING,
                codec=self._codec.name,
                options=dropped,
            )
        defaults = default_options(self._timeline.fps, self._timeline.expected_duration)
        self._compression.apply_defaults(defaults, supported)
        return MappingProxyType(dict(self._compression.options))

    def _start_session(self) -> None:
        assert self.geometry is not None
        width, height = self.geometry.output_size
        fps = self._timeline.fps

        self._writer = self._open_writer(self._output.destination, self._output.container_kind)
        context = self._writer.add_video_stream(self._codec, width, height, fps)
        self.applied_options = self._prepare_options()
        self._session = self._engine.configure(
            self._codec,
            width,
            height,
            self.applied_options,
            fps=fps,
            on_complete=self._on_complete,
            context=context,
        )
        self._writer.start()
        self.state = OrchestratorState.SESSION_ACTIVE
        log_event(
            _LOGGER,
            "session_started",
            level=logging.DEBUG,
            codec=self._codec.name,
            width=width,
            height=height,
            fps=fps,
            expected_duration=self._timeline.expected_duration,
            options=dict(self.applied_options),
        )

    def _next_pts(self, candidate: CandidateFile) -> int:
        if self._timeline.scaled and candidate.timestamp is None:
            log_event(
                _LOGGER,
                "timestamp_missing",
                level=logging.ERROR,
                path=str(candidate.path),
                file_index=candidate.ordinal,
            )
            return self._last_pts + 1
        pts = self._timeline.presentation_ticks(self.counters.encoded, candidate.timestamp)
        if pts <= self._last_pts:
            log_event(
                _LOGGER,
                "timestamp_collision",
                level=logging.WARNING,
                path=str(candidate.path),
                file_index=candidate.ordinal,
                pts=pts,
            )
            return self._last_pts + 1
        return pts

    def _submit(self, candidate: CandidateFile, pixels: np.ndarray, total: int) -> None:
        pts = self._next_pts(candidate)
        token = FrameToken(ordinal=candidate.ordinal)
        self._in_flight = token
        self._session.submit(FrameSubmission(pixels=pixels, pts=pts, token=token))
        self._completed.acquire()
        self._in_flight = None
        if self._failure is not None:
            raise self._failure

        self._last_pts = pts
        self.counters.encoded += 1
        log_event(
            _LOGGER,
            "frame_encoded",
            path=str(candidate.path),
            file_index=candidate.ordinal,
            total=total,
            pts=pts,
        )
        if self._on_progress is not None:
            self._on_progress(candidate, self.counters.encoded, total)

    def _on_complete(self, completion: Completion) -> None:
        try:
            if completion.token != self._in_flight:
                self._failure = EncodeError(
                    f"Compressed frame #{completion.token.ordinal} arrived while waiting for another frame."
                )
            elif not completion.ok:
                self._failure = EncodeError(
                    f"Unable to compress frame #{completion.token.ordinal}, error: {completion.error}"
                )
            else:
                for packet in completion.packets:
                    self._writer.append(packet)
        except EncodeError as exc:
            self._failure = exc
        except Exception as exc:
            self._failure = EncodeError(f"Unable to append compressed frame to file: {exc}")
            self._failure.__cause__ = exc
        finally:
            self._completed.release()

    def _finish(self, total: int) -> None:
        if self._session is not None:
            for packet in self._session.flush():
                self._writer.append(packet)
            self._session.close()
            self._session = None

        if self._writer is not None:
            self.state = OrchestratorState.FINALIZING
            self._finalize_writer()

        if not self.counters.succeeded:
            self.state = OrchestratorState.FAILED
            raise NoInputError(f"None of the {total} input files were readable as images.")
        self.state = OrchestratorState.COMPLETED

    def _finalize_writer(self) -> None:
        outcome: list[Exception | None] = []
        finished = threading.Semaphore(0)

        def _finalized(error: Exception | None) -> None:
            outcome.append(error)
            finished.release()

        writer = self._writer
        self._writer = None
        writer.finalize(_finalized)
        finished.acquire()
        if outcome[0] is not None:
            raise EncodeError(f"Unable to complete movie: {outcome[0]}")

    def _abort(self) -> None:
        self.state = OrchestratorState.FAILED
        if self._session is not None:
            self._session.close()
            self._session = None
        if self._writer is not None:
            self._writer.discard()
            self._writer = None
