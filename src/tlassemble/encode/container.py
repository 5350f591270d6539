"""Movie container writers."""

from __future__ import annotations

from collections.abc import Callable
import logging
from pathlib import Path
import threading
from typing import Any

import av
from av.error import FFmpegError

from tlassemble.encode.codecs import CodecSpec
from tlassemble.encode.engine import frame_rate
from tlassemble.errors import EncodeError
from tlassemble.observability.logging import get_logger, log_event

_LOGGER = get_logger("tlassemble.container")

# Container kind -> libav muxer name.
CONTAINER_FORMATS: dict[str, str] = {
    "mov": "mov",
    "mp4": "mp4",
    "m4v": "ipod",
}
DEFAULT_CONTAINER = "mov"

FinalizeHandler = Callable[[Exception | None], None]


def container_kind_for(destination: Path) -> str:
    """Pick a container kind from the destination's extension."""

    kind = destination.suffix.lower().lstrip(".")
    if kind in CONTAINER_FORMATS:
        return kind
    return DEFAULT_CONTAINER


class ContainerWriter:
    """Muxes compressed samples into a movie file."""

    def __init__(self, container: Any, destination: Path) -> None:
        self._container = container
        self._stream: Any | None = None
        self.destination = destination
        self.samples_written = 0

    @classmethod
    def open(cls, destination: Path, kind: str) -> ContainerWriter:
        muxer = CONTAINER_FORMATS.get(kind)
        if muxer is None:
            raise EncodeError(f"Unsupported file type \"{kind}\".")
        try:
            container = av.open(str(destination), mode="w", format=muxer)
        except (FFmpegError, OSError, ValueError) as exc:
            raise EncodeError(f"Unable to initialize container writer: {exc}") from exc
        return cls(container, destination)

    def add_video_stream(self, codec: CodecSpec, width: int, height: int, fps: float) -> Any:
        """Add the single video track and return its codec context."""

        try:
            stream = self._container.add_stream(codec.encoder, rate=frame_rate(fps))
            stream.width = width
            stream.height = height
            stream.time_base = codec.time_base
        except (FFmpegError, ValueError) as exc:
            raise EncodeError(f"Unable to initialize video track: {exc}") from exc
        self._stream = stream
        return stream.codec_context

    def start(self) -> None:
        try:
            self._container.start_encoding()
        except (FFmpegError, OSError, ValueError) as exc:
            raise EncodeError(f"Unable to start writing movie file: {exc}") from exc

    def append(self, packet: Any) -> None:
        """Append one compressed sample; any failure leaves the file unusable."""

        if self._stream is None:
            raise EncodeError("Container has no video track to append to.")
        try:
            packet.stream = self._stream
            self._container.mux(packet)
        except (FFmpegError, OSError, ValueError) as exc:
            raise EncodeError(f"Unable to append compressed frame to file: {exc}") from exc
        self.samples_written += 1

    def finalize(self, on_complete: FinalizeHandler) -> None:
        """Write the trailer on a background thread and report the outcome."""

        def _close() -> None:
            try:
                self._container.close()
            except (FFmpegError, OSError, ValueError) as exc:
                on_complete(exc)
                return
            on_complete(None)

        threading.Thread(target=_close, name="tlassemble-finalize", daemon=True).start()

    def discard(self) -> None:
        """Abandon a partially written file."""

        try:
            self._container.close()
        except (FFmpegError, OSError, ValueError) as exc:
            log_event(
                _LOGGER,
                "container_close_failed",
                level=logging.WARNING,
                path=str(self.destination),
                error=str(exc),
            )
        self.destination.unlink(missing_ok=True)


class NullContainerWriter:
    """Stands in for a real writer during dry runs; nothing touches disk."""

    def __init__(self, destination: Path) -> None:
        self.destination = destination
        self.samples_written = 0

    @classmethod
    def open(cls, destination: Path, kind: str) -> NullContainerWriter:
        return cls(destination)

    def add_video_stream(self, codec: CodecSpec, width: int, height: int, fps: float) -> None:
        return None

    def start(self) -> None:
        pass

    def append(self, packet: Any) -> None:
        self.samples_written += 1

    def finalize(self, on_complete: FinalizeHandler) -> None:
        on_complete(None)

    def discard(self) -> None:
        pass
