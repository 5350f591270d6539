"""Shared fixtures: in-memory stand-ins for the compression engine and container."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from PIL import Image
import pytest

from tlassemble.encode.engine import Completion
from tlassemble.ingest.decoder import DecodedImage, DecodeError


class FakeSession:
    def __init__(self, on_complete, fail_on: set[int], flush_error: Exception | None = None) -> None:
        self.on_complete = on_complete
        self.fail_on = fail_on
        self.flush_error = flush_error
        self.submissions: list[Any] = []
        self.closed = False

    def submit(self, submission) -> None:
        self.submissions.append(submission)
        ordinal = submission.token.ordinal
        if ordinal in self.fail_on:
            self.on_complete(Completion(token=submission.token, error=RuntimeError("encoder exploded")))
            return
        self.on_complete(Completion(token=submission.token, packets=[f"packet-{ordinal}"]))

    def flush(self) -> list[str]:
        if self.flush_error is not None:
            raise self.flush_error
        return ["tail"]

    def close(self) -> None:
        self.closed = True


class FakeEngine:
    def __init__(self, fail_on: set[int] | None = None, flush_error: Exception | None = None) -> None:
        self.fail_on = fail_on or set()
        self.flush_error = flush_error
        self.session: FakeSession | None = None
        self.configured: dict[str, Any] = {}

    def supported_options(self, codec):
        return codec.supported_options

    def configure(self, codec, width, height, options, *, fps, on_complete, context=None):
        self.configured = {
            "codec": codec.name,
            "width": width,
            "height": height,
            "options": dict(options),
            "fps": fps,
        }
        self.session = FakeSession(on_complete, self.fail_on, self.flush_error)
        return self.session


class FakeWriter:
    def __init__(self, destination: Path, kind: str, append_error: Exception | None = None) -> None:
        self.destination = destination
        self.kind = kind
        self.append_error = append_error
        self.packets: list[Any] = []
        self.started = False
        self.finalized = False
        self.discarded = False

    def add_video_stream(self, codec, width, height, fps):
        return None

    def start(self) -> None:
        self.started = True

    def append(self, packet) -> None:
        if self.append_error is not None:
            raise self.append_error
        self.packets.append(packet)

    def finalize(self, on_complete) -> None:
        self.finalized = True
        on_complete(None)

    def discard(self) -> None:
        self.discarded = True


class WriterFactory:
    def __init__(self, append_error: Exception | None = None) -> None:
        self.append_error = append_error
        self.writers: list[FakeWriter] = []

    def __call__(self, destination: Path, kind: str) -> FakeWriter:
        writer = FakeWriter(destination, kind, append_error=self.append_error)
        self.writers.append(writer)
        return writer

    @property
    def writer(self) -> FakeWriter:
        assert len(self.writers) == 1
        return self.writers[0]


def fake_decoder(sizes: dict[str, tuple[int, int]] | None = None, default: tuple[int, int] = (8, 6)):
    """Decode any path to a solid image; names containing 'bad' fail."""

    sizes = sizes or {}

    def _decode(path: Path) -> DecodedImage:
        if "bad" in path.name:
            raise DecodeError(f"Unable to render \"{path}\"")
        size = sizes.get(path.name, default)
        return DecodedImage(path=path, image=Image.new("RGB", size, (10, 20, 30)))

    return _decode


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def writers() -> WriterFactory:
    return WriterFactory()


def write_image(path: Path, size: tuple[int, int] = (8, 6)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, (200, 100, 50)).save(path)
    return path
