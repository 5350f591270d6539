"""Round trips through the real libav encoders and muxers."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import av
from PIL import Image
import pytest

from tlassemble.config.schema import CompressionConfig, OutputConfig
from tlassemble.encode.codecs import CODECS, available_codecs
from tlassemble.encode.container import ContainerWriter
from tlassemble.ingest.decoder import DecodedImage
from tlassemble.ingest.scanner import DiscoveryResult
from tlassemble.pipeline.orchestrator import EncodeOrchestrator
from tlassemble.pipeline.stage import CandidateFile
from tlassemble.pipeline.timeline import Timeline
from tlassemble.selection.engine import Selection

AVAILABLE = {spec.name for spec in available_codecs()}
T0 = datetime(2024, 6, 1, 8, 0, 0)


def _require(codec: str) -> None:
    if codec not in AVAILABLE:
        pytest.skip(f"{CODECS[codec].encoder} is not built into this libav")


def _decode(path: Path) -> DecodedImage:
    shade = int(path.stem) * 40
    return DecodedImage(path=path, image=Image.new("RGB", (128, 96), (shade, 255 - shade, 90)))


def _frames(count: int, timestamps: list[datetime] | None = None) -> list[CandidateFile]:
    return [
        CandidateFile(
            path=Path(f"/in/{index}.png"),
            ordinal=index + 1,
            timestamp=timestamps[index] if timestamps else None,
        )
        for index in range(count)
    ]


def _assemble(destination: Path, codec: str, kind: str, timeline: Timeline, frames, *, dry_run: bool = False):
    orchestrator = EncodeOrchestrator(
        output=OutputConfig(destination=destination, container_kind=kind, codec=codec, dry_run=dry_run),
        compression=CompressionConfig(),
        timeline=timeline,
        decode_image=_decode,
    )
    return orchestrator.run(Selection(frames=frames), DiscoveryResult(candidates=list(frames)))


def _frame_times(path: Path) -> list[float]:
    with av.open(str(path)) as container:
        stream = container.streams.video[0]
        return sorted(float(frame.time) for frame in container.decode(stream))


CASES = [(name, "mov") for name in CODECS] + [("h264", "mp4"), ("h264", "m4v"), ("hevc", "mp4")]


@pytest.mark.parametrize(("codec", "kind"), CASES)
def test_every_codec_writes_a_playable_movie(tmp_path, codec, kind):
    _require(codec)
    destination = tmp_path / f"movie.{kind}"

    counters = _assemble(destination, codec, kind, Timeline(fps=10.0, expected_duration=0.4), _frames(4))

    assert counters.encoded == 4
    assert _frame_times(destination) == pytest.approx([0.0, 0.1, 0.2, 0.3], abs=1e-3)


@pytest.mark.parametrize("codec", ["h264", "mpeg4"])
def test_real_time_spacing_survives_muxing(tmp_path, codec):
    _require(codec)
    destination = tmp_path / "speed.mov"
    stamps = [T0, T0 + timedelta(seconds=10), T0 + timedelta(seconds=20)]
    timeline = Timeline(fps=0.3, expected_duration=10.0, speed=2.0, earliest=T0)

    _assemble(destination, codec, "mov", timeline, _frames(3, stamps))

    assert _frame_times(destination) == pytest.approx([0.0, 5.0, 10.0], abs=1e-3)


def test_dry_run_encodes_without_a_file(tmp_path):
    _require("mpeg4")
    destination = tmp_path / "never.mov"

    counters = _assemble(
        destination, "mpeg4", "mov", Timeline(fps=10.0, expected_duration=0.2), _frames(2), dry_run=True
    )

    assert counters.encoded == 2
    assert not destination.exists()


def test_discard_removes_partial_file(tmp_path):
    destination = tmp_path / "partial.mov"
    writer = ContainerWriter.open(destination, "mov")
    writer.add_video_stream(CODECS["mjpeg"], 64, 48, 10.0)
    writer.start()
    assert destination.exists()

    writer.discard()

    assert not destination.exists()
