from __future__ import annotations

import errno
from pathlib import Path

import pytest

from tlassemble.cli.commands_assemble import AssembleCommand
from tlassemble.config import schema
from tlassemble.config.loader import build_assembly_config, parse_key_frame_period
from tlassemble.errors import DestinationError, InvalidArgumentError


@pytest.fixture
def paths(tmp_path) -> list[Path]:
    source = tmp_path / "frames"
    source.mkdir()
    return [source, tmp_path / "movie.mov"]


def test_defaults(paths):
    config = build_assembly_config(AssembleCommand(paths=paths))

    assert config.sources == paths[:1]
    assert config.output.destination == paths[1]
    assert config.output.container_kind == "mov"
    assert config.output.codec == "h264"
    assert config.selection.sort == "creation"
    assert config.timeline.fps is None
    assert config.compression.options == {}
    assert config.needs_timestamps


def test_container_kind_from_extension_and_flag(tmp_path, paths):
    m4v = build_assembly_config(AssembleCommand(paths=[paths[0], tmp_path / "clip.M4V"]))
    assert m4v.output.container_kind == "m4v"

    explicit = build_assembly_config(AssembleCommand(paths=paths, file_type=".MP4"))
    assert explicit.output.container_kind == "mp4"

    with pytest.raises(InvalidArgumentError, match="Unsupported file type"):
        build_assembly_config(AssembleCommand(paths=paths, file_type="avi"))


def test_destination_rules(tmp_path, paths):
    existing = tmp_path / "exists.mov"
    existing.write_bytes(b"")
    with pytest.raises(DestinationError, match="already exists"):
        build_assembly_config(AssembleCommand(paths=[paths[0], existing]))
    with pytest.raises(DestinationError, match="does not exist"):
        build_assembly_config(AssembleCommand(paths=[paths[0], tmp_path / "nowhere" / "m.mov"]))


def test_requires_source_and_destination(paths):
    with pytest.raises(InvalidArgumentError) as excinfo:
        build_assembly_config(AssembleCommand(paths=paths[:1]))
    assert excinfo.value.exit_code == errno.EINVAL


@pytest.mark.parametrize(
    "overrides",
    [
        {"fps": 0.0},
        {"fps": -24.0},
        {"speed": 0.0},
        {"height": 0},
        {"frame_limit": -1},
        {"quality": 1.5},
        {"codec": "prores"},
        {"entropy_mode": "huffman"},
        {"max_frame_delay": -1},
        {"average_bit_rate": "lots"},
        {"average_bit_rate": ""},
        {"rate_limit": ["10Mb/parsec"]},
        {"filter": ["model"]},
        {"max_key_frame_period": "soon"},
    ],
)
def test_invalid_values(paths, overrides):
    with pytest.raises(InvalidArgumentError):
        build_assembly_config(AssembleCommand(paths=paths, **overrides))


def test_compression_options(paths):
    command = AssembleCommand(
        paths=paths,
        quality=0.75,
        average_bit_rate="5Mb",
        rate_limit=["20Mb/2s", "b/10s"],
        max_key_frame_period="48",
        key_frames_only=True,
        strict_frame_ordering=True,
        assume_preceding_frames=True,
        entropy_mode="CAVLC",
        max_frame_delay=0,
    )
    options = build_assembly_config(command).compression.options

    assert options[schema.QUALITY] == 0.75
    assert options[schema.AVERAGE_BIT_RATE] == pytest.approx(5e6)
    assert options[schema.DATA_RATE_LIMITS] == [(2e7, 2.0), (1.0, 10.0)]
    assert options[schema.MAX_KEY_FRAME_INTERVAL] == 48
    assert options[schema.ALLOW_TEMPORAL_COMPRESSION] is False
    assert options[schema.ALLOW_FRAME_REORDERING] is False
    assert options[schema.MORE_FRAMES_BEFORE_START] is True
    assert schema.MORE_FRAMES_AFTER_END not in options
    assert options[schema.ENTROPY_MODE] == "cavlc"
    assert options[schema.MAX_FRAME_DELAY_COUNT] == 0


def test_selection_and_timeline(paths):
    command = AssembleCommand(
        paths=paths,
        sort="name",
        reverse=True,
        filter=["Model = X100V", "ISO=200"],
        frame_limit=10,
        fps=24.0,
        speed=60.0,
        height=720,
        dryrun=True,
    )
    config = build_assembly_config(command)

    assert config.selection.filters == {"model": "X100V", "iso": "200"}
    assert config.selection.reverse
    assert config.selection.frame_limit == 10
    assert config.timeline.fps == 24.0
    assert config.timeline.speed == 60.0
    assert config.output.height == 720
    assert config.output.dry_run
    assert config.needs_timestamps


def test_key_frame_period_forms():
    assert parse_key_frame_period("24") == (schema.MAX_KEY_FRAME_INTERVAL, 24)
    assert parse_key_frame_period("2s") == (schema.MAX_KEY_FRAME_INTERVAL_DURATION, 2.0)
    assert parse_key_frame_period("500ms") == (schema.MAX_KEY_FRAME_INTERVAL_DURATION, 0.5)
    assert parse_key_frame_period("2.5") == (schema.MAX_KEY_FRAME_INTERVAL, 3)
    assert parse_key_frame_period("12.2") == (schema.MAX_KEY_FRAME_INTERVAL, 12)
    with pytest.raises(InvalidArgumentError):
        parse_key_frame_period("0")
    with pytest.raises(InvalidArgumentError):
        parse_key_frame_period("0.4")


def test_home_directory_is_expanded(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    (tmp_path / "frames").mkdir()
    config = build_assembly_config(AssembleCommand(paths=[Path("~/frames"), Path("~/out.mp4")]))
    assert config.sources == [tmp_path / "frames"]
    assert config.output.destination == tmp_path / "out.mp4"
    assert config.output.container_kind == "mp4"
