from __future__ import annotations

from fractions import Fraction

import pytest

from tlassemble.config import schema
from tlassemble.config.schema import CompressionConfig
from tlassemble.config.units import BitRate
from tlassemble.encode.codecs import CODECS, default_options, resolve_codec, translate


def test_set_is_last_write_wins_and_limits_accumulate():
    config = CompressionConfig()
    config.set(schema.QUALITY, 0.2)
    config.set(schema.QUALITY, 0.9)
    config.add_rate_limit(BitRate(bits=1e6, seconds=1.0))
    config.add_rate_limit(BitRate(bits=4e6, seconds=2.0))

    assert config.get(schema.QUALITY) == 0.9
    assert config.get(schema.DATA_RATE_LIMITS) == [(1e6, 1.0), (4e6, 2.0)]


def test_restrict_and_defaults():
    config = CompressionConfig()
    config.set(schema.ENTROPY_MODE, "cavlc")
    config.set(schema.MORE_FRAMES_AFTER_END, True)
    supported = CODECS["h264"].supported_options

    assert config.restrict_to(supported) == [schema.MORE_FRAMES_AFTER_END]
    applied = config.apply_defaults(default_options(24.0, 10.0), supported)

    assert config.get(schema.ENTROPY_MODE) == "cavlc"
    assert schema.ENTROPY_MODE not in applied
    assert applied == sorted([schema.EXPECTED_FRAME_RATE, schema.PROFILE_LEVEL, schema.REAL_TIME])


def test_copy_is_independent():
    config = CompressionConfig()
    config.add_rate_limit(BitRate(bits=8.0))
    copied = config.copy()
    copied.add_rate_limit(BitRate(bits=16.0))
    assert len(config.get(schema.DATA_RATE_LIMITS)) == 1


def test_resolve_codec():
    assert resolve_codec(" H264 ").encoder == "libx264"
    with pytest.raises(KeyError, match="Supported codecs are"):
        resolve_codec("prores")


def test_translate_quality_and_rate_limits():
    options = {
        schema.QUALITY: 1.0,
        schema.AVERAGE_BIT_RATE: 2.5e6,
        schema.DATA_RATE_LIMITS: [(4e6, 1.0), (6e6, 2.0)],
    }
    settings = translate(CODECS["h264"], options, 30.0)

    assert settings.options["crf"] == "0"
    assert settings.bit_rate == 2_500_000
    assert settings.options["maxrate"] == "3000000"
    assert settings.options["bufsize"] == "6000000"


def test_translate_key_frames():
    settings = translate(
        CODECS["h264"],
        {schema.MAX_KEY_FRAME_INTERVAL: 100, schema.MAX_KEY_FRAME_INTERVAL_DURATION: 2.0},
        24.0,
    )
    assert settings.gop_size == 48

    intra = translate(CODECS["mpeg4"], {schema.ALLOW_TEMPORAL_COMPRESSION: False}, 24.0)
    assert (intra.gop_size, intra.max_b_frames) == (1, 0)


def test_translate_x264_private_options():
    options = {
        schema.ENTROPY_MODE: "cavlc",
        schema.PROFILE_LEVEL: "high",
        schema.MAX_FRAME_DELAY_COUNT: 0,
        schema.REAL_TIME: False,
        schema.ALLOW_FRAME_REORDERING: False,
    }
    settings = translate(CODECS["h264"], options, 30.0)
    assert settings.options == {"coder": "cavlc", "profile": "high", "rc-lookahead": "0"}
    assert settings.max_b_frames == 0

    assert translate(CODECS["hevc"], options, 30.0).options == {}


def test_mpeg4_uses_a_clock_it_can_open():
    assert CODECS["mpeg4"].time_base.denominator <= 65535
    assert CODECS["h264"].time_base == Fraction(1, 90_000)
