"""Parsers for numeric option values carrying physical-unit suffixes.

Three grammars are understood:

* time durations: ``<number><suffix>`` where the suffix is one of
  ``w d h m s ms us µs ns ps``;
* bit quantities: ``<number>[K|k|M|G|T|P|E|Z|Y][i](b|B|)`` where ``i`` selects
  binary (1024-based) scaling and ``B`` counts bytes;
* bit rates: ``<quantity>[/<number><time-suffix>]`` where a missing divider
  implies "per second".

Every parser returns ``None`` when the text does not match its grammar, so
callers decide whether a bad value is fatal.
"""

from __future__ import annotations

from dataclasses import dataclass
import re

TIME_SUFFIXES: dict[str, float] = {
    "w": 604800.0,
    "d": 86400.0,
    "h": 3600.0,
    "m": 60.0,
    "s": 1.0,
    "ms": 0.001,
    "us": 0.000001,
    "µs": 0.000001,
    "ns": 0.000000001,
    "ps": 0.000000000001,
}

_MAGNITUDE_PREFIXES = "KMGTPEZY"

_NUMBER_PATTERN = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True, slots=True)
class BitRate:
    """An amount of data allowed over a time interval."""

    bits: float
    seconds: float = 1.0

    @property
    def bits_per_second(self) -> float:
        return self.bits / self.seconds


def split_number(text: str) -> tuple[float, str] | None:
    """Split a leading real number from its trailing suffix."""

    match = _NUMBER_PATTERN.match(text)
    if match is None:
        return None
    return float(match.group(0)), text[match.end():]


def apply_time_suffix(value: float, suffix: str, invert: bool = False) -> float | None:
    """Scale ``value`` by the seconds-multiplier named by ``suffix``.

    With ``invert`` the value is divided instead, which converts a per-unit
    rate (e.g. bits per millisecond) into a per-second one.
    """

    multiplier = TIME_SUFFIXES.get(suffix)
    if multiplier is None:
        return None
    if invert:
        return value / multiplier
    return value * multiplier


def apply_bit_suffix(value: float, suffix: str) -> float | None:
    """Scale ``value`` to bits according to a magnitude/unit suffix."""

    rest = suffix
    if rest and (rest[0] == "k" or rest[0] in _MAGNITUDE_PREFIXES):
        factor = _MAGNITUDE_PREFIXES.index(rest[0].upper()) + 1
        if rest[1:2] == "i":
            value *= 2.0 ** (factor * 10)
            rest = rest[2:]
        else:
            value *= 10.0 ** (factor * 3)
            rest = rest[1:]

    if rest in ("", "b"):
        return value
    if rest == "B":
        return value * 8
    return None


def bits_per_interval(value: float, suffix: str, interval: float = 1.0) -> BitRate | None:
    """Resolve a ``quantity[/scalar time]`` suffix into bits over seconds.

    The time suffix after ``/`` scales the interval length, so ``1Mb/500ms``
    is one megabit per half second. The suffix is not applied inverted
    as it is for per-unit rates; inverted, ``500ms`` would mean 500000
    seconds.
    """

    quantity, divider, period = suffix.partition("/")
    bits = apply_bit_suffix(value, quantity)
    if bits is None:
        return None
    if not divider:
        return BitRate(bits=bits, seconds=interval)

    split = split_number(period)
    if split is None:
        scalar, unit = 1.0, period
    else:
        scalar, unit = split
    if not unit:
        # A bare scalar counts seconds.
        return BitRate(bits=bits, seconds=interval * scalar)

    seconds = apply_time_suffix(interval * scalar, unit)
    if seconds is None or seconds <= 0:
        return None
    return BitRate(bits=bits, seconds=seconds)


def parse_duration(text: str) -> float | None:
    """Parse ``"1.5m"`` style durations into seconds."""

    split = split_number(text)
    if split is None:
        return None
    value, suffix = split
    return apply_time_suffix(value, suffix)


def parse_bit_quantity(text: str) -> BitRate | None:
    """Parse a bit quantity, optionally over an interval (``"500kb/2s"``)."""

    if not text.strip():
        return None
    split = split_number(text)
    if split is None:
        # "Mb" on its own means one megabit.
        split = (1.0, text.strip())
    value, suffix = split
    return bits_per_interval(value, suffix)


def parse_bit_rate(text: str) -> float | None:
    """Parse a data-rate expression into bits per second."""

    rate = parse_bit_quantity(text)
    if rate is None:
        return None
    return rate.bits_per_second
