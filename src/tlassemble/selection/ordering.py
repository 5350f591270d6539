"""Candidate ordering by file name or capture time."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
import logging
from pathlib import Path
import re
import unicodedata

from tlassemble.config.schema import SortKey
from tlassemble.observability.logging import get_logger, log_event
from tlassemble.pipeline.stage import CandidateFile

_LOGGER = get_logger("tlassemble.ordering")

SORT_KEYS: tuple[str, ...] = ("name", "creation")

_DIGITS = re.compile(r"(\d+)")


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def natural_key(name: str) -> tuple:
    """Case-, accent- and width-insensitive key that orders digit runs numerically."""

    parts: list[tuple] = []
    for chunk in _DIGITS.split(_fold(name)):
        if not chunk:
            continue
        if chunk.isdecimal():
            parts.append((0, int(chunk)))
        else:
            parts.append((1, chunk))
    # Raw name last so distinct names never compare equal.
    return (tuple(parts), name)


def _creation_key(candidate: CandidateFile, timestamps: Mapping[Path, datetime]) -> tuple:
    timestamp = timestamps.get(candidate.path, candidate.timestamp)
    if timestamp is None:
        log_event(
            _LOGGER,
            "creation_date_unknown",
            level=logging.WARNING,
            path=str(candidate.path),
        )
        return (1,)
    return (0, timestamp)


def sort_candidates(
    candidates: Sequence[CandidateFile],
    key: SortKey,
    *,
    reverse: bool = False,
    timestamps: Mapping[Path, datetime] | None = None,
) -> list[CandidateFile]:
    """Return ``candidates`` stably sorted by ``key``.

    Candidates without a capture time order after every timestamped one;
    ``reverse`` flips that along with everything else.
    """

    if key == "name":
        return sorted(candidates, key=lambda item: natural_key(item.path.name), reverse=reverse)
    if key == "creation":
        known = timestamps or {}
        return sorted(candidates, key=lambda item: _creation_key(item, known), reverse=reverse)
    raise ValueError(f"Unsupported sort method \"{key}\". Supported methods are: {' '.join(SORT_KEYS)}")
