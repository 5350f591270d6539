from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from tlassemble.pipeline.stage import CandidateFile
from tlassemble.selection.ordering import natural_key, sort_candidates


def _names(candidates):
    return [candidate.path.name for candidate in candidates]


def test_natural_key_orders_digit_runs_numerically():
    names = ["img10.jpg", "img2.jpg", "IMG1.jpg", "img2a.jpg"]
    assert sorted(names, key=natural_key) == ["IMG1.jpg", "img2.jpg", "img2a.jpg", "img10.jpg"]


def test_natural_key_ignores_case_and_accents():
    assert natural_key("Écluse 2.jpg")[0] == natural_key("ecluse 2.jpg")[0]
    assert sorted(["b.jpg", "a2.jpg", "Á1.jpg"], key=natural_key) == ["Á1.jpg", "a2.jpg", "b.jpg"]


def test_sort_by_name_and_reverse():
    candidates = [CandidateFile(path=Path(name)) for name in ("f10.png", "f9.png", "f1.png")]
    assert _names(sort_candidates(candidates, "name")) == ["f1.png", "f9.png", "f10.png"]
    assert _names(sort_candidates(candidates, "name", reverse=True)) == ["f10.png", "f9.png", "f1.png"]


def test_sort_by_creation_places_unknown_last():
    a = CandidateFile(path=Path("a.jpg"), timestamp=datetime(2024, 1, 1, 12, 0, 5))
    b = CandidateFile(path=Path("b.jpg"))
    c = CandidateFile(path=Path("c.jpg"), timestamp=datetime(2024, 1, 1, 12, 0, 0))
    timestamps = {a.path: a.timestamp, c.path: c.timestamp}
    assert _names(sort_candidates([a, b, c], "creation", timestamps=timestamps)) == ["c.jpg", "a.jpg", "b.jpg"]


def test_sort_by_creation_is_stable_for_equal_times():
    moment = datetime(2024, 5, 5, 5, 5, 5)
    candidates = [CandidateFile(path=Path(name), timestamp=moment) for name in ("z.jpg", "m.jpg", "a.jpg")]
    timestamps = {candidate.path: moment for candidate in candidates}
    assert _names(sort_candidates(candidates, "creation", timestamps=timestamps)) == ["z.jpg", "m.jpg", "a.jpg"]


def test_unknown_sort_key():
    with pytest.raises(ValueError, match="Unsupported sort method"):
        sort_candidates([], "size")
