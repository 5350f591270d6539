"""Metadata filters of the form ``property=value``."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from tlassemble.ingest.metadata import MetadataNode


@dataclass(frozen=True, slots=True)
class FilterSpec:
    """Required properties, keyed by lowercased name."""

    constraints: Mapping[str, str] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.constraints)

    def __len__(self) -> int:
        return len(self.constraints)

    @classmethod
    def parse(cls, items: Iterable[str]) -> FilterSpec:
        """Build a spec from ``"key = value"`` strings; later keys win."""

        constraints: dict[str, str] = {}
        for item in items:
            pair = item.split("=")
            if len(pair) != 2:
                raise ValueError(
                    f"Unable to parse filter argument \"{item}\" - expected something like 'property = value'."
                )
            constraints[pair[0].strip().lower()] = pair[1].strip()
        return cls(constraints=constraints)


def _same(expected: str, actual: object) -> bool:
    return expected.casefold() == str(actual).casefold()


def matched_keys(metadata: MetadataNode, spec: FilterSpec) -> set[str]:
    """Return the filter keys satisfied anywhere in ``metadata``."""

    matches: set[str] = set()
    pending: list[MetadataNode] = []
    current: MetadataNode | None = metadata
    while current is not None and len(matches) < len(spec):
        for name, value in current:
            if isinstance(value, MetadataNode):
                pending.append(value)
                continue
            key = name.lower()
            expected = spec.constraints.get(key)
            if expected is not None and _same(expected, value):
                matches.add(key)
        current = pending.pop() if pending else None
    return matches


def matches(metadata: MetadataNode, spec: FilterSpec) -> bool:
    """True when every constraint in ``spec`` is satisfied by ``metadata``."""

    if not spec:
        return True
    return len(matched_keys(metadata, spec)) == len(spec)
