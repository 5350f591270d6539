"""`tlassemble codecs` command."""

from __future__ import annotations

from dataclasses import dataclass

from tlassemble.encode.codecs import CODECS, available_codecs


@dataclass(slots=True)
class CodecsCommand:
    """List the codecs accepted by `assemble --codec`."""

    all: bool = False
    """Include codecs whose encoder is missing from this installation."""


def execute(command: CodecsCommand) -> None:
    specs = list(CODECS.values()) if command.all else available_codecs()
    for spec in specs:
        print(f"{spec.name:<6} {spec.description} [{spec.encoder}]")
