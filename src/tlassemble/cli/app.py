"""Tyro CLI application entrypoint."""

from __future__ import annotations

from typing import Annotated

import tyro

from tlassemble.cli import commands_assemble, commands_codecs


TopLevelCommand = Annotated[
    commands_assemble.AssembleCommand,
    tyro.conf.subcommand(name="assemble"),
] | Annotated[
    commands_codecs.CodecsCommand,
    tyro.conf.subcommand(name="codecs"),
]


def dispatch(command: TopLevelCommand) -> None:
    """Dispatch parsed top-level command object."""

    if isinstance(command, commands_assemble.AssembleCommand):
        commands_assemble.execute(command)
        return
    if isinstance(command, commands_codecs.CodecsCommand):
        commands_codecs.execute(command)
        return
    raise TypeError(f"Unsupported command type: {type(command).__name__}")


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run requested command."""

    command = tyro.cli(TopLevelCommand, args=argv)
    dispatch(command)
