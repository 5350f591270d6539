"""tlassemble package entrypoint."""

from tlassemble.cli.app import main as _cli_main


def main() -> None:
    """Run the tlassemble CLI."""
    _cli_main()
