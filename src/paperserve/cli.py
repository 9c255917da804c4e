"""Command-line interface for paperserve.

Subcommands live in :mod:`paperserve.cli_commands`; ``--log-level`` applies
to all of them, and ``serve`` falls back to the level in its settings file.
"""

from __future__ import annotations

import logging

import click

from paperserve import __version__

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Install a root handler at *level* unless one is already configured."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


@click.group()
@click.version_option(version=__version__, prog_name="paperserve")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level for every command.",
)
def main(log_level: str | None) -> None:
    """paperserve: MCP tools and arXiv summaries over HTTP."""
    if log_level is not None:
        configure_logging(log_level)


from paperserve.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
