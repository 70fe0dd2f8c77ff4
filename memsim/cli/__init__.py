"""memsim CLI Package - click command group"""

import logging

import click

from memsim import __version__
from memsim.cli.run import run_command
from memsim.cli.trace import trace_command
from memsim.cli.parse import parse_command


@click.group()
@click.version_option(__version__, prog_name="memsim")
@click.option("--verbose", "-v", is_flag=True, help="Log interpreter activity to stderr")
def main(verbose):
    """memsim - step through C snippets and watch memory-safety bugs happen."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )


main.add_command(run_command, "run")
main.add_command(trace_command, "trace")
main.add_command(parse_command, "parse")

__all__ = [
    "main",
    "run_command",
    "trace_command",
    "parse_command",
]
