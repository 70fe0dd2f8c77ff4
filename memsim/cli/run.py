"""Run command for memsim CLI."""

import json
import sys
from pathlib import Path

import click

from memsim.cli.render import format_events, format_summary
from memsim.runtime.config import ExecutionConfig
from memsim.runtime.driver import ExecutionDriver


@click.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("--json-output", "-j", "json_output", is_flag=True, help="Output the final snapshot as JSON")
@click.option("--max-iterations", type=int, default=1000, show_default=True,
              help="Loop iterations before a loop is reported as infinite")
@click.option("--log/--no-log", "show_log", default=False, help="Print the event log")
def run_command(source, json_output, max_iterations, show_log):
    """Execute a program to completion and report memory errors."""
    try:
        config = ExecutionConfig(max_loop_iterations=max_iterations).validate()
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--max-iterations")

    code = Path(source).read_text()
    driver = ExecutionDriver(config)
    driver.set_code(code)
    steps = driver.run_to_end()
    snapshot = driver.snapshot()

    if json_output:
        snapshot["steps"] = steps
        click.echo(json.dumps(snapshot, indent=2))
    else:
        click.echo(f"Executed {steps} step(s) of {Path(source).name}")
        if show_log:
            click.echo("Event log:")
            click.echo("\n".join(format_events(snapshot["log"])))
        click.echo(format_summary(snapshot))

    if snapshot["errors"]:
        sys.exit(1)
