"""Trace command for memsim CLI - one statement at a time."""

import json
import sys
from pathlib import Path

import click

from memsim.cli.render import format_errors, format_events, format_summary
from memsim.runtime.config import ExecutionConfig
from memsim.runtime.driver import ExecutionDriver


@click.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("--json-output", "-j", "json_output", is_flag=True, help="Output steps as JSON")
@click.option("--back", type=click.IntRange(min=0), default=0,
              help="Step back this many times after the run finishes")
@click.option("--history", type=int, default=100, show_default=True,
              help="Number of steps kept for stepping back")
def trace_command(source, json_output, back, history):
    """Step through a program, printing what every statement did."""
    try:
        config = ExecutionConfig(history_capacity=history).validate()
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--history")

    driver = ExecutionDriver(config)
    driver.set_code(Path(source).read_text())
    lines = driver.state.lines

    trace = []
    seen_events = len(driver.state.log)
    seen_errors = len(driver.state.errors)
    while driver.step():
        state = driver.state
        trace.append({
            "step": len(trace) + 1,
            "line": state.current_line,
            "events": [e.to_dict() for e in state.log[seen_events:]],
            "errors": [e.to_dict() for e in state.errors[seen_errors:]],
        })
        seen_events = len(state.log)
        seen_errors = len(state.errors)

    rewound = 0
    for _ in range(back):
        if not driver.step_back():
            break
        rewound += 1

    snapshot = driver.snapshot()
    if json_output:
        click.echo(json.dumps({
            "steps": trace,
            "stepped_back": rewound,
            "final": snapshot,
        }, indent=2))
    else:
        if snapshot["errors"] and not trace:
            click.echo("\n".join(format_errors(snapshot["errors"])))
        for entry in trace:
            text = lines[entry["line"] - 1].strip() if 0 < entry["line"] <= len(lines) else ""
            click.echo(f"Step {entry['step']} - line {entry['line']}: {text}")
            if entry["events"]:
                click.echo("\n".join(format_events(entry["events"])))
            if entry["errors"]:
                click.echo("\n".join(format_errors(entry["errors"])))
        if rewound:
            click.echo(f"Stepped back {rewound} step(s) to line {snapshot['current_line']}")
        click.echo(format_summary(snapshot))

    if snapshot["errors"]:
        sys.exit(1)
