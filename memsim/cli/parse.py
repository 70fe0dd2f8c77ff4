"""Parse command for memsim CLI - inspect the syntax tree."""

import json
import sys
from pathlib import Path

import click

from memsim.lang.ast import ASTNode
from memsim.lang.parser import Parser, ParseError


def _format_tree(node: ASTNode, depth: int = 0) -> list:
    payload = ", ".join(f"{k}={v!r}" for k, v in vars(node.payload).items())
    lines = [f"{'  ' * depth}{node.kind.value} (line {node.line}){' ' + payload if payload else ''}"]
    for child in node.children:
        lines.extend(_format_tree(child, depth + 1))
    return lines


@click.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("--json-output", "-j", "json_output", is_flag=True, help="Output the AST as JSON")
def parse_command(source, json_output):
    """Parse a program and print its syntax tree."""
    code = Path(source).read_text()
    try:
        statements = Parser().parse(code)
    except ParseError as e:
        click.echo(f"Parse error: {e}", err=True)
        sys.exit(1)

    if json_output:
        click.echo(json.dumps([s.to_dict() for s in statements], indent=2))
    else:
        for stmt in statements:
            click.echo("\n".join(_format_tree(stmt)))
