"""flowrun resolve — Evaluate one expression against a context file.

The context file is JSON or YAML shaped like a ResolutionContext:
``nodes``, ``vars``, ``config``, ``input``, ``credentials`` and ``system``.
"""

import json
from pathlib import Path

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

console = Console()


def _load_context(path: Path):
    from flowrun.types import ResolutionContext

    if not path.exists():
        console.print(f"[red]Context file not found:[/red] {path}")
        raise typer.Exit(1)

    text = path.read_text()
    if path.suffix.lower() == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    try:
        return ResolutionContext.model_validate(raw)
    except ValidationError as exc:
        console.print(f"[red]Invalid context:[/red] {escape(str(exc))}")
        raise typer.Exit(1)


def resolve_expression(
    expression: str = typer.Argument(..., help="Expression, e.g. '{{nodes.nd_a.output.id}}'"),
    context: Path = typer.Option(..., "--context", "-c", help="JSON or YAML context file"),
):
    """Resolve EXPRESSION and print the result as JSON.

    Prints ``undefined`` when the path does not exist.

    Example:
        flowrun resolve '{{vars.items | length}}' --context ctx.yaml
    """
    from flowrun.exceptions import ResolutionError
    from flowrun.expressions import is_absent, resolve_value
    from flowrun.expressions.transforms import to_json

    ctx = _load_context(context)
    try:
        value = resolve_value(expression, ctx)
    except ResolutionError as exc:
        console.print(f"[red]{type(exc).__name__}:[/red] {escape(str(exc))}")
        raise typer.Exit(1)

    if is_absent(value):
        typer.echo("undefined")
    else:
        typer.echo(to_json(value))
