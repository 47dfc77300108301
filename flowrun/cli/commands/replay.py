"""flowrun replay — Step-by-step replay of an exported transition log.

Reads a JSON array of transitions (as produced by ``TransitionLog.export``)
and shows each step, the final execution status and every node's outcome.
"""

import json
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich import box

console = Console()

_STATUS_COLORS = {
    "completed": "green",
    "failed": "red",
    "timeout": "red",
    "cancelled": "yellow",
    "skipped": "yellow",
    "running": "blue",
    "queued": "cyan",
    "pending": "white",
}


def _colored(status: str) -> str:
    color = _STATUS_COLORS.get(status, "white")
    return f"[{color}]{status}[/{color}]"


def replay_log(
    path: Path = typer.Argument(..., help="JSON file with the exported transition log"),
    steps: bool = typer.Option(True, "--steps/--summary", help="Show every step or just the summary"),
):
    """Replay a transition log and print the reconstructed history.

    Exits with status 1 if the log is out of order or contains a change
    the transition tables do not allow.

    Example:
        flowrun replay ex_abc123.json
    """
    from flowrun.core.replay import replay_transitions
    from flowrun.exceptions import InvalidTransition

    if not path.exists():
        console.print(f"[red]Log file not found:[/red] {path}")
        raise typer.Exit(1)

    entries = json.loads(path.read_text())
    if not isinstance(entries, list):
        console.print("[red]Expected a JSON array of transitions[/red]")
        raise typer.Exit(1)

    try:
        history = replay_transitions(entries)
    except ValidationError as exc:
        console.print(f"[red]Malformed transition:[/red] {escape(str(exc))}")
        raise typer.Exit(1)
    except InvalidTransition as exc:
        console.print(f"[red]Replay rejected:[/red] {escape(str(exc))}")
        raise typer.Exit(1)

    console.print()
    console.print(Panel(
        f"[bold]Execution:[/bold] [dim]{history.execution_id or '-'}[/dim]\n"
        f"[bold]Status:[/bold]    {_colored(history.status.value)}\n"
        f"[bold]Steps:[/bold]     {len(history.steps)}",
        title="[bold blue]flowrun Replay[/bold blue]",
        border_style="blue",
    ))

    if steps:
        console.print(Rule("[bold]Steps[/bold]", style="dim"))
        for t in history.steps:
            who = t.node_id or "execution"
            line = f"[dim]#{t.id}[/dim] {who}: {_colored(t.from_state)} → {_colored(t.to_state)}"
            if t.reason:
                line += f"  [dim]{t.reason[:80]}[/dim]"
            console.print(line)

    if history.nodes:
        table = Table(box=box.SIMPLE, header_style="bold dim")
        table.add_column("Node", style="cyan")
        table.add_column("Loop", style="dim")
        table.add_column("Iteration", justify="right")
        table.add_column("Status")
        table.add_column("Attempts", justify="right")
        for node in history.nodes.values():
            table.add_row(
                node.node_id,
                node.loop_node_id or "-",
                "-" if node.iteration_index is None else str(node.iteration_index),
                _colored(node.status.value),
                str(node.attempts),
            )
        console.print(table)
