"""flowrun transitions — Print the allowed status transitions."""

import typer
from rich.console import Console
from rich.table import Table
from rich import box

console = Console()


def transitions_table(
    scope: str = typer.Option("all", "--scope", "-s", help="execution, node, or all"),
):
    """Show which status changes the tracker accepts.

    Example:
        flowrun transitions --scope node
    """
    from flowrun.core.transitions import EXECUTION_TRANSITIONS, NODE_TRANSITIONS

    tables = {"execution": EXECUTION_TRANSITIONS, "node": NODE_TRANSITIONS}
    if scope != "all" and scope not in tables:
        console.print(f"[red]Unknown scope:[/red] {scope} (expected execution, node, or all)")
        raise typer.Exit(1)

    for name, mapping in tables.items():
        if scope not in ("all", name):
            continue
        table = Table(
            box=box.ROUNDED,
            header_style="bold dim",
            title=f"[bold]{name.title()} transitions[/bold]",
        )
        table.add_column("From", style="cyan", width=12)
        table.add_column("To", width=50)
        for src, targets in mapping.items():
            allowed = ", ".join(sorted(t.value for t in targets))
            if name == "node" and src.value == "failed":
                allowed += "  [dim](retryable error, attempts left)[/dim]"
            table.add_row(src.value, allowed or "[dim]terminal[/dim]")
        console.print(table)
