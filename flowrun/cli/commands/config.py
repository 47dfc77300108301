"""flowrun config — Show resolved flowrun configuration."""

from rich.console import Console
from rich.table import Table
from rich import box

console = Console()


def config_show():
    """Show the resolved flowrun configuration.

    Reads from environment variables and .env file.

    Example:
        flowrun config
    """
    from flowrun.config import FlowrunConfig
    cfg = FlowrunConfig()

    table = Table(
        box=box.ROUNDED,
        header_style="bold dim",
        show_lines=False,
        title="[bold]flowrun Configuration[/bold]",
    )
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value")
    table.add_column("Env Var", style="dim", overflow="fold")

    sections = [
        ("App", ["debug", "log_level", "environment"]),
        ("Execution state", ["default_max_attempts"]),
        ("Expressions", ["memoize_resolution"]),
    ]

    for section_name, keys in sections:
        table.add_row(f"[bold]{section_name}[/bold]", "", "")
        for key in keys:
            val = getattr(cfg, key)
            if hasattr(val, "value"):
                val = val.value
            table.add_row(f"  {key}", str(val), f"FLOWRUN_{key.upper()}")

    console.print(table)
