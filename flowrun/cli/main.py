"""flowrun CLI — Typer application."""

import logging

import typer
from rich.console import Console

from flowrun.config import FlowrunConfig
from flowrun.version import __version__

app = typer.Typer(
    name="flowrun",
    help="flowrun — resolve workflow expressions and inspect execution state.",
    no_args_is_help=True,
    invoke_without_command=True,
)
console = Console()


def _log_level(cfg: FlowrunConfig) -> str:
    return "DEBUG" if cfg.debug else cfg.log_level.upper()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", is_eager=True, help="Show version"),
):
    """flowrun CLI."""
    if version:
        console.print(f"flowrun v{__version__}")
        raise typer.Exit()
    logging.basicConfig(
        level=_log_level(FlowrunConfig()),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


from flowrun.cli.commands import config, replay, resolve, transitions  # noqa: E402

app.command(name="resolve", help="Resolve a {{...}} expression against a context file")(resolve.resolve_expression)
app.command(name="transitions", help="Show the allowed status transitions")(transitions.transitions_table)
app.command(name="replay", help="Step-by-step replay of an exported transition log")(replay.replay_log)
app.command(name="config", help="Show resolved configuration")(config.config_show)


if __name__ == "__main__":
    app()
