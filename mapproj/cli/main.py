"""Main Typer CLI application for map projection tools."""

import logging

import typer

app = typer.Typer(
    help="Map projection tools: inspect projections and transform points between world, model and pixel space",
    no_args_is_help=True,
)

transform_app = typer.Typer(help="Point transformation commands")
state_app = typer.Typer(help="Projection state commands")

app.add_typer(transform_app, name="transform")
app.add_typer(state_app, name="state")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)"),
) -> None:
    """Configure logging for every command."""
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        typer.echo(f"Error: Unknown log level '{log_level}'", err=True)
        raise typer.Exit(1)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _register_commands() -> None:
    """
    Import command modules to register commands with their respective apps.

    Commands use decorators like @transform_app.command() which register
    themselves when the module is imported.
    """
    from mapproj.cli import state, transform

    _ = state
    _ = transform


_register_commands()


if __name__ == "__main__":
    app()
