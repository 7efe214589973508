"""Projection state CLI commands."""

from pathlib import Path

import typer

from mapproj.cli._common import OutputFormat, format_output, load_projection
from mapproj.cli.main import state_app
from mapproj.config import save_projection_yaml
from mapproj.units import UnitType, parse_unit


@state_app.command("describe")
def describe_command(
    config_file: Path = typer.Argument(..., help="Projection configuration YAML file"),
    output_format: OutputFormat = typer.Option(OutputFormat.HUMAN, "--format", "-f", help="Output format"),
) -> None:
    """
    Print the fully resolved projection.

    Human output is the projection summary; json/yaml output is its persisted
    keyword list.

    Example:
        mapproj state describe utm33.yaml
    """
    projection = load_projection(config_file)
    if output_format == OutputFormat.HUMAN:
        typer.echo(projection.describe())
    else:
        typer.echo(format_output(projection.save_state(), output_format))


@state_app.command("snap")
def snap_command(
    config_file: Path = typer.Argument(..., help="Projection configuration YAML file"),
    multiple: float | None = typer.Option(
        None, help="Grid spacing to snap the tie point to (default: whole pixels from the origin)"
    ),
    units: str = typer.Option("unknown", help="Unit of --multiple (default: native model unit)"),
    output: Path | None = typer.Option(None, help="Write the snapped state to this YAML file"),
) -> None:
    """
    Snap the upper-left tie point to a grid.

    Example:
        mapproj state snap utm33.yaml --multiple 30 --units meters --output snapped.yaml
    """
    projection = load_projection(config_file)

    if multiple is None:
        projection.snap_tie_point_to_origin()
    else:
        unit = parse_unit(units)
        if unit is UnitType.UNKNOWN and units.strip().lower() != UnitType.UNKNOWN.value:
            typer.echo(f"Error: Unknown unit '{units}'", err=True)
            raise typer.Exit(1)
        if multiple <= 0:
            typer.echo("Error: --multiple must be positive", err=True)
            raise typer.Exit(1)
        projection.snap_tie_point_to(multiple, unit)

    gpt = projection.ul_geodetic
    en = projection.ul_easting_northing
    typer.echo(format_output(
        {"tie_lat": gpt.lat, "tie_lon": gpt.lon, "tie_x": en.x, "tie_y": en.y},
        OutputFormat.HUMAN,
    ))

    if output is not None:
        save_projection_yaml(projection, str(output))
        typer.echo(f"Saved snapped projection to {output}")
