"""Point transformation CLI commands."""

from pathlib import Path

import typer

from mapproj.cli._common import OutputFormat, format_output, load_projection
from mapproj.cli.main import transform_app
from mapproj.points import GeodeticPoint, PixelPoint


@transform_app.command("world-to-pixel")
def world_to_pixel_command(
    config_file: Path = typer.Argument(..., help="Projection configuration YAML file"),
    lat: float = typer.Option(..., help="Latitude in decimal degrees"),
    lon: float = typer.Option(..., help="Longitude in decimal degrees"),
    datum: str | None = typer.Option(None, help="Datum code of the input point (default: projection datum)"),
    output_format: OutputFormat = typer.Option(OutputFormat.HUMAN, "--format", "-f", help="Output format"),
) -> None:
    """
    Project a geodetic point into image (sample, line) coordinates.

    Example:
        mapproj transform world-to-pixel utm33.yaml --lat 45.0 --lon 15.0
    """
    projection = load_projection(config_file)
    point_datum = None
    if datum is not None:
        point_datum = projection.datum_factory.create(datum)
        if point_datum is None:
            typer.echo(f"Error: Unknown datum '{datum}'", err=True)
            raise typer.Exit(1)

    pixel = projection.world_to_pixel(GeodeticPoint(lat, lon, datum=point_datum))
    typer.echo(format_output({"sample": pixel.sample, "line": pixel.line}, output_format))


@transform_app.command("pixel-to-world")
def pixel_to_world_command(
    config_file: Path = typer.Argument(..., help="Projection configuration YAML file"),
    sample: float = typer.Option(..., help="Image sample (column)"),
    line: float = typer.Option(..., help="Image line (row)"),
    output_format: OutputFormat = typer.Option(OutputFormat.HUMAN, "--format", "-f", help="Output format"),
) -> None:
    """
    Locate an image pixel on the ground.

    Example:
        mapproj transform pixel-to-world utm33.yaml --sample 100 --line 200 -f json
    """
    projection = load_projection(config_file)
    gpt = projection.pixel_to_world(PixelPoint(sample, line))
    typer.echo(format_output(
        {"lat": gpt.lat, "lon": gpt.lon, "height": gpt.height, "datum": projection.datum.code},
        output_format,
    ))


@transform_app.command("pixel-to-model")
def pixel_to_model_command(
    config_file: Path = typer.Argument(..., help="Projection configuration YAML file"),
    sample: float = typer.Option(..., help="Image sample (column)"),
    line: float = typer.Option(..., help="Image line (row)"),
    output_format: OutputFormat = typer.Option(OutputFormat.HUMAN, "--format", "-f", help="Output format"),
) -> None:
    """Map an image pixel to model coordinates in the projection's declared unit."""
    projection = load_projection(config_file)
    model = projection.pixel_to_model(PixelPoint(sample, line))
    typer.echo(format_output(
        {"x": model.x, "y": model.y, "units": projection.projection_units.value},
        output_format,
    ))
