"""Helpers shared by the CLI command modules."""

import json
import math
from enum import Enum
from pathlib import Path
from typing import Any

import typer
import yaml

from mapproj.config import load_projection_yaml
from mapproj.projection import MapProjection


class OutputFormat(str, Enum):
    """Output format options."""

    HUMAN = "human"
    JSON = "json"
    YAML = "yaml"


def load_projection(config_file: Path) -> MapProjection:
    """Build the projection described by config_file, exiting with status 1 on error."""
    try:
        return load_projection_yaml(str(config_file))
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _plain(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def format_output(values: dict[str, Any], output_format: OutputFormat) -> str:
    """Render a flat result mapping in the requested format."""
    if output_format == OutputFormat.JSON:
        return json.dumps({k: _plain(v) for k, v in values.items()}, indent=2)
    if output_format == OutputFormat.YAML:
        return yaml.safe_dump({k: _plain(v) for k, v in values.items()}, default_flow_style=False, sort_keys=False)
    width = max(len(k) for k in values)
    return "\n".join(f"{k + ':':<{width + 1}} {v}" for k, v in values.items())
