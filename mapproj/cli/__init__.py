"""CLI module for map projection tools.

Provides the `mapproj` command-line interface for inspecting projection
configuration files and transforming points through them.
"""

from mapproj.cli.main import app

__all__ = ["app"]
