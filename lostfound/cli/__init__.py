"""Command-line interface."""

from lostfound.cli.main import cli


__all__ = ["cli"]
