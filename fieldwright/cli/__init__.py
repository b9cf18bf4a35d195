"""Command-line interface for fieldwright."""

from .app import app

__all__ = ["app"]
