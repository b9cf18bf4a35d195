"""CLI commands for fieldwright."""

from . import (
    compile_cmd,
    validate,
    materialize,
    config_cmd,
)

__all__ = [
    "compile_cmd",
    "validate",
    "materialize",
    "config_cmd",
]
