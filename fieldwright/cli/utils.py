"""CLI utilities for dual-mode output (human-friendly + machine-readable).

- Human mode (default): Rich formatting with colors and tables
- Machine mode (--json): Structured JSON printed once at the end

Example:
    out = Output(console=console, json_mode=get_json_mode())
    out.success("Compiled entity", entity="user", groups=3)
    out.table("Groups", ["Target", "Operations"], [["email", "trim | lower"]])
    raise typer.Exit(out.finish())
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, PrivateAttr
from pydantic import ValidationError as SpecValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..core.models import Entity, EntitySpec
from ..errors import CompileError
from ..compiler import build_entity


class ExitCode:
    """Standardized exit codes for CLI commands.

        0 = Success
        1 = Validation error (input rejected)
        2 = Compile error (declaration cannot be linked or compiled)
        3 = File not found
        4 = Usage error
    """

    SUCCESS = 0
    VALIDATION_ERROR = 1
    COMPILE_ERROR = 2
    FILE_NOT_FOUND = 3
    USAGE_ERROR = 4


class Output(BaseModel):
    """Dual-mode output handler for CLI commands."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    console: Console
    json_mode: bool = False

    _data: dict[str, Any] = PrivateAttr()
    _exit_code: int = PrivateAttr(default=ExitCode.SUCCESS)

    def model_post_init(self, __context: Any) -> None:
        self._data = {
            "status": "success",
            "warnings": [],
            "errors": [],
        }

    def success(self, message: str, **data: Any) -> None:
        if self.json_mode:
            self._data.update(data)
        else:
            self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        if self.json_mode:
            self._data["warnings"].append({"message": message})
        else:
            self.console.print(f"[yellow]⚠[/yellow] {message}")

    def error(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        exit_code: int = ExitCode.VALIDATION_ERROR,
    ) -> None:
        """Output an error message and set exit code."""
        self._exit_code = exit_code
        self._data["status"] = "error"

        if self.json_mode:
            error_obj: dict[str, Any] = {"message": message}
            if details:
                error_obj.update(details)
            self._data["errors"].append(error_obj)
        else:
            self.console.print(f"[red]✗[/red] {message}")

    def text(self, message: str) -> None:
        """Output plain text (human mode only)."""
        if not self.json_mode:
            self.console.print(message)

    def table(
        self,
        title: str,
        columns: list[str],
        rows: list[list[str]],
        *,
        data_key: str | None = None,
    ) -> None:
        key = data_key or title.lower().replace(" ", "_")

        if self.json_mode:
            self._data[key] = [dict(zip(columns, row)) for row in rows]
        else:
            table = Table(title=title, show_header=True, header_style="bold")
            for col in columns:
                table.add_column(col)
            for row in rows:
                table.add_row(*row)
            self.console.print(table)

    def set_data(self, key: str, value: Any) -> None:
        """Set arbitrary data in JSON output."""
        self._data[key] = value

    def finish(self) -> int:
        """Print accumulated JSON (JSON mode) and return the exit code."""
        if self.json_mode:
            self._data["exit_code"] = self._exit_code
            print(json.dumps(self._data, indent=2, default=str))

        return self._exit_code


def setup_logging(
    console: Console,
    verbose: bool = False,
    debug: bool = False,
    json_mode: bool = False,
) -> None:
    """Configure logging through Rich; the configured level applies by default.

    In JSON mode only errors are logged unless --verbose or --debug is given;
    problems are reported inside the JSON document instead.
    """
    from ..config import get_config

    level = logging.getLevelName(get_config().logging.level)
    if not isinstance(level, int):
        level = logging.WARNING
    if json_mode:
        level = max(level, logging.ERROR)
    if verbose:
        level = logging.INFO
    if debug:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )
    logging.getLogger("fieldwright").setLevel(level)


def load_entity(path: Path) -> Entity:
    """Load a declaration file and link it.

    Raises:
        FileNotFoundError: If the file does not exist
        CompileError: If the declaration is malformed or cannot be linked
    """
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    try:
        spec = EntitySpec.from_yaml(path)
    except (yaml.YAMLError, SpecValidationError) as e:
        raise CompileError(f"Invalid declaration in {path}: {e}") from e
    return build_entity(spec)


def parse_json_option(value: str | None, option: str) -> dict[str, Any]:
    """Parse a JSON object given inline or as @path."""
    if not value:
        return {}
    text = Path(value[1:]).read_text() if value.startswith("@") else value
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"{option} must be a JSON object")
    return data
