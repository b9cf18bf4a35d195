"""Validate command: link and compile one or more declarations."""

from pathlib import Path

import typer

from ...compiler import compile_many
from ...errors import CompileError
from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output, load_entity


@app.command("validate")
def validate_command(
    spec_files: list[Path] = typer.Argument(..., help="Entity declaration YAML files"),
):
    """Check that declarations link and compile.

    Each file is checked independently; one failure does not stop the rest.
    """
    out = Output(console=console, json_mode=get_json_mode())

    entities = []
    failures: dict[str, str] = {}
    for path in spec_files:
        try:
            entities.append(load_entity(path))
        except FileNotFoundError as e:
            failures[str(path)] = str(e)
            out.error(str(e), exit_code=ExitCode.FILE_NOT_FOUND)
        except CompileError as e:
            failures[str(path)] = e.message
            out.error(
                f"{path}: {e.message}", details=e.info, exit_code=ExitCode.COMPILE_ERROR
            )

    routines, errors = compile_many(entities)
    for name, error in errors.items():
        failures[name] = error.message
        out.error(f"{name}: {error.message}", details=error.info, exit_code=ExitCode.COMPILE_ERROR)

    for name, routine in routines.items():
        out.success(f"{name}: {len(routine.groups)} group(s)")

    out.set_data("valid", sorted(routines))
    out.set_data("invalid", sorted(failures))
    raise typer.Exit(out.finish())
